"""
Pytest configuration and shared fixtures for Shader Nodes tests.

This file provides:
1. Shared fixtures for common graphs
2. Helper functions for common assertions

Usage:
    pytest tests/ -v
"""

import pytest

from shader_nodes.config import CompilerConfig

from .builders import (
    FLOAT_SRC,
    SAMPLE_SRC,
    SOLID_SRC,
    edge,
    graph,
    graph_output,
    node,
)


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture
def config():
    return CompilerConfig()


@pytest.fixture
def solid_graph():
    """
    Solid color -> graph output.

    Compiles to a single pass 'out'.
    """
    return graph(
        [node('src', SOLID_SRC, outputs=[('color', 'vec4')]), graph_output('out')],
        [edge('src', 'out', 'color', 'color')],
    )


@pytest.fixture
def sampler_graph():
    """
    Float source feeding a sampler input.

    Structure:
        noise (float) -> blur.tex (sampler2D) -> out
    """
    return graph(
        [
            node('noise', FLOAT_SRC, outputs=[('value', 'float')]),
            node('blur', SAMPLE_SRC, inputs=[('tex', 'sampler2D')], outputs=[('result', 'vec4')]),
            graph_output('out'),
        ],
        [
            edge('noise', 'blur', 'value', 'tex'),
            edge('blur', 'out', 'result', 'color'),
        ],
    )


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def assert_pass_count(result, expected_count, msg=""):
    """Assert that a compilation succeeded with the expected number of passes."""
    assert result.error is None, f"Compilation failed: {result.error}"
    count = len(result.passes)
    assert count == expected_count, f"Expected {expected_count} passes, got {count}. {msg}"


def assert_declares(fragment, *declarations):
    """Assert that each declaration line appears in a fragment shader."""
    for declaration in declarations:
        assert declaration in fragment, f"Missing '{declaration}' in:\n{fragment}"
