"""
Custom exceptions for Shader Nodes.

Only structural failures (a node or port that cannot be resolved) abort a
compilation; everything recoverable is logged as a warning and the compiler
degrades instead.

Exception Hierarchy:
    ShaderNodesError (base)
    ├── CompilationError
    │   ├── GraphResolutionError
    │   │   ├── NodeNotFoundError
    │   │   └── PortNotFoundError
    │   └── SignatureError
    └── InferenceError
"""


class ShaderNodesError(Exception):
    """Base exception for all Shader Nodes errors."""
    pass


# =============================================================================
# Compilation Errors
# =============================================================================

class CompilationError(ShaderNodesError):
    """Base exception for compilation/code generation errors."""
    pass


class GraphResolutionError(CompilationError):
    """
    Raised when a graph reference cannot be resolved during traversal.

    Attributes:
        node_id: Id of the node being resolved
        port_id: Id of the port being resolved, if any
    """

    def __init__(self, message: str, node_id: str = None, port_id: str = None):
        super().__init__(message)
        self.node_id = node_id
        self.port_id = port_id


class NodeNotFoundError(GraphResolutionError):
    """Raised when an edge or request references a node that does not exist."""
    pass


class PortNotFoundError(GraphResolutionError):
    """Raised when a requested output port does not exist on its node."""
    pass


class SignatureError(CompilationError):
    """Raised when a node body has no parsable entry signature in strict mode."""

    def __init__(self, message: str, node_id: str = None, source: str = None):
        super().__init__(message)
        self.node_id = node_id
        self.source = source

    def format_with_source(self) -> str:
        """Format error with numbered source lines."""
        if not self.source:
            return str(self)

        lines = [f"SignatureError: {self}", "--- NODE SOURCE ---"]
        for i, line in enumerate(self.source.split('\n')):
            lines.append(f"{i+1:03d}: {line}")
        lines.append("-------------------")
        return '\n'.join(lines)


# =============================================================================
# Inference Errors
# =============================================================================

class InferenceError(ShaderNodesError):
    """Raised by strict inference helpers when a node cannot be typed."""

    def __init__(self, message: str, node_id: str = None):
        super().__init__(message)
        self.node_id = node_id
