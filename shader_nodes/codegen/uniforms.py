"""
Uniform declarations for node bound values.

Naming:
    u_<node>_<input>          bound value of an input
    u_<node>_<input>_index    selected element of an array input
    <globalName>              global-variable node (u_global_<node> if unnamed)

The same naming drives build_uniform_overrides, so value-only edits can be
pushed to existing passes without recompiling.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from ..config import CompilerConfig
from ..ir.graph import BoundValue, Node, NodeKind, ShaderGraph
from ..ir.types import GLSLType
from ..ir.values import (
    default_value,
    infer_array_len,
    pack_uniform_value,
    resolve_array_index,
    resolve_array_len,
)
from ..planner.passes import RenderPass, UniformBinding
from .shader_context import PassContext

logger = logging.getLogger(__name__)


def declared_array_len(value_type: GLSLType, bound: Optional[BoundValue], value: Any,
                       array_fallback: int) -> Optional[int]:
    """Declared capacity of an array uniform, None for non-array types."""
    if not value_type.is_array():
        return None
    fallback = infer_array_len(value_type, value) or array_fallback
    return resolve_array_len(value_type, bound, fallback)


def declare_global(node: Node, ctx: PassContext) -> str:
    """Declare a global-variable node; returns the uniform name."""
    name = node.global_uniform_name
    value_type = node.output_type
    value = node.global_value

    array_len = declared_array_len(value_type, node.uniforms.get('value'), value, ctx.array_fallback)
    if value is None:
        value = default_value(value_type, array_len or ctx.array_fallback)

    ctx.declare_uniform(name, value_type, pack_uniform_value(value_type, value, array_len), array_len)
    return name


def declare_bound_values(node: Node, ctx: PassContext) -> None:
    """Declare uniforms for a node's bound inputs and array index selectors."""
    for port in node.inputs:
        bound = node.uniforms.get(port.id)
        if bound is None:
            continue
        value_type = bound.type
        array_len = declared_array_len(value_type, bound, bound.value, ctx.array_fallback)
        ctx.declare_uniform(node.uniform_name(port.id), value_type,
                            pack_uniform_value(value_type, bound.value, array_len), array_len)

    for port in node.inputs:
        if not port.type.is_array():
            continue
        bound = node.uniforms.get(port.id)
        index = resolve_array_index(port.type, bound, ctx.array_fallback)
        ctx.declare_uniform(f"{node.uniform_name(port.id)}_index", GLSLType.INT, index)


def declare_node_uniforms(node: Node, ctx: PassContext, _stack: Optional[List[str]] = None) -> None:
    """Declare every uniform a node contributes, recursing into compound scopes."""
    stack = _stack if _stack is not None else []

    if node.kind == NodeKind.GLOBAL_VAR:
        declare_global(node, ctx)
        return

    if node.kind == NodeKind.GRAPH_INPUT:
        # Inner proxies receive compound arguments instead
        if node.scope_id is None:
            for port in node.outputs:
                ctx.declare_uniform(node.uniform_name(port.id), port.type,
                                    pack_uniform_value(port.type, default_value(port.type)))
        return

    if node.kind in (NodeKind.GRAPH_OUTPUT, NodeKind.MULTI_STAGE):
        return

    declare_bound_values(node, ctx)

    if node.kind == NodeKind.COMPOUND:
        if node.id in stack:
            return
        stack.append(node.id)
        for inner in ctx.graph.children(node.id):
            declare_node_uniforms(inner, ctx, stack)
        stack.pop()


def declare_stage_uniforms(node: Node, ctx: PassContext) -> List[str]:
    """
    Declare a multi-stage node's bound values.

    Returns '#define <key> <uniform>' lines so stage code can use bare ids.
    """
    defines = []
    for key, bound in node.uniforms.items():
        if key == 'value':
            continue
        name = node.uniform_name(key)
        value_type = bound.type
        array_len = declared_array_len(value_type, bound, bound.value, ctx.array_fallback)
        ctx.declare_uniform(name, value_type, pack_uniform_value(value_type, bound.value, array_len), array_len)
        defines.append(f"#define {key} {name}")
    return defines


def build_uniform_overrides(graph: ShaderGraph, config: CompilerConfig = None) -> Dict[str, UniformBinding]:
    """Current uniform values of every node, keyed by generated uniform name."""
    ctx = PassContext(graph, config)
    for node in graph:
        if node.kind == NodeKind.MULTI_STAGE:
            declare_stage_uniforms(node, ctx)
        else:
            declare_node_uniforms(node, ctx)
    return ctx.uniforms


def apply_uniform_overrides(passes: Iterable[RenderPass],
                            overrides: Dict[str, UniformBinding]) -> List[RenderPass]:
    """New passes whose uniform values are refreshed from overrides of the same type."""
    result = []
    for render_pass in passes:
        uniforms = dict(render_pass.uniforms)
        for name, binding in uniforms.items():
            override = overrides.get(name)
            if override is not None and override.type == binding.type:
                uniforms[name] = override
        result.append(replace(render_pass, uniforms=uniforms))
    return result
