# Node Emitters
# Handles: function definitions and main() calls for each node kind

import logging
from typing import List, Optional

from ...ir.graph import Edge, Node, NodeKind, Port
from ...ir.types import GLSLType
from ...ir.values import resolve_array_len
from ..compound import compile_compound_body
from ..hygiene import function_signature, prepare_body, sanitize_id_for_glsl
from ..shader_context import PassContext
from .types import sample_expr

logger = logging.getLogger(__name__)

RESULT_PORT = Port('result', 'result', GLSLType.VEC4)


def source_expr(edge: Edge, to_type: GLSLType, ctx: PassContext) -> Optional[str]:
    """Expression for an edge source inside this pass, None if it lives elsewhere."""
    src = ctx.graph.require_node(edge.source, referenced_by=edge.target)
    if not ctx.is_local(src.id) or src.id not in ctx.emitted:
        return None
    if src.kind == NodeKind.GLOBAL_VAR:
        return ctx.cast(src.global_uniform_name, src.output_type, to_type)
    port = src.output_port(edge.source_port)
    return ctx.cast(src.output_var(port.id), port.type, to_type)


def _array_elements(node: Node, port: Port, ctx: PassContext) -> List[Edge]:
    elements = []
    for edge in ctx.graph.incoming(node.id):
        element = edge.array_element()
        if element and element[0] == port.id:
            elements.append(edge)
    return elements


def _emit_array_argument(node: Node, port: Port, elements: List[Edge],
                         ctx: PassContext, lines: List[str]) -> str:
    """Build a local array from the bound value plus per-element edges."""
    bound = node.uniforms.get(port.id)
    length = resolve_array_len(port.type, bound, ctx.array_fallback)
    element_type = port.type.element_type()
    name = f"arr_{node.clean_id}_{sanitize_id_for_glsl(port.id)}"

    lines.append(f"  {element_type} {name}[{length}] = {ctx.default(port.type, length)};")
    if bound is not None and bound.type == port.type:
        lines.append(f"  for (int i = 0; i < {length}; i++) {{ {name}[i] = {node.uniform_name(port.id)}[i]; }}")

    for edge in sorted(elements, key=lambda e: e.array_element()[1]):
        index = min(max(edge.array_element()[1], 0), length - 1)
        rhs = source_expr(edge, element_type, ctx)
        if rhs is None:
            ctx.warn(f"Array element {edge.target_port} of {node.id} is not reachable in this pass")
            rhs = ctx.default(element_type)
        lines.append(f"  {name}[{index}] = {rhs};")
    return name


def resolve_argument(node: Node, port: Port, ctx: PassContext, lines: List[str]) -> str:
    """
    Argument for one input, by priority:
    pass texture, array elements, local edge, bound value, zero default.
    """
    texture = ctx.texture_for(node.id, port.id)
    if texture:
        return sample_expr(texture, port.type)

    edge = ctx.graph.edge_into(node.id, port.id)
    if edge is None and port.type.is_array():
        elements = _array_elements(node, port, ctx)
        if elements:
            return _emit_array_argument(node, port, elements, ctx, lines)

    if edge is not None:
        expr = source_expr(edge, port.type, ctx)
        if expr is not None:
            return expr

    bound = node.uniforms.get(port.id)
    if bound is not None:
        if bound.type == port.type:
            return node.uniform_name(port.id)
        if not bound.type.is_array() and not port.type.is_array():
            return ctx.cast(node.uniform_name(port.id), bound.type, port.type)

    if port.type.is_array():
        return ctx.default(port.type, resolve_array_len(port.type, bound, ctx.array_fallback))
    return ctx.default(port.type)


# ============================================================================
# Function definitions
# ============================================================================

def emit_no_functions(node: Node, ctx: PassContext) -> str:
    return ""


def emit_graph_input_functions(node: Node, ctx: PassContext) -> str:
    body = "\n".join(f"  {p.id} = {node.uniform_name(p.id)};" for p in node.outputs) or "  // No outputs"
    signature = function_signature(node.run_name, [], node.outputs, fallback=ctx.array_fallback)
    return f"// Node: {node.label or node.id}\n{signature} {{\n{body}\n}}\n\n"


def emit_graph_output_functions(node: Node, ctx: PassContext) -> str:
    if node.inputs:
        first = node.inputs[0]
        body = f"  result = {ctx.cast(first.id, first.type, GLSLType.VEC4)};"
    else:
        body = "  result = vec4(0.0);"
    signature = function_signature(node.run_name, node.inputs, [RESULT_PORT],
                                   node.uniforms, ctx.array_fallback)
    return f"// Node: {node.label or node.id}\n{signature} {{\n{body}\n}}\n\n"


def emit_standard_functions(node: Node, ctx: PassContext) -> str:
    if node.kind == NodeKind.COMPOUND:
        source = compile_compound_body(node, ctx)
    else:
        source = node.source
    code = prepare_body(node, source, ctx.array_fallback)
    return f"// Node: {node.label or node.id}\n{code}\n\n"


# ============================================================================
# main() calls
# ============================================================================

def emit_no_call(node: Node, ctx: PassContext) -> List[str]:
    return []


def emit_graph_input_call(node: Node, ctx: PassContext) -> List[str]:
    lines = [ctx.local_declaration(node.output_var(p.id), p.type) for p in node.outputs]
    args = ['uv'] + [node.output_var(p.id) for p in node.outputs]
    lines.append(f"  {node.run_name}({', '.join(args)});")
    return lines


def emit_graph_output_call(node: Node, ctx: PassContext) -> List[str]:
    lines: List[str] = []
    args = ['uv'] + [resolve_argument(node, port, ctx, lines) for port in node.inputs]
    result = node.output_var(RESULT_PORT.id)
    lines.append(f"  vec4 {result};")
    args.append(result)
    lines.append(f"  {node.run_name}({', '.join(args)});")
    return lines


def emit_standard_call(node: Node, ctx: PassContext) -> List[str]:
    lines: List[str] = []
    args = ['uv'] + [resolve_argument(node, port, ctx, lines) for port in node.inputs]
    for port in node.outputs or (node.default_output(),):
        lines.append(ctx.local_declaration(node.output_var(port.id), port.type))
        args.append(node.output_var(port.id))
    lines.append(f"  {node.run_name}({', '.join(args)});")
    return lines
