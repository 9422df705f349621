"""
Compound nodes: a sub-graph compiled into a single ``run`` body.

Children are the nodes whose scope_id is the compound id. The inner
graph-input proxy exposes the compound inputs as parameters and the inner
graph-output proxy assigns the compound outputs.
"""

import logging
from typing import List, Optional

from ..errors import CompilationError
from ..ir.graph import Edge, Node, NodeKind, Port
from ..ir.types import GLSLType
from .hygiene import function_signature, prepare_body
from .shader_context import PassContext

logger = logging.getLogger(__name__)


def _inner_source(edge: Edge, to_type: GLSLType, ctx: PassContext, scope_id: str) -> str:
    src = ctx.graph.require_node(edge.source, referenced_by=edge.target)
    if src.kind == NodeKind.GRAPH_INPUT and src.scope_id == scope_id:
        port = src.output_port(edge.source_port)
        return ctx.cast(port.id, port.type, to_type)
    if src.kind == NodeKind.GLOBAL_VAR:
        return ctx.cast(src.global_uniform_name, src.output_type, to_type)
    port = src.output_port(edge.source_port)
    return ctx.cast(src.output_var(port.id), port.type, to_type)


def _inner_argument(node: Node, port: Port, ctx: PassContext, scope_id: str) -> str:
    edge = ctx.graph.edge_into(node.id, port.id)
    if edge is not None:
        return _inner_source(edge, port.type, ctx, scope_id)
    bound = node.uniforms.get(port.id)
    if bound is not None:
        if bound.type == port.type:
            return node.uniform_name(port.id)
        if not bound.type.is_array() and not port.type.is_array():
            return ctx.cast(node.uniform_name(port.id), bound.type, port.type)
    return ctx.default(port.type)


def _call_order(scope_id: str, children: List[Node], ctx: PassContext) -> List[Node]:
    """Post-order DFS from the output proxy over edges inside the scope."""
    in_scope = {n.id: n for n in children}
    order: List[Node] = []
    visited = set()
    stack = set()

    def visit(node_id: str) -> None:
        if node_id in visited or node_id in stack:
            return
        stack.add(node_id)
        for edge in ctx.graph.incoming(node_id):
            if edge.source in in_scope:
                visit(edge.source)
        stack.discard(node_id)
        visited.add(node_id)
        order.append(in_scope[node_id])

    for node in children:
        if node.kind == NodeKind.GRAPH_OUTPUT:
            visit(node.id)
    return order


def compile_compound_body(compound: Node, ctx: PassContext, _stack: Optional[List[str]] = None) -> str:
    """GLSL source for a compound node, with its own ``void run(...)``."""
    stack = list(_stack or [])
    if compound.id in stack:
        raise CompilationError(f"Compound {compound.id} contains itself")
    stack.append(compound.id)

    children = ctx.graph.children(compound.id)
    fallback = ctx.array_fallback

    functions = []
    for inner in children:
        if inner.kind in (NodeKind.GRAPH_INPUT, NodeKind.GRAPH_OUTPUT, NodeKind.GLOBAL_VAR):
            continue
        if inner.kind == NodeKind.COMPOUND:
            source = compile_compound_body(inner, ctx, stack)
        else:
            source = inner.source
        code = prepare_body(inner, source, fallback)
        functions.append(f"// Inner Node: {inner.label or inner.id}\n{code}\n")

    body = []
    output_proxy = None
    for inner in _call_order(compound.id, children, ctx):
        if inner.kind == NodeKind.GRAPH_OUTPUT:
            output_proxy = inner
            continue
        if inner.kind in (NodeKind.GRAPH_INPUT, NodeKind.GLOBAL_VAR):
            continue

        args = [_inner_argument(inner, port, ctx, compound.id) for port in inner.inputs]
        outputs = inner.outputs or (inner.default_output(),)
        for port in outputs:
            body.append(ctx.local_declaration(inner.output_var(port.id), port.type))
            args.append(inner.output_var(port.id))
        body.append(f"  {inner.run_name}({', '.join(['uv'] + args)});")

    for port in compound.outputs:
        edge = ctx.graph.edge_into(output_proxy.id, port.id) if output_proxy else None
        if edge is not None:
            body.append(f"  {port.id} = {_inner_source(edge, port.type, ctx, compound.id)};")
        else:
            body.append(f"  {port.id} = {ctx.default(port.type)};")

    signature = function_signature('run', compound.inputs, compound.outputs, compound.uniforms, fallback)
    logger.debug(f"Compound {compound.id}: {len(functions)} inner functions")
    return "\n".join(functions) + f"\n{signature} {{\n" + "\n".join(body) + "\n}\n"
