"""
Polymorphic type inference over a graph snapshot.

Three passes run per invocation:

1. Graph-input proxies take the widest rank demanded by the ports they feed
   (reverse inference) and mirror it onto the owning compound node.
2. Auto-typed nodes pick the overload that best fits their connections
   (forward inference) and migrate their bound values.
3. Graph-output proxies adopt the exact type of whatever feeds them and
   mirror it onto the owning compound node.

Passes work on a ``Dict[str, Node]`` and replace entries; snapshots are never
mutated. ``run_type_inference`` returns None when nothing changed.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from ..errors import InferenceError
from ..glsl.signatures import Signature, extract_all_signatures
from ..ir.graph import Edge, Node, NodeKind, Port, ShaderGraph
from ..ir.types import GLSLType
from ..ir.values import conform_value, migrate_value

logger = logging.getLogger(__name__)

NodeMap = Dict[str, Node]

EXACT_MATCH_SCORE = 3
PRESENCE_SCORE = 2


def source_port_type(source: Node, port_id: Optional[str]) -> GLSLType:
    """Type produced by a node on the given output port."""
    if port_id:
        for port in source.outputs:
            if port.id == port_id:
                return port.type
        # Proxies created by the editor may still list exposed ports as inputs
        if source.kind == NodeKind.GRAPH_INPUT:
            for port in source.inputs:
                if port.id == port_id:
                    return port.type
    if source.outputs and not port_id:
        return source.outputs[0].type
    return source.output_type


def target_port_type(target: Node, port_id: Optional[str]) -> Optional[GLSLType]:
    port = target.find_input(port_id)
    if port is not None:
        return port.type
    if target.kind == NodeKind.GRAPH_OUTPUT:
        port = target.find_output(port_id) if port_id else None
        if port is not None:
            return port.type
    return None


def _retype(ports: Tuple[Port, ...], updates: Dict[str, GLSLType]) -> Tuple[Port, ...]:
    return tuple(p.with_type(updates[p.id]) if p.id in updates else p for p in ports)


# =============================================================================
# Pass 1: graph-input proxies (reverse)
# =============================================================================

def infer_graph_inputs(nodes: NodeMap, graph: ShaderGraph) -> bool:
    changed = False
    for node_id in list(nodes):
        proxy = nodes[node_id]
        if proxy.kind != NodeKind.GRAPH_INPUT:
            continue

        updates: Dict[str, GLSLType] = {}
        for port in proxy.outputs:
            max_rank = 0
            for edge in graph.outgoing(proxy.id, port.id):
                target = nodes.get(edge.target)
                if target is None:
                    continue
                target_type = target_port_type(target, edge.target_port)
                if target_type is not None:
                    max_rank = max(max_rank, target_type.rank)
            if max_rank > 0:
                best = GLSLType.from_rank(max_rank)
                if best != port.type:
                    updates[port.id] = best

        if not updates:
            continue

        changed = True
        nodes[proxy.id] = replace(proxy, outputs=_retype(proxy.outputs, updates))
        logger.debug(f"Graph input {proxy.id} retyped: {updates}")

        compound = nodes.get(proxy.scope_id) if proxy.scope_id else None
        if compound is not None:
            uniforms = dict(compound.uniforms)
            for port in compound.inputs:
                if port.id in updates and updates[port.id] != port.type:
                    uniforms[port.id] = migrate_value(uniforms.get(port.id), updates[port.id])
            nodes[compound.id] = replace(
                compound,
                inputs=_retype(compound.inputs, updates),
                uniforms=uniforms,
            )
    return changed


# =============================================================================
# Pass 2: auto-typed nodes (forward)
# =============================================================================

def connected_rank(node: Node, nodes: NodeMap, graph: ShaderGraph) -> Tuple[int, bool, bool]:
    """
    (max rank, connected, driven by inputs) for a node.

    Incoming edges decide; without them outgoing demand does. Rank defaults
    to 1 (float).
    """
    max_rank = 1
    incoming = [e for e in graph.incoming(node.id) if e.source in nodes]
    if incoming:
        for edge in incoming:
            rank = source_port_type(nodes[edge.source], edge.source_port).rank
            max_rank = max(max_rank, rank)
        return max_rank, True, True

    outgoing = [e for e in graph.outgoing(node.id) if e.target in nodes]
    for edge in outgoing:
        target_type = target_port_type(nodes[edge.target], edge.target_port)
        if target_type is not None:
            max_rank = max(max_rank, target_type.rank)
    return max_rank, bool(outgoing), False


def score_signature(sig: Signature, incoming: List[Edge], nodes: NodeMap) -> Optional[int]:
    """
    Score an overload against the incoming connections; None if incompatible.

    Exact type matches score 3, other accepted pairings 2. Mixing sampler and
    non-sampler, or feeding a wider numeric type than the parameter takes,
    rejects the overload.
    """
    score = 0
    by_port = {e.target_port: e for e in incoming}
    for param in sig.inputs:
        edge = by_port.get(param.id)
        if edge is None or edge.source not in nodes:
            continue
        source_type = source_port_type(nodes[edge.source], edge.source_port)
        if source_type == param.type:
            score += EXACT_MATCH_SCORE
            continue
        if source_type.is_sampler() != param.type.is_sampler():
            return None
        if source_type.rank > param.type.rank:
            return None
        score += PRESENCE_SCORE
    return score


def select_signature(signatures: List[Signature], incoming: List[Edge],
                     nodes: NodeMap, target_rank: int) -> Optional[Signature]:
    """Best-scoring overload, else the first whose first input has the target rank."""
    best: Optional[Signature] = None
    best_score = -1
    if incoming:
        for sig in signatures:
            score = score_signature(sig, incoming, nodes)
            if score is not None and score > best_score:
                best, best_score = sig, score
    if best is None:
        for sig in signatures:
            if sig.inputs and sig.inputs[0].type.rank == target_rank:
                return sig
    return best


def _infer_auto_node(node: Node, nodes: NodeMap, graph: ShaderGraph) -> Optional[Node]:
    target_rank, connected, driven = connected_rank(node, nodes, graph)
    if not connected:
        # Sticky: unconnected nodes keep their type
        return None

    signatures = extract_all_signatures(node.source)
    incoming = [e for e in graph.incoming(node.id) if e.source in nodes] if driven else []
    sig = select_signature(signatures, incoming, nodes, target_rank)

    inputs, outputs, output_type = node.inputs, node.outputs, node.output_type
    if sig is not None:
        inputs = tuple(sig.inputs)
        outputs = tuple(sig.outputs)
        if outputs:
            output_type = outputs[0].type
    else:
        logger.warning(f"No overload of node {node.id} matches rank {target_rank}; keeping current ports")

    uniforms = dict(node.uniforms)
    values_changed = False
    for port in inputs:
        current = uniforms.get(port.id)
        conformed = conform_value(current, port.type)
        if conformed is not current:
            uniforms[port.id] = conformed
            values_changed = True

    if (inputs == node.inputs and outputs == node.outputs
            and output_type == node.output_type and not values_changed):
        return None

    return replace(node, inputs=inputs, outputs=outputs, output_type=output_type, uniforms=uniforms)


def infer_standard_nodes(nodes: NodeMap, graph: ShaderGraph) -> bool:
    changed = False
    for node_id in list(nodes):
        node = nodes[node_id]
        if not node.auto_type or node.kind not in (NodeKind.STANDARD, NodeKind.COMPOUND):
            continue
        updated = _infer_auto_node(node, nodes, graph)
        if updated is not None:
            nodes[node_id] = updated
            changed = True
    return changed


# =============================================================================
# Pass 3: graph-output proxies (forward)
# =============================================================================

def infer_graph_outputs(nodes: NodeMap, graph: ShaderGraph) -> bool:
    changed = False
    for node_id in list(nodes):
        proxy = nodes[node_id]
        if proxy.kind != NodeKind.GRAPH_OUTPUT:
            continue

        updates: Dict[str, GLSLType] = {}
        for port in proxy.inputs:
            edge = graph.edge_into(proxy.id, port.id)
            if edge is None or edge.source not in nodes:
                continue
            source_type = source_port_type(nodes[edge.source], edge.source_port)
            if source_type != port.type:
                updates[port.id] = source_type

        if not updates:
            continue

        changed = True
        nodes[proxy.id] = replace(proxy, inputs=_retype(proxy.inputs, updates))
        logger.debug(f"Graph output {proxy.id} retyped: {updates}")

        compound = nodes.get(proxy.scope_id) if proxy.scope_id else None
        if compound is not None:
            outputs = _retype(compound.outputs, updates)
            nodes[compound.id] = replace(
                compound,
                outputs=outputs,
                output_type=outputs[0].type if outputs else compound.output_type,
            )
    return changed


def run_type_inference(graph: ShaderGraph) -> Optional[ShaderGraph]:
    """
    Run all inference passes.

    Returns a new snapshot, or None when no pass changed anything.
    """
    nodes: NodeMap = {n.id: n for n in graph}

    changed_inputs = infer_graph_inputs(nodes, graph)
    changed_standard = infer_standard_nodes(nodes, graph)
    changed_outputs = infer_graph_outputs(nodes, graph)

    if not (changed_inputs or changed_standard or changed_outputs):
        return None
    return graph.replace_nodes(nodes)


def infer_node_strict(node_id: str, graph: ShaderGraph) -> Node:
    """
    Infer a single auto-typed node, raising when no overload fits.

    Used by tooling that wants a hard failure instead of the fallback shape.
    """
    node = graph.require_node(node_id)
    nodes: NodeMap = {n.id: n for n in graph}
    target_rank, connected, driven = connected_rank(node, nodes, graph)
    signatures = extract_all_signatures(node.source)
    incoming = [e for e in graph.incoming(node.id) if e.source in nodes] if driven else []
    if connected and select_signature(signatures, incoming, nodes, target_rank) is None:
        raise InferenceError(f"No overload of node {node_id} accepts its connections", node_id=node_id)
    return _infer_auto_node(node, nodes, graph) or node
