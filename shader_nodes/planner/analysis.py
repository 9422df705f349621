import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from ..ir.graph import Node, ShaderGraph
from ..ir.types import GLSLType

logger = logging.getLogger(__name__)

# (source node, source port) -> sampler uniform carrying that node's pass
TextureRequest = Callable[[Node, Optional[str]], str]


@dataclass
class LocalSubgraph:
    """Nodes inlined into one pass, in dependency order."""
    order: List[Node] = field(default_factory=list)
    # '<node>_<port>' -> sampler uniform for inputs fed by another pass
    texture_inputs: Dict[str, str] = field(default_factory=dict)
    cycle_breaks: int = 0


def is_pass_boundary(source: Node, source_port: Optional[str], target_type: GLSLType) -> bool:
    """
    An edge needs its own pass when a sampler input is fed by a value, or
    when the source is a multi-stage node.
    """
    if source.is_multi_stage:
        return True
    source_type = source.output_port(source_port).type
    return target_type == GLSLType.SAMPLER2D and source_type != GLSLType.SAMPLER2D


def collect_local_subgraph(graph: ShaderGraph, root_id: str, request_texture: TextureRequest,
                           warn: Callable[[str], None] = logger.warning) -> LocalSubgraph:
    """
    Post-order DFS from root over incoming edges.

    Boundary edges are not followed; request_texture plans the source pass
    and its uniform is recorded against the consuming input. An edge back
    onto the traversal stack is dropped with a warning.
    """
    result = LocalSubgraph()
    visited: Set[str] = set()
    stack: Set[str] = set()

    def visit(node_id: str) -> None:
        if node_id in visited:
            return
        if node_id in stack:
            warn(f"Inline Cycle detected at node {node_id}. Breaking edge.")
            result.cycle_breaks += 1
            return

        node = graph.require_node(node_id)
        stack.add(node_id)

        for edge in graph.incoming(node_id):
            source = graph.require_node(edge.source, referenced_by=node_id)
            port = node.find_input(edge.target_port)
            if port is None:
                # Array elements are assembled by the call emitter from inline sources
                element = edge.array_element()
                base = node.find_input(element[0]) if element else None
                if base is not None and base.type.is_array() and not source.is_multi_stage:
                    visit(source.id)
                continue
            if is_pass_boundary(source, edge.source_port, port.type):
                uniform = request_texture(source, edge.source_port)
                result.texture_inputs[f"{node_id}_{port.id}"] = uniform
            else:
                visit(source.id)

        stack.discard(node_id)
        visited.add(node_id)
        result.order.append(node)

    visit(root_id)
    return result
