# Emitter Registry
# Maps NodeKind -> emitter functions

from dataclasses import dataclass
from typing import Callable, Dict, List

from ...errors import CompilationError
from ...ir.graph import Node, NodeKind
from ..shader_context import PassContext

from .nodes import emit_no_functions, emit_graph_input_functions, emit_graph_output_functions
from .nodes import emit_standard_functions
from .nodes import emit_no_call, emit_graph_input_call, emit_graph_output_call, emit_standard_call


@dataclass(frozen=True)
class NodeEmitter:
    # (node, ctx) -> function definitions
    functions: Callable[[Node, PassContext], str]
    # (node, ctx) -> lines inside main()
    call: Callable[[Node, PassContext], List[str]]


# Multi-stage nodes are planned as separate passes and never inlined
EMITTER_REGISTRY: Dict[NodeKind, NodeEmitter] = {
    NodeKind.STANDARD: NodeEmitter(emit_standard_functions, emit_standard_call),
    NodeKind.COMPOUND: NodeEmitter(emit_standard_functions, emit_standard_call),
    NodeKind.GRAPH_INPUT: NodeEmitter(emit_graph_input_functions, emit_graph_input_call),
    NodeKind.GRAPH_OUTPUT: NodeEmitter(emit_graph_output_functions, emit_graph_output_call),
    NodeKind.GLOBAL_VAR: NodeEmitter(emit_no_functions, emit_no_call),
}


def get_emitter(kind: NodeKind) -> NodeEmitter:
    """Get emitter for a node kind."""
    emitter = EMITTER_REGISTRY.get(kind)
    if emitter is None:
        raise CompilationError(f"No emitter for node kind {kind.name}")
    return emitter
