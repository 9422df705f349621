"""
Graph snapshot model.

A ShaderGraph is an immutable snapshot of nodes and edges. Type inference
returns new snapshots instead of mutating the one it was given, and the
compiler only ever reads from it.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..errors import NodeNotFoundError
from .types import GLSLType

ARRAY_ELEMENT_HANDLE = re.compile(r'^(.+?)__(\d+)$')


class NodeKind(Enum):
    STANDARD = auto()
    GRAPH_INPUT = auto()    # Proxy exposing a compound node's inputs inside its scope
    GRAPH_OUTPUT = auto()   # Proxy collecting a compound node's outputs inside its scope
    GLOBAL_VAR = auto()
    COMPOUND = auto()
    MULTI_STAGE = auto()


@dataclass(frozen=True)
class Port:
    id: str
    name: str
    type: GLSLType

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Port":
        port_id = data['id']
        return cls(id=port_id, name=data.get('name', port_id), type=GLSLType.parse(data.get('type')))

    def with_type(self, new_type: GLSLType) -> "Port":
        return replace(self, type=new_type)


@dataclass(frozen=True)
class BoundValue:
    """
    User-set value of an input, uploaded as a uniform.

    widget and widget_config are display metadata; widget_config also carries
    'arrayLength' and 'arrayIndex' for array inputs.
    """
    type: GLSLType
    value: Any = None
    widget: Optional[str] = None
    widget_config: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BoundValue":
        value = data.get('value')
        if isinstance(value, list):
            value = tuple(tuple(v) if isinstance(v, list) else v for v in value)
        return cls(
            type=GLSLType.parse(data.get('type')),
            value=value,
            widget=data.get('widget'),
            widget_config=dict(data.get('widgetConfig') or {}),
        )

    @property
    def array_length(self) -> Optional[Any]:
        return self.widget_config.get('arrayLength')

    @property
    def array_index(self) -> Optional[Any]:
        return self.widget_config.get('arrayIndex')


@dataclass(frozen=True)
class PingPongConfig:
    """
    Persistent feedback buffer of a stage.

    Unset (None) fields are filled from pragmas and then from defaults when
    the stage is compiled.
    """
    enabled: bool = False
    buffer_name: Optional[str] = None
    init_value: Optional[Tuple[float, float, float, float]] = None
    persistent: Optional[bool] = None
    clear_each_frame: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PingPongConfig":
        init = data.get('initValue')
        return cls(
            enabled=bool(data.get('enabled', False)),
            buffer_name=data.get('bufferName'),
            init_value=tuple(init) if init is not None else None,
            persistent=data.get('persistent'),
            clear_each_frame=data.get('clearEachFrame'),
        )


@dataclass(frozen=True)
class Stage:
    """One stage of a multi-stage node."""
    id: str
    source: str
    ping_pong: Optional[PingPongConfig] = None
    loop: int = 1
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stage":
        ping_pong = data.get('pingPong')
        return cls(
            id=str(data['id']),
            source=data.get('glsl', ''),
            ping_pong=PingPongConfig.from_dict(ping_pong) if ping_pong else None,
            loop=int(data.get('loop') or 1),
            name=data.get('name'),
        )


@dataclass(frozen=True)
class Node:
    id: str
    kind: NodeKind = NodeKind.STANDARD
    label: str = ""
    source: str = ""
    inputs: Tuple[Port, ...] = ()
    outputs: Tuple[Port, ...] = ()
    output_type: GLSLType = GLSLType.VEC4
    uniforms: Mapping[str, BoundValue] = field(default_factory=dict)
    auto_type: bool = False
    scope_id: Optional[str] = None
    global_name: Optional[str] = None
    global_value: Any = None
    stages: Tuple[Stage, ...] = ()
    # Editor position; cosmetic only
    position: Optional[Tuple[float, float]] = field(default=None, compare=False)

    @property
    def clean_id(self) -> str:
        """Node id usable inside GLSL identifiers."""
        return re.sub(r'[^A-Za-z0-9_]', '_', self.id)

    @property
    def run_name(self) -> str:
        return f"node_{self.clean_id}_run"

    @property
    def is_multi_stage(self) -> bool:
        return self.kind == NodeKind.MULTI_STAGE and len(self.stages) > 0

    @property
    def global_uniform_name(self) -> str:
        return self.global_name or f"u_global_{self.clean_id}"

    def default_output(self) -> Port:
        if self.outputs:
            return self.outputs[0]
        return Port('out', 'Output', self.output_type)

    def output_port(self, port_id: Optional[str]) -> Port:
        """Output port by id, falling back to the default output."""
        if port_id:
            for port in self.outputs:
                if port.id == port_id:
                    return port
        return self.default_output()

    def find_output(self, port_id: str) -> Optional[Port]:
        for port in self.outputs:
            if port.id == port_id:
                return port
        if not self.outputs and port_id == 'out':
            return self.default_output()
        return None

    def find_input(self, port_id: Optional[str]) -> Optional[Port]:
        for port in self.inputs:
            if port.id == port_id:
                return port
        return None

    def uniform_name(self, port_id: str) -> str:
        return f"u_{self.clean_id}_{port_id}"

    def output_var(self, port_id: str) -> str:
        return f"out_{self.clean_id}_{port_id}"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Node":
        """Build a node from the editor's JSON shape ({'id', 'type', 'data'})."""
        data = payload.get('data', {})
        node_type = payload.get('type')

        if node_type == 'graphInput':
            kind = NodeKind.GRAPH_INPUT
        elif node_type == 'graphOutput':
            kind = NodeKind.GRAPH_OUTPUT
        elif data.get('isGlobalVar'):
            kind = NodeKind.GLOBAL_VAR
        elif data.get('isCompound'):
            kind = NodeKind.COMPOUND
        elif data.get('passes'):
            kind = NodeKind.MULTI_STAGE
        else:
            kind = NodeKind.STANDARD

        inputs = tuple(Port.from_dict(p) for p in data.get('inputs') or [])
        outputs = tuple(Port.from_dict(p) for p in data.get('outputs') or [])

        # The editor stores graph-input ports as inputs and graph-output ports
        # as outputs; proxies expose them on the opposite side here.
        if kind == NodeKind.GRAPH_INPUT and not outputs:
            outputs, inputs = inputs, ()
        elif kind == NodeKind.GRAPH_OUTPUT and not inputs:
            inputs, outputs = outputs, ()

        uniforms = {k: BoundValue.from_dict(v) for k, v in (data.get('uniforms') or {}).items()}

        global_value = data.get('value')
        if global_value is None and 'value' in uniforms:
            global_value = uniforms['value'].value

        position = payload.get('position')
        if isinstance(position, Mapping):
            position = (position.get('x', 0.0), position.get('y', 0.0))

        return cls(
            id=str(payload['id']),
            kind=kind,
            label=data.get('label', ''),
            source=data.get('glsl', '') or '',
            inputs=inputs,
            outputs=outputs,
            output_type=GLSLType.parse(data.get('outputType') or 'vec4'),
            uniforms=uniforms,
            auto_type=bool(data.get('autoType', False)),
            scope_id=data.get('scopeId'),
            global_name=data.get('globalName'),
            global_value=global_value,
            stages=tuple(Stage.from_dict(s) for s in data.get('passes') or []),
            position=tuple(position) if position is not None else None,
        )


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    source_port: Optional[str] = None
    target_port: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Edge":
        return cls(
            source=str(data['source']),
            target=str(data['target']),
            source_port=data.get('sourceHandle'),
            target_port=data.get('targetHandle'),
            id=data.get('id'),
        )

    def array_element(self) -> Optional[Tuple[str, int]]:
        """(base input id, index) when the target port is an element handle."""
        if not self.target_port:
            return None
        match = ARRAY_ELEMENT_HANDLE.match(self.target_port)
        if not match:
            return None
        return match.group(1), int(match.group(2))


def _supersede_edges(edges: Iterable[Edge]) -> Tuple[Edge, ...]:
    # At most one edge per (target, target_port); the later one wins
    latest: Dict[Tuple[str, Optional[str]], int] = {}
    ordered = list(edges)
    for idx, edge in enumerate(ordered):
        latest[(edge.target, edge.target_port)] = idx
    keep = set(latest.values())
    return tuple(edge for idx, edge in enumerate(ordered) if idx in keep)


class ShaderGraph:
    """Immutable snapshot of a node graph."""

    def __init__(self, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()):
        self._nodes: Dict[str, Node] = {}
        for node in nodes:
            self._nodes[node.id] = node
        self._edges: Tuple[Edge, ...] = _supersede_edges(edges)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ShaderGraph":
        nodes = [Node.from_dict(n) for n in payload.get('nodes', [])]
        edges = [Edge.from_dict(e) for e in payload.get('edges', [])]
        return cls(nodes, edges)

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> Tuple[Edge, ...]:
        return self._edges

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def require_node(self, node_id: str, referenced_by: str = None) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            if referenced_by:
                raise NodeNotFoundError(
                    f"Node {node_id} not found (referenced by {referenced_by})", node_id=node_id)
            raise NodeNotFoundError(f"Node {node_id} not found", node_id=node_id)
        return node

    def incoming(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges if e.target == node_id]

    def outgoing(self, node_id: str, port_id: Optional[str] = None) -> List[Edge]:
        return [e for e in self._edges
                if e.source == node_id and (port_id is None or e.source_port == port_id)]

    def edge_into(self, node_id: str, port_id: str) -> Optional[Edge]:
        for edge in self._edges:
            if edge.target == node_id and edge.target_port == port_id:
                return edge
        return None

    def children(self, scope_id: str) -> List[Node]:
        return [n for n in self._nodes.values() if n.scope_id == scope_id]

    def connect(self, edge: Edge) -> "ShaderGraph":
        """New snapshot with the edge bound, superseding any edge into the same port."""
        return ShaderGraph(self._nodes.values(), self._edges + (edge,))

    def replace_nodes(self, replacements: Mapping[str, Node]) -> "ShaderGraph":
        nodes = [replacements.get(n.id, n) for n in self._nodes.values()]
        return ShaderGraph(nodes, self._edges)
