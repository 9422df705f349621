from .types import GLSLType
from .graph import (
    BoundValue,
    Edge,
    Node,
    NodeKind,
    PingPongConfig,
    Port,
    ShaderGraph,
    Stage,
)
