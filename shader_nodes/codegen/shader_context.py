from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..config import CompilerConfig, resolve_config
from ..ir.graph import Node, ShaderGraph
from ..ir.types import GLSLType
from ..planner.passes import UniformBinding
from .emitters.types import cast_expr, default_literal


class PassContext:
    """
    Context object passed to node emitters.
    Collects uniform declarations and bindings for one generated program.
    """
    def __init__(self,
                 graph: ShaderGraph,
                 config: Optional[CompilerConfig] = None,
                 local_ids: Iterable[str] = (),
                 texture_inputs: Optional[Dict[str, str]] = None,
                 warn: Optional[Callable[[str], None]] = None):
        self.graph = graph
        self.config = resolve_config(config)
        self.local_ids: Set[str] = set(local_ids)
        self.texture_inputs: Dict[str, str] = dict(texture_inputs or {})
        self.uniforms: Dict[str, UniformBinding] = {}
        self.uniform_lines: List[str] = []
        # Nodes whose outputs are already declared in main()
        self.emitted: Set[str] = set()
        self._warn = warn

    def warn(self, message: str) -> None:
        if self._warn is not None:
            self._warn(message)

    def is_local(self, node_id: str) -> bool:
        return node_id in self.local_ids

    def texture_for(self, node_id: str, port_id: str) -> Optional[str]:
        """Sampler uniform bound to an input across a pass boundary."""
        return self.texture_inputs.get(f"{node_id}_{port_id}")

    def declare_uniform(self, name: str, value_type: GLSLType, value: Any,
                        array_len: Optional[int] = None) -> bool:
        """Declare a uniform once; returns False if it already existed."""
        if name in self.uniforms:
            return False
        if value_type.is_array():
            self.uniform_lines.append(f"uniform {value_type.element_type()} {name}[{array_len}];")
        else:
            self.uniform_lines.append(f"uniform {value_type} {name};")
        self.uniforms[name] = UniformBinding(type=value_type, value=value)
        return True

    def default(self, value_type: GLSLType, array_len: Optional[int] = None) -> str:
        return default_literal(value_type, array_len,
                               empty_texture=self.config.empty_texture,
                               empty_cube_texture=self.config.empty_cube_texture)

    def cast(self, expr: str, from_type: GLSLType, to_type: GLSLType) -> str:
        return cast_expr(expr, from_type, to_type)

    def local_declaration(self, name: str, value_type: GLSLType) -> str:
        """Declaration line for an output variable inside a function body."""
        if value_type.is_array():
            return f"  {value_type.element_type()} {name}[{self.array_fallback}];"
        return f"  {value_type} {name};"

    @property
    def array_fallback(self) -> int:
        return self.config.default_array_length

    def node(self, node_id: str) -> Optional[Node]:
        return self.graph.get_node(node_id)
