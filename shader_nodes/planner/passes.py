from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..ir.graph import PingPongConfig
from ..ir.types import GLSLType


@dataclass
class UniformBinding:
    """Typed value of one uniform; samplers carry a texture reference."""
    type: GLSLType
    value: Any = None


@dataclass
class RenderPass:
    """
    One generated program plus its bindings, rendered to its own target.

    input_texture_uniforms maps the consumer key ('<node>_<port>' or a
    dependency name such as 'u_prevPass') to the sampler uniform carrying it;
    texture_bindings maps each sampler uniform to the id of the pass that
    produces it, for host-side binding.
    """
    id: str
    vertex_shader: str
    fragment_shader: str
    uniforms: Dict[str, UniformBinding] = field(default_factory=dict)
    output_to: str = "FBO"
    input_texture_uniforms: Dict[str, str] = field(default_factory=dict)
    texture_bindings: Dict[str, str] = field(default_factory=dict)
    ping_pong: Optional[PingPongConfig] = None
    loop_count: Optional[int] = None
    loop_index: Optional[int] = None

    def __repr__(self):
        loop = f" | loop {self.loop_index}/{self.loop_count}" if self.loop_count else ""
        return f"<RenderPass {self.id} | U:{len(self.uniforms)} T:{len(self.texture_bindings)}{loop}>"


@dataclass
class CompileStats:
    duration_ms: float = 0.0
    pass_count: int = 0
    cycle_breaks: int = 0
    cache_hit: bool = False


@dataclass
class CompilationResult:
    """All passes in dependency order, or an error with no passes."""
    passes: List[RenderPass] = field(default_factory=list)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    stats: CompileStats = field(default_factory=CompileStats)

    @property
    def ok(self) -> bool:
        return self.error is None

    def pass_ids(self) -> List[str]:
        return [p.id for p in self.passes]

    def get_pass(self, pass_id: str) -> Optional[RenderPass]:
        for p in self.passes:
            if p.id == pass_id:
                return p
        return None
