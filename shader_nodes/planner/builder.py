import logging
from typing import Dict, Iterable, List, Optional

from ..codegen.glsl import VERTEX_SHADER, ShaderGenerator
from ..codegen.hygiene import sanitize_id_for_glsl
from ..codegen.shader_context import PassContext
from ..config import CompilerConfig, resolve_config
from ..ir.graph import Node, ShaderGraph
from .analysis import collect_local_subgraph
from .passes import RenderPass
from .stages import StagePlanner

logger = logging.getLogger(__name__)


def pass_key(node: Node, output_port: Optional[str] = None) -> str:
    """``<id>`` for the default output, ``<id>::<port>`` for any other."""
    port = node.output_port(output_port)
    if port.id == node.default_output().id:
        return node.id
    return f"{node.id}::{port.id}"


def texture_uniform_name(pass_id: str) -> str:
    return f"u_pass_{sanitize_id_for_glsl(pass_id)}_tex"


class PassBuilder:
    """
    Plans render passes on demand, dependencies first.

    Each requested (node, output) yields at most one pass per build; a
    request that re-enters a pass still being planned is answered with its
    id without recursing, so the texture reads the previous frame.
    """

    def __init__(self, graph: ShaderGraph, config: Optional[CompilerConfig] = None):
        self.graph = graph
        self.config = resolve_config(config)
        self.passes: List[RenderPass] = []
        self.warnings: List[str] = []
        self.cycle_breaks = 0
        self._generated: Dict[str, str] = {}
        self._active: List[str] = []
        self._uniform_owner: Dict[str, str] = {}
        self._stages = StagePlanner(self)

    # ------------------------------------------------------------------
    # Bookkeeping shared with StagePlanner

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def is_generated(self, key: str) -> bool:
        return key in self._generated

    def generated_id(self, key: str) -> str:
        return self._generated[key]

    def is_active(self, key: str) -> bool:
        return key in self._active

    def enter(self, key: str) -> None:
        self._active.append(key)

    def leave(self, key: str) -> None:
        self._active.remove(key)

    def break_cycle(self, key: str) -> None:
        self.warn(f"Pass Cycle detected at pass {key}. Breaking loop.")
        self.cycle_breaks += 1

    def texture_uniform(self, pass_id: str) -> str:
        if not pass_id:
            return self.config.empty_texture
        name = texture_uniform_name(pass_id)
        self._uniform_owner.setdefault(name, pass_id)
        return name

    def bindings_for(self, uniforms: Iterable[str]) -> Dict[str, str]:
        return {u: self._uniform_owner[u] for u in uniforms if u in self._uniform_owner}

    def add_passes(self, passes: Iterable[RenderPass], key: str, final_id: str) -> None:
        for render_pass in passes:
            self.passes.append(render_pass)
            self._generated.setdefault(render_pass.id, render_pass.id)
        self._generated[key] = final_id

    # ------------------------------------------------------------------

    def generate_pass(self, node_id: str, output_port: Optional[str] = None,
                      target_stage: Optional[str] = None) -> str:
        """Plan the pass producing a node output; returns the pass id to sample."""
        node = self.graph.require_node(node_id)

        if node.is_multi_stage:
            return self._stages.generate(node, target_stage)

        key = pass_key(node, output_port)
        if key in self._generated:
            return self._generated[key]
        if key in self._active:
            self.break_cycle(key)
            return key

        self.enter(key)
        try:
            render_pass = self._build_pass(node, key, output_port)
        finally:
            self.leave(key)

        self.add_passes([render_pass], key, key)
        logger.debug(f"Planned {render_pass!r}")
        return key

    def _build_pass(self, node: Node, key: str, output_port: Optional[str]) -> RenderPass:
        local = collect_local_subgraph(
            self.graph, node.id,
            lambda source, port: self.texture_uniform(self.generate_pass(source.id, port)),
            self.warn,
        )
        self.cycle_breaks += local.cycle_breaks

        ctx = PassContext(self.graph, self.config,
                          local_ids=[n.id for n in local.order],
                          texture_inputs=local.texture_inputs,
                          warn=self.warn)
        fragment = ShaderGenerator(ctx).generate(local.order, node, node.output_port(output_port))

        return RenderPass(
            id=key,
            vertex_shader=VERTEX_SHADER,
            fragment_shader=fragment,
            uniforms=ctx.uniforms,
            input_texture_uniforms=dict(local.texture_inputs),
            texture_bindings=self.bindings_for(local.texture_inputs.values()),
        )
