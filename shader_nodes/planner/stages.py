"""
Multi-stage nodes: one pass per stage body.

Every incoming edge of a multi-stage node is a pass boundary. Inside the
bodies, ``u_pass_<stage>``, ``u_firstPass`` and ``u_prevPass`` name the
textures of sibling stages and are mapped to real sampler uniforms with
``#define`` lines.
"""

import logging
import re
from typing import TYPE_CHECKING, Dict, List, Optional

from ..codegen.emitters.types import sample_expr
from ..codegen.glsl import VERTEX_SHADER, build_header
from ..codegen.shader_context import PassContext
from ..codegen.uniforms import declare_stage_uniforms
from ..glsl.pragmas import resolve_loop_count, resolve_ping_pong, strip_custom_pragmas
from ..glsl.signatures import PREVIOUS_FRAME, PassDependency, extract_shader_io
from ..ir.graph import Node, Stage
from ..ir.types import GLSLType
from ..ir.values import resolve_array_len
from .loops import LOOP_COUNT_UNIFORM, LOOP_INDEX_UNIFORM, PREV_PASS, LoopPlan, unroll
from .passes import RenderPass, UniformBinding

if TYPE_CHECKING:
    from .builder import PassBuilder

logger = logging.getLogger(__name__)

_MAIN_DECL = re.compile(r'\bvoid\s+main\s*\(')


def stage_pass_id(node: Node, stage: Stage) -> str:
    return f"{node.id}_pass_{stage.id}"


class StagePlanner:
    """Expands multi-stage nodes for a PassBuilder."""

    def __init__(self, builder: "PassBuilder"):
        self.builder = builder

    def generate(self, node: Node, target_stage: Optional[str] = None) -> str:
        """
        Plan the stages of a node (or only target_stage).

        Returns the id of the last pass produced, which is what downstream
        consumers sample; '' when no stage matched.
        """
        builder = self.builder
        if target_stage:
            stages = [s for s in node.stages if s.id == target_stage]
            if not stages:
                builder.warn(f"Target pass \"{target_stage}\" not found in node {node.id}")
                return ''
        else:
            stages = list(node.stages)

        last_id = ''
        for stage in stages:
            pass_id = stage_pass_id(node, stage)
            if builder.is_generated(pass_id):
                last_id = builder.generated_id(pass_id)
                continue
            if builder.is_active(pass_id):
                builder.break_cycle(pass_id)
                last_id = pass_id
                continue

            builder.enter(pass_id)
            try:
                last_id = self._generate_stage(node, stage, pass_id, last_id)
            finally:
                builder.leave(pass_id)
        return last_id

    def _stage_dependencies(self, node: Node, deps: List[PassDependency]) -> Dict[str, str]:
        builder = self.builder
        stage_ids = [s.id for s in node.stages]
        textures: Dict[str, str] = {}
        for dep in deps:
            if dep.kind == 'specific':
                if dep.pass_id in stage_ids:
                    generated = self.generate(node, dep.pass_id)
                    textures[dep.uniform_name] = builder.texture_uniform(generated)
                else:
                    builder.warn(f"Pass dependency \"{dep.pass_id}\" not found in node {node.id}")
            elif dep.kind == 'first':
                generated = self.generate(node, stage_ids[0])
                textures[dep.uniform_name] = builder.texture_uniform(generated)
        return textures

    def _previous_texture(self, node: Node, previous_id: str, first_input: Optional[str],
                          uses_prev: bool) -> Optional[str]:
        config = self.builder.config
        if previous_id:
            return self.builder.texture_uniform(previous_id)
        if not uses_prev:
            return None
        if first_input:
            return first_input
        for port in node.inputs:
            bound = node.uniforms.get(port.id)
            if port.type == GLSLType.SAMPLER2D and bound is not None and bound.type == GLSLType.SAMPLER2D:
                return node.uniform_name(port.id)
        return config.empty_texture

    def _generate_stage(self, node: Node, stage: Stage, pass_id: str, previous_id: str) -> str:
        builder = self.builder
        graph = builder.graph
        config = builder.config

        io = extract_shader_io(stage.source)
        deps = io.pass_dependencies
        textures = self._stage_dependencies(node, deps)

        # All connected inputs arrive as textures
        first_input = None
        for edge in graph.incoming(node.id):
            if not edge.target_port:
                continue
            graph.require_node(edge.source, referenced_by=node.id)
            dependency_id = builder.generate_pass(edge.source, edge.source_port)
            uniform = builder.texture_uniform(dependency_id)
            textures[f"{node.id}_{edge.target_port}"] = uniform
            if first_input is None:
                first_input = uniform

        uses_prev = any(d.kind == 'prev' for d in deps)
        prev_texture = self._previous_texture(node, previous_id, first_input, uses_prev)
        if prev_texture:
            textures[PREV_PASS] = prev_texture

        plan = LoopPlan(pass_id, resolve_loop_count(stage))
        ping_pong = resolve_ping_pong(stage, node.id)

        code = build_header(config, stage=True)
        if plan.is_loop:
            code += f"uniform int {LOOP_INDEX_UNIFORM};\nuniform int {LOOP_COUNT_UNIFORM};\n"
        if ping_pong is not None:
            code += f"uniform sampler2D {PREVIOUS_FRAME};\n"

        node_uniform_names = {node.uniform_name(k) for k in node.uniforms if k != 'value'}
        declared = set()
        for uniform in textures.values():
            if uniform == config.empty_texture or uniform in node_uniform_names or uniform in declared:
                continue
            declared.add(uniform)
            code += f"uniform sampler2D {uniform};\n"

        for dep in deps:
            if dep.kind != 'prev' and dep.uniform_name in textures:
                code += f"#define {dep.uniform_name} {textures[dep.uniform_name]}\n"
        if PREV_PASS in textures:
            code += f"#define {PREV_PASS} {textures[PREV_PASS]}\n"

        code += "// Inject Node Uniforms\n"
        ctx = PassContext(graph, config, warn=builder.warn)
        defines = declare_stage_uniforms(node, ctx)
        for declaration, define in zip(ctx.uniform_lines, defines):
            code += f"{declaration}\n{define}\n"

        uniforms = dict(ctx.uniforms)
        for dep in deps:
            if dep.kind != 'prev' and dep.uniform_name in textures:
                uniforms[dep.uniform_name] = UniformBinding(GLSLType.SAMPLER2D, textures[dep.uniform_name])
        if PREV_PASS in textures:
            uniforms[PREV_PASS] = UniformBinding(GLSLType.SAMPLER2D, textures[PREV_PASS])

        code += f"\n{strip_custom_pragmas(stage.source)}\n"
        if not _MAIN_DECL.search(stage.source):
            args = ['vUv'] + [self._entry_argument(node, port, textures, ctx) for port in io.inputs]
            args.append('fragColor')
            code += f"\nvoid main() {{ run({', '.join(args)}); }}\n"

        template = RenderPass(
            id=pass_id,
            vertex_shader=VERTEX_SHADER,
            fragment_shader=code,
            uniforms=uniforms,
            input_texture_uniforms=textures,
            texture_bindings=builder.bindings_for(textures.values()),
            ping_pong=ping_pong,
        )
        iterations = unroll(template, plan, config, builder.texture_uniform)
        builder.add_passes(iterations, pass_id, plan.last_id)
        logger.debug(f"Stage {pass_id}: {len(iterations)} pass(es)")
        return plan.last_id

    def _entry_argument(self, node: Node, port, textures: Dict[str, str], ctx: PassContext) -> str:
        uniform = textures.get(f"{node.id}_{port.id}")
        if uniform:
            return sample_expr(uniform, port.type, coord='vUv')
        if port.id in node.uniforms:
            # Bound values are reachable by their bare id through #define
            return port.id
        if port.type.is_array():
            return ctx.default(port.type, resolve_array_len(port.type, None, ctx.array_fallback))
        return ctx.default(port.type)
