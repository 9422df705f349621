import logging
from typing import Iterable, List, Tuple

from ..config import CompilerConfig
from ..ir.graph import Node, NodeKind, Port
from ..ir.types import GLSLType
from .emitters.registry import get_emitter
from .shader_context import PassContext
from .uniforms import declare_node_uniforms

logger = logging.getLogger(__name__)

VERTEX_SHADER = """#version 300 es
in vec2 position;
out vec2 vUv;
void main() {
  vUv = position * 0.5 + 0.5;
  gl_Position = vec4(position, 0.0, 1.0);
}"""


def build_header(config: CompilerConfig, texture_uniforms: Iterable[str] = (), stage: bool = False) -> str:
    """Fragment preamble shared by every pass."""
    lines = [
        f"#version {config.glsl_version}",
        f"precision {config.float_precision} float;",
        "in vec2 vUv;",
        "out vec4 fragColor;",
        "#define texture2D texture",
    ]
    if stage:
        lines.append("#define gl_FragColor fragColor")
    lines += [
        "",
        "uniform float u_time;",
        "uniform vec2 u_resolution;",
        f"uniform sampler2D {config.empty_texture};",
        f"uniform samplerCube {config.empty_cube_texture};",
        "",
        "// Shadertoy compatibility",
        "#define iTime u_time",
        "#define iResolution vec3(u_resolution, 1.0)",
    ]
    seen = {config.empty_texture}
    for name in texture_uniforms:
        if name not in seen:
            seen.add(name)
            lines.append(f"uniform sampler2D {name};")
    return "\n".join(lines) + "\n"


def empty_cube_anchor(config: CompilerConfig) -> str:
    """Header line after which per-pass sampler declarations can be inserted."""
    return f"uniform samplerCube {config.empty_cube_texture};\n"


class ShaderGenerator:
    """
    Generates a GLSL ES fragment shader for one pass.

    Nodes arrive in dependency order; each one contributes uniforms, a
    renamed function and a call inside main().
    """
    def __init__(self, ctx: PassContext):
        self.ctx = ctx

    def generate(self, order: List[Node], output: Node, output_port: Port) -> str:
        # 1. Uniforms
        for node in order:
            declare_node_uniforms(node, self.ctx)

        # 2. Functions
        functions = [get_emitter(node.kind).functions(node, self.ctx) for node in order]

        # 3. Main Function
        main = self._generate_main(order, output, output_port)

        sections = [
            build_header(self.ctx.config, self.ctx.texture_inputs.values()),
            "\n".join(self.ctx.uniform_lines),
            "",
            "".join(functions),
            main,
        ]
        return "\n".join(sections)

    def _final_value(self, output: Node, output_port: Port) -> Tuple[str, GLSLType]:
        if output.kind == NodeKind.GRAPH_OUTPUT:
            return output.output_var('result'), GLSLType.VEC4
        if output.kind == NodeKind.GLOBAL_VAR:
            return output.global_uniform_name, output.output_type
        return output.output_var(output_port.id), output_port.type

    def _generate_main(self, order: List[Node], output: Node, output_port: Port) -> str:
        lines = ["void main() {", "  vec2 uv = vUv;"]
        for node in order:
            lines.extend(get_emitter(node.kind).call(node, self.ctx))
            self.ctx.emitted.add(node.id)
        final_var, final_type = self._final_value(output, output_port)
        lines.append(f"  fragColor = {self.ctx.cast(final_var, final_type, GLSLType.VEC4)};")
        lines.append("}")
        return "\n".join(lines)
