import unittest

from shader_nodes.codegen.hygiene import (
    function_signature,
    prepare_body,
    rename_entry,
    rename_locals,
    rewrite_run_array_sizes,
    sanitize_id_for_glsl,
)
from shader_nodes.ir.graph import BoundValue
from shader_nodes.ir.types import GLSLType

from .builders import bound, node, port

HELPER_SRC = """float hash(vec2 p) { return fract(sin(dot(p, vec2(12.9898, 78.233))) * K); }
const float K = 43758.5453;
void run(vec2 uv, out float v) { v = hash(uv); }
"""


class TestRenaming(unittest.TestCase):
    def test_helpers_and_consts_prefixed(self):
        code = rename_locals(HELPER_SRC, "node_a")
        self.assertIn("float node_a_hash(vec2 p)", code)
        self.assertIn("v = node_a_hash(uv);", code)
        self.assertIn("const float node_a_K = 43758.5453;", code)
        self.assertIn(") * node_a_K)", code)

    def test_builtins_not_renamed(self):
        code = rename_locals("float mix(float a) { return a; }\nvoid run(vec2 uv) {}", "node_a")
        self.assertIn("float mix(", code)
        self.assertIn("void run(", code)

    def test_entry_renamed(self):
        self.assertEqual(rename_entry("void run(vec2 uv) {}", "node_x_run"), "void node_x_run(vec2 uv) {}")

    def test_missing_entry_gets_fallback(self):
        code = rename_entry("float f() { return 1.0; }", "node_x_run")
        self.assertEqual(code, "void node_x_run(vec2 uv, out vec4 out_fallback) { out_fallback = vec4(0.0); }")


class TestArrays(unittest.TestCase):
    def test_signature_capacity_rewritten(self):
        code = "void run(vec2 uv, float w[4], out float t) { t = w[0]; }"
        uniforms = {'w': BoundValue(GLSLType.FLOAT_ARRAY, (1.0,), widget_config={'arrayLength': 8})}
        rewritten = rewrite_run_array_sizes(code, [port('w', 'float[]')], uniforms)
        self.assertIn("float w[8]", rewritten)
        self.assertIn("t = w[0];", rewritten)

    def test_index_local_injected(self):
        n = node('a', "void run(vec2 uv, float w[4], out float t) { t = w[w_index]; }",
                 inputs=[('w', 'float[]')], outputs=[('t', 'float')],
                 uniforms={'w': bound('float[]', (1.0, 2.0, 3.0))})
        code = prepare_body(n, n.source)
        self.assertIn("void node_a_run(vec2 uv, float w[3], out float t) {\n"
                      "  int w_index = clamp(u_a_w_index, 0, 2);\n", code)


class TestNames(unittest.TestCase):
    def test_sanitize(self):
        self.assertEqual(sanitize_id_for_glsl("noise::b"), "noise_b")
        self.assertEqual(sanitize_id_for_glsl("9lives"), "p_9lives")
        self.assertEqual(sanitize_id_for_glsl("::"), "p")
        self.assertEqual(sanitize_id_for_glsl("ms_pass_a_loop2"), "ms_pass_a_loop2")

    def test_function_signature(self):
        sig = function_signature('run', [port('x'), port('w', 'vec2[]')], [port('c', 'vec4')], fallback=5)
        self.assertEqual(sig, "void run(vec2 uv, float x, vec2 w[5], out vec4 c)")


if __name__ == "__main__":
    unittest.main()
