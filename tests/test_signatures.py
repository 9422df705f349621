import unittest

from shader_nodes.errors import SignatureError
from shader_nodes.glsl.signatures import (
    extract_all_signatures,
    extract_shader_io,
    find_pass_dependencies,
    parse_metadata,
    require_signature,
)
from shader_nodes.ir.graph import Node
from shader_nodes.ir.types import GLSLType

OVERLOADED = """
//Item[Vector,2]
void run(vec2 uv, vec3 a, out vec3 result) { result = a; }

//Item[Scalar,1]
void run(vec2 uv, float a, out float result) { result = a; }
"""


class TestExtractSignatures(unittest.TestCase):
    def test_inputs_and_outputs(self):
        sigs = extract_all_signatures("void run(vec2 uv, in float a, vec3 b, out vec4 color) {}")
        self.assertEqual(len(sigs), 1)
        sig = sigs[0]
        self.assertEqual([(p.id, p.type) for p in sig.inputs],
                         [('a', GLSLType.FLOAT), ('b', GLSLType.VEC3)])
        self.assertEqual([(p.id, p.type) for p in sig.outputs], [('color', GLSLType.VEC4)])

    def test_uv_parameter_is_not_a_port(self):
        sig = extract_all_signatures("void run(vec2 uv, out float v) {}")[0]
        self.assertEqual(sig.inputs, [])

    def test_array_parameters(self):
        sig = extract_all_signatures("void run(vec2 uv, float w[8], vec3[] pts, out float t) {}")[0]
        self.assertEqual([(p.id, p.type) for p in sig.inputs],
                         [('w', GLSLType.FLOAT_ARRAY), ('pts', GLSLType.VEC3_ARRAY)])

    def test_inout_is_output(self):
        sig = extract_all_signatures("void run(vec2 uv, inout vec4 acc) {}")[0]
        self.assertEqual([p.id for p in sig.outputs], ['acc'])

    def test_commented_out_entry_ignored(self):
        code = "// void run(vec2 uv, float a, out float b) {}\n/* void run(vec2 uv) {} */"
        self.assertEqual(extract_all_signatures(code), [])

    def test_metadata_label_and_order(self):
        sigs = extract_all_signatures(OVERLOADED)
        self.assertEqual([(s.label, s.order, s.original_index) for s in sigs],
                         [('Vector', 2, 0), ('Scalar', 1, 1)])

    def test_plain_comment_is_not_metadata(self):
        sig = extract_all_signatures("// Item: blurs things\nvoid run(vec2 uv, out vec4 c) {}")[0]
        self.assertIsNone(sig.label)
        self.assertIsNone(sig.order)

    def test_stored_ports_round_trip(self):
        stored = Node.from_dict({
            'id': 'n',
            'data': {
                'glsl': "void run(vec2 uv, float amount, vec4 pts[], out vec3 color) {}",
                'inputs': [{'id': 'amount', 'type': 'float'}, {'id': 'pts', 'type': 'vec4[]'}],
                'outputs': [{'id': 'color', 'type': 'vec3'}],
            },
        })
        io = extract_shader_io(stored.source)
        self.assertEqual(tuple(io.inputs), stored.inputs)
        self.assertEqual(tuple(io.outputs), stored.outputs)

    def test_unknown_type_parameter_skipped(self):
        sig = extract_all_signatures("void run(vec2 uv, Light l, float k, out float v) {}")[0]
        self.assertEqual([p.id for p in sig.inputs], ['k'])


class TestShaderIO(unittest.TestCase):
    def test_default_overload_by_order(self):
        io = extract_shader_io(OVERLOADED)
        self.assertTrue(io.valid)
        self.assertTrue(io.is_overloaded)
        self.assertEqual(io.label, 'Scalar')
        self.assertEqual(io.inputs[0].type, GLSLType.FLOAT)

    def test_no_entry_is_invalid(self):
        io = extract_shader_io("float helper(float x) { return x; }")
        self.assertFalse(io.valid)
        self.assertEqual(io.inputs, [])

    def test_dependency_textures_are_not_ports(self):
        code = ("void run(vec2 uv, sampler2D u_prevPass, sampler2D u_previousFrame, float k, out vec4 c) {"
                " c = texture(u_pass_seed, uv); }")
        io = extract_shader_io(code)
        self.assertEqual([p.id for p in io.inputs], ['k'])
        self.assertEqual([d.kind for d in io.pass_dependencies], ['specific', 'prev'])

    def test_pass_dependencies(self):
        deps = find_pass_dependencies(
            "c = texture(u_pass_seed, uv) + texture(u_pass_seed, uv) + texture(u_firstPass, uv);")
        self.assertEqual([(d.uniform_name, d.pass_id, d.kind) for d in deps],
                         [('u_pass_seed', 'seed', 'specific'), ('u_firstPass', '__first__', 'first')])

    def test_dependencies_in_comments_ignored(self):
        self.assertEqual(find_pass_dependencies("// texture(u_prevPass, uv)"), [])


class TestMetadata(unittest.TestCase):
    def test_item_forms(self):
        self.assertEqual(parse_metadata("//Item[Soft, 3]"), ('Soft', 3))
        self.assertEqual(parse_metadata("//[Item(Hard)]"), ('Hard', 0))
        self.assertEqual(parse_metadata("#Item[Mixed,1]"), ('Mixed', 1))
        self.assertIsNone(parse_metadata("#define X 1"))

    def test_require_signature_raises(self):
        with self.assertRaises(SignatureError) as ctx:
            require_signature("float x;", node_id='n1')
        self.assertEqual(ctx.exception.node_id, 'n1')
        report = ctx.exception.format_with_source()
        self.assertIn("--- NODE SOURCE ---", report)
        self.assertIn("001: float x;", report)


if __name__ == "__main__":
    unittest.main()
