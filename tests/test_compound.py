import unittest

from shader_nodes.ir import NodeKind
from shader_nodes.planner.graph_compiler import compile_graph

from .builders import FLOAT_SRC, SCALE_SRC, bound, edge, graph, graph_input, graph_output, node


def doubling_compound(inner_uniforms=None, wire_output=True):
    """src -> c(a) where c = inner(x = a) -> result."""
    edges = [
        edge('src', 'c', 'value', 'a'),
        edge('c_in', 'c_inner', 'a', 'x'),
    ]
    if wire_output:
        edges.append(edge('c_inner', 'c_out', 'y', 'result'))
    return graph(
        [
            node('src', FLOAT_SRC, outputs=[('value', 'float')]),
            node('c', kind=NodeKind.COMPOUND, inputs=[('a', 'float')], outputs=[('result', 'float')]),
            graph_input('c_in', [('a', 'float')], scope_id='c'),
            node('c_inner', SCALE_SRC, inputs=[('x', 'float')], outputs=[('y', 'float')],
                 scope_id='c', uniforms=inner_uniforms or {}),
            graph_output('c_out', 'float', port_id='result', scope_id='c'),
        ],
        edges,
    )


class TestCompoundBody(unittest.TestCase):
    def test_compound_compiles_to_single_function(self):
        result = compile_graph(doubling_compound(), 'c')
        self.assertEqual(result.pass_ids(), ['c'])
        fragment = result.passes[0].fragment_shader
        self.assertIn("// Inner Node: c_inner", fragment)
        self.assertIn("void node_c_node_c_inner_run(vec2 uv, float x, out float y)", fragment)
        self.assertIn("void node_c_run(vec2 uv, float a, out float result) {", fragment)
        self.assertIn("  node_c_node_c_inner_run(uv, a, out_c_inner_y);", fragment)
        self.assertIn("  result = out_c_inner_y;", fragment)

    def test_compound_call_in_main(self):
        fragment = compile_graph(doubling_compound(), 'c').passes[0].fragment_shader
        self.assertIn("  float out_c_result;\n  node_c_run(uv, out_src_value, out_c_result);", fragment)
        self.assertIn("fragColor = vec4(vec3(out_c_result), 1.0);", fragment)

    def test_inner_nodes_are_not_outer_calls(self):
        fragment = compile_graph(doubling_compound(), 'c').passes[0].fragment_shader
        main = fragment[fragment.index("void main()"):]
        self.assertNotIn("c_inner", main)
        self.assertNotIn("c_in_", main)

    def test_unwired_output_gets_default(self):
        fragment = compile_graph(doubling_compound(wire_output=False), 'c').passes[0].fragment_shader
        self.assertIn("  result = 0.0;", fragment)

    def test_inner_bound_values_declared_in_pass(self):
        g = graph(
            [
                node('c', kind=NodeKind.COMPOUND, outputs=[('result', 'float')]),
                node('c_inner', SCALE_SRC, inputs=[('x', 'float')], outputs=[('y', 'float')],
                     scope_id='c', uniforms={'x': bound('float', 0.3)}),
                graph_output('c_out', 'float', port_id='result', scope_id='c'),
            ],
            [edge('c_inner', 'c_out', 'y', 'result')],
        )
        render_pass = compile_graph(g, 'c').passes[0]
        self.assertIn("uniform float u_c_inner_x;", render_pass.fragment_shader)
        self.assertIn("node_c_node_c_inner_run(uv, u_c_inner_x, out_c_inner_y);", render_pass.fragment_shader)
        self.assertEqual(render_pass.uniforms['u_c_inner_x'].value, 0.3)


class TestNesting(unittest.TestCase):
    def test_nested_compounds(self):
        g = graph(
            [
                node('o', kind=NodeKind.COMPOUND, outputs=[('v', 'float')]),
                node('c', kind=NodeKind.COMPOUND, outputs=[('y', 'float')], scope_id='o'),
                node('k', FLOAT_SRC, outputs=[('value', 'float')], scope_id='c'),
                graph_output('c_out', 'float', port_id='y', scope_id='c'),
                graph_output('o_out', 'float', port_id='v', scope_id='o'),
            ],
            [edge('k', 'c_out', 'value', 'y'), edge('c', 'o_out', 'y', 'v')],
        )
        result = compile_graph(g, 'o')
        self.assertIsNone(result.error)
        fragment = result.passes[0].fragment_shader
        self.assertIn("void node_o_node_c_node_k_run(vec2 uv, out float value)", fragment)
        self.assertIn("void node_o_node_c_run(vec2 uv, out float y)", fragment)
        self.assertIn("  v = out_c_y;", fragment)
        self.assertIn("void node_o_run(vec2 uv, out float v)", fragment)

    def test_self_containing_compound_is_an_error(self):
        g = graph([node('c', kind=NodeKind.COMPOUND, outputs=[('y', 'float')], scope_id='c')])
        result = compile_graph(g, 'c')
        self.assertFalse(result.ok)
        self.assertIn("contains itself", result.error)
        self.assertEqual(result.passes, [])


if __name__ == "__main__":
    unittest.main()
