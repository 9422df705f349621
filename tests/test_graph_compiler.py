"""
Tests for GraphCompiler caching and uniform refresh.
"""

import unittest
from dataclasses import replace

from shader_nodes.codegen.uniforms import apply_uniform_overrides, build_uniform_overrides
from shader_nodes.config import CompilerConfig
from shader_nodes.ir import GLSLType, NodeKind
from shader_nodes.planner.graph_compiler import GraphCompiler, LRUCache, compile_graph, structural_hash
from shader_nodes.planner.passes import UniformBinding

from .builders import FLOAT_SRC, bound, edge, graph, node

GAIN_SRC = "void run(vec2 uv, float x, float gain, out float y) { y = x * gain; }"
VALUES_SRC = "void run(vec2 uv, float values[4], out float total) { total = values[0]; }"


def gain_graph(gain=0.5, source=GAIN_SRC, position=None, label=None):
    return graph(
        [
            node('k', FLOAT_SRC, outputs=[('value', 'float')]),
            node('n', source, inputs=[('x', 'float'), ('gain', 'float')], outputs=[('y', 'float')],
                 uniforms={'gain': bound('float', gain)}, position=position, label=label or 'n'),
        ],
        [edge('k', 'n', 'value', 'x')],
    )


def values_graph(values):
    return graph([node('a', VALUES_SRC, inputs=[('values', 'float[]')], outputs=[('total', 'float')],
                       uniforms={'values': bound('float[]', values)})])


def kernel_graph(kernel):
    return graph(
        [
            node('g', kind=NodeKind.GLOBAL_VAR, output_type=GLSLType.FLOAT_ARRAY,
                 global_name='u_kernel', global_value=kernel),
            node('a', VALUES_SRC, inputs=[('values', 'float[]')], outputs=[('total', 'float')]),
        ],
        [edge('g', 'a', None, 'values')],
    )


class TestLRUCache(unittest.TestCase):
    def test_evicts_least_recently_used(self):
        cache = LRUCache(capacity=2)
        cache.put('a', 1)
        cache.put('b', 2)
        cache.get('a')
        cache.put('c', 3)
        self.assertIsNone(cache.get('b'))
        self.assertEqual(cache.get('a'), 1)
        self.assertEqual(cache.get('c'), 3)

    def test_stats(self):
        cache = LRUCache(capacity=4)
        cache.put('a', 1)
        cache.get('a')
        cache.get('missing')
        stats = cache.stats()
        self.assertEqual(stats['hits'], 1)
        self.assertEqual(stats['misses'], 1)
        self.assertEqual(stats['hit_rate'], 50.0)

    def test_invalidate(self):
        cache = LRUCache()
        cache.put('a', 1)
        self.assertTrue(cache.invalidate('a'))
        self.assertFalse(cache.invalidate('a'))
        self.assertEqual(len(cache), 0)


class TestStructuralHash(unittest.TestCase):
    def test_values_and_layout_ignored(self):
        base = structural_hash(gain_graph(), 'n')
        self.assertEqual(base, structural_hash(gain_graph(gain=0.9), 'n'))
        self.assertEqual(base, structural_hash(gain_graph(position=(10.0, 20.0)), 'n'))
        self.assertEqual(base, structural_hash(gain_graph(label='Renamed'), 'n'))

    def test_structure_changes_hash(self):
        base = structural_hash(gain_graph(), 'n')
        edited = GAIN_SRC.replace("x * gain", "x - gain")
        self.assertNotEqual(base, structural_hash(gain_graph(source=edited), 'n'))
        self.assertNotEqual(base, structural_hash(gain_graph(), 'k'))
        self.assertNotEqual(base, structural_hash(gain_graph(), 'n', 'y2'))

        retyped = gain_graph().replace_nodes({
            'n': replace(gain_graph().get_node('n'), uniforms={'gain': bound('vec2', (1.0, 1.0))}),
        })
        self.assertNotEqual(base, structural_hash(retyped, 'n'))

    def test_edges_change_hash(self):
        g = gain_graph()
        rewired = g.connect(edge('k', 'n', 'value', 'gain'))
        self.assertNotEqual(structural_hash(g, 'n'), structural_hash(rewired, 'n'))

    def test_inferred_array_capacity_changes_hash(self):
        base = structural_hash(values_graph((1.0, 2.0, 3.0, 4.0)), 'a')
        self.assertEqual(base, structural_hash(values_graph((5.0, 6.0, 7.0, 8.0)), 'a'))
        self.assertNotEqual(base, structural_hash(values_graph((1.0,) * 8), 'a'))

    def test_global_array_capacity_changes_hash(self):
        self.assertNotEqual(structural_hash(kernel_graph((1.0, 2.0, 1.0)), 'a'),
                            structural_hash(kernel_graph((1.0, 4.0, 6.0, 4.0, 1.0)), 'a'))


class TestGraphCompiler(unittest.TestCase):
    def setUp(self):
        self.compiler = GraphCompiler()

    def test_repeat_compile_hits_cache(self):
        first = self.compiler.compile(gain_graph(), 'n')
        second = self.compiler.compile(gain_graph(), 'n')
        self.assertFalse(first.stats.cache_hit)
        self.assertTrue(second.stats.cache_hit)
        self.assertEqual(first.pass_ids(), second.pass_ids())
        self.assertEqual(self.compiler.stats()['misses'], 1)

    def test_moving_nodes_hits_cache(self):
        self.compiler.compile(gain_graph(), 'n')
        self.assertTrue(self.compiler.compile(gain_graph(position=(5.0, 5.0)), 'n').stats.cache_hit)

    def test_value_edit_refreshes_uniforms(self):
        first = self.compiler.compile(gain_graph(gain=0.5), 'n')
        second = self.compiler.compile(gain_graph(gain=0.9), 'n')
        self.assertTrue(second.stats.cache_hit)
        self.assertEqual(second.passes[0].uniforms['u_n_gain'].value, 0.9)
        self.assertEqual(second.passes[0].fragment_shader, first.passes[0].fragment_shader)
        # The cached result keeps its own values
        self.assertEqual(first.passes[0].uniforms['u_n_gain'].value, 0.5)

    def test_array_resize_recompiles(self):
        self.compiler.compile(values_graph((1.0, 2.0, 3.0, 4.0)), 'a')
        resized = values_graph(tuple(float(i) for i in range(8)))
        result = self.compiler.compile(resized, 'a')
        self.assertFalse(result.stats.cache_hit)
        fragment = result.passes[0].fragment_shader
        self.assertIn("uniform float u_a_values[8];", fragment)
        self.assertEqual(fragment, compile_graph(resized, 'a').passes[0].fragment_shader)
        self.assertEqual(len(result.passes[0].uniforms['u_a_values'].value), 8)

    def test_source_edit_recompiles(self):
        self.compiler.compile(gain_graph(), 'n')
        edited = "void run(vec2 uv, float x, float gain, out float y) { y = x + gain; }"
        result = self.compiler.compile(gain_graph(source=edited), 'n')
        self.assertFalse(result.stats.cache_hit)
        self.assertIn("y = x + gain;", result.passes[0].fragment_shader)
        self.assertEqual(self.compiler.stats()['misses'], 2)

    def test_failures_not_cached(self):
        self.compiler.compile(graph([]), 'ghost')
        result = self.compiler.compile(graph([]), 'ghost')
        self.assertFalse(result.ok)
        self.assertFalse(result.stats.cache_hit)
        self.assertEqual(self.compiler.stats()['size'], 0)

    def test_invalidate_and_clear(self):
        g = gain_graph()
        self.compiler.compile(g, 'n')
        self.assertTrue(self.compiler.invalidate(g, 'n'))
        self.assertFalse(self.compiler.compile(g, 'n').stats.cache_hit)
        self.compiler.clear_cache()
        self.assertEqual(self.compiler.stats()['size'], 0)

    def test_capacity_from_config(self):
        compiler = GraphCompiler(CompilerConfig(cache_capacity=1))
        compiler.compile(gain_graph(), 'n')
        compiler.compile(gain_graph(), 'k')
        self.assertFalse(compiler.compile(gain_graph(), 'n').stats.cache_hit)


class TestOverrides(unittest.TestCase):
    def test_overrides_cover_all_nodes(self):
        overrides = build_uniform_overrides(gain_graph(gain=0.25))
        self.assertEqual(overrides['u_n_gain'].value, 0.25)
        self.assertEqual(overrides['u_n_gain'].type, GLSLType.FLOAT)

    def test_type_mismatch_not_applied(self):
        passes = compile_graph(gain_graph(gain=0.5), 'n').passes
        refreshed = apply_uniform_overrides(passes, {'u_n_gain': UniformBinding(GLSLType.VEC2, (1.0, 1.0))})
        self.assertEqual(refreshed[0].uniforms['u_n_gain'].value, 0.5)


if __name__ == "__main__":
    unittest.main()
