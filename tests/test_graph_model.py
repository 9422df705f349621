import logging
import unittest
from dataclasses import replace

from shader_nodes.errors import CompilationError, NodeNotFoundError
from shader_nodes.ir import Edge, GLSLType, NodeKind, ShaderGraph
from shader_nodes.logger import LOGGER_NAME, get_logger, log_debug, log_error, log_info, log_warning, setup_logger
from shader_nodes.planner.graph_compiler import compile_graph

PAYLOAD = {
    'nodes': [
        {
            'id': 'noise',
            'type': 'shader',
            'position': {'x': 10, 'y': 20},
            'data': {
                'label': 'Noise',
                'glsl': 'void run(vec2 uv, float scale, out float value) { value = uv.x * scale; }',
                'inputs': [{'id': 'scale', 'type': 'float'}],
                'outputs': [{'id': 'value', 'name': 'Value', 'type': 'float'}],
                'outputType': 'float',
                'uniforms': {'scale': {'type': 'float', 'value': 2.0, 'widget': 'slider'}},
            },
        },
        {
            'id': 'grp_in',
            'type': 'graphInput',
            'data': {'scopeId': 'grp', 'inputs': [{'id': 'a', 'type': 'vec3'}]},
        },
        {
            'id': 'speed',
            'type': 'shader',
            'data': {'isGlobalVar': True, 'globalName': 'u_speed', 'outputType': 'float',
                     'uniforms': {'value': {'type': 'float', 'value': 1.5}}},
        },
        {
            'id': 'fx',
            'type': 'shader',
            'data': {'passes': [{'id': 'a', 'glsl': 'void run(vec2 uv, out vec4 c) {}', 'loop': 2,
                                 'pingPong': {'enabled': True, 'bufferName': 'trail'}}]},
        },
    ],
    'edges': [
        {'id': 'e1', 'source': 'speed', 'target': 'noise', 'targetHandle': 'scale'},
        {'id': 'e2', 'source': 'grp_in', 'target': 'noise', 'sourceHandle': 'a', 'targetHandle': 'scale'},
    ],
}


class TestFromDict(unittest.TestCase):
    def setUp(self):
        self.graph = ShaderGraph.from_dict(PAYLOAD)

    def test_standard_node(self):
        noise = self.graph.get_node('noise')
        self.assertEqual(noise.kind, NodeKind.STANDARD)
        self.assertEqual(noise.label, 'Noise')
        self.assertEqual(noise.outputs[0].name, 'Value')
        self.assertEqual(noise.inputs[0].name, 'scale')
        self.assertEqual(noise.uniforms['scale'].widget, 'slider')
        self.assertEqual(noise.position, (10, 20))

    def test_graph_input_ports_become_outputs(self):
        proxy = self.graph.get_node('grp_in')
        self.assertEqual(proxy.kind, NodeKind.GRAPH_INPUT)
        self.assertEqual(proxy.scope_id, 'grp')
        self.assertEqual(proxy.inputs, ())
        self.assertEqual(proxy.outputs[0].type, GLSLType.VEC3)

    def test_global_value_from_uniforms(self):
        speed = self.graph.get_node('speed')
        self.assertEqual(speed.kind, NodeKind.GLOBAL_VAR)
        self.assertEqual(speed.global_uniform_name, 'u_speed')
        self.assertEqual(speed.global_value, 1.5)

    def test_multi_stage(self):
        fx = self.graph.get_node('fx')
        self.assertTrue(fx.is_multi_stage)
        stage = fx.stages[0]
        self.assertEqual(stage.loop, 2)
        self.assertEqual(stage.ping_pong.buffer_name, 'trail')

    def test_later_edge_supersedes(self):
        self.assertEqual(len(self.graph.edges), 1)
        self.assertEqual(self.graph.edge_into('noise', 'scale').source, 'grp_in')


class TestSnapshot(unittest.TestCase):
    def test_connect_returns_new_graph(self):
        g = ShaderGraph.from_dict(PAYLOAD)
        rewired = g.connect(Edge('speed', 'noise', None, 'scale'))
        self.assertEqual(g.edge_into('noise', 'scale').source, 'grp_in')
        self.assertEqual(rewired.edge_into('noise', 'scale').source, 'speed')

    def test_positions_do_not_affect_equality(self):
        g = ShaderGraph.from_dict(PAYLOAD)
        noise = g.get_node('noise')
        self.assertEqual(noise, replace(noise, position=(0.0, 0.0)))

    def test_require_node(self):
        g = ShaderGraph.from_dict(PAYLOAD)
        with self.assertRaises(NodeNotFoundError) as ctx:
            g.require_node('ghost', referenced_by='noise')
        self.assertIsInstance(ctx.exception, CompilationError)
        self.assertEqual(ctx.exception.node_id, 'ghost')

    def test_array_element_handles(self):
        self.assertEqual(Edge('a', 'b', None, 'weights__3').array_element(), ('weights', 3))
        self.assertIsNone(Edge('a', 'b', None, 'weights').array_element())
        self.assertIsNone(Edge('a', 'b').array_element())


class TestLogger(unittest.TestCase):
    def tearDown(self):
        logger = get_logger()
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_setup_installs_single_handler(self):
        setup_logger(logging.DEBUG)
        logger = setup_logger(logging.DEBUG)
        self.assertEqual(logger.name, LOGGER_NAME)
        self.assertEqual(len(logger.handlers), 1)
        self.assertFalse(logger.propagate)

    def test_shorthand_helpers(self):
        with self.assertLogs(LOGGER_NAME, level="DEBUG") as captured:
            log_debug("a")
            log_info("b")
            log_warning("c")
            log_error("d")
        self.assertEqual(captured.output, [
            "DEBUG:shader_nodes:a", "INFO:shader_nodes:b",
            "WARNING:shader_nodes:c", "ERROR:shader_nodes:d",
        ])

    def test_module_warnings_reach_package_logger(self):
        g = ShaderGraph.from_dict(PAYLOAD)
        with self.assertLogs(LOGGER_NAME, level="WARNING") as captured:
            compile_graph(g, "fx", "missing")
        self.assertTrue(any("shader_nodes.planner" in r.name for r in captured.records))


if __name__ == "__main__":
    unittest.main()
