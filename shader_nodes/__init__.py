"""
shader_nodes - compile shader node graphs into GLSL ES render passes.

Typical use:

    from shader_nodes import ShaderGraph, compile_graph, run_type_inference

    graph = ShaderGraph.from_dict(payload)
    graph = run_type_inference(graph) or graph
    result = compile_graph(graph, 'output')
"""

from .config import CompilerConfig, DEFAULT_CONFIG
from .errors import (
    CompilationError,
    GraphResolutionError,
    InferenceError,
    NodeNotFoundError,
    PortNotFoundError,
    ShaderNodesError,
    SignatureError,
)
from .glsl import extract_all_signatures, extract_shader_io, strip_comments, tokenize
from .inference import run_type_inference
from .ir import BoundValue, Edge, GLSLType, Node, NodeKind, PingPongConfig, Port, ShaderGraph, Stage
from .codegen.uniforms import apply_uniform_overrides, build_uniform_overrides
from .planner.builder import PassBuilder, pass_key, texture_uniform_name
from .planner.graph_compiler import GraphCompiler, compile_graph, structural_hash
from .planner.passes import CompilationResult, CompileStats, RenderPass, UniformBinding

__version__ = "0.1.0"
