"""
GraphCompiler - Compiles node graphs to render passes with caching.

compile_graph is the single entry point: it plans every pass needed to
produce one node output and never raises for a malformed graph; the error
is reported on the CompilationResult instead.

Caching Strategy:
- Graph hash covers structure only (bodies, ports, edges, bound value types,
  array capacities)
- Compiled passes are cached by graph hash
- Value-only edits hit the cache and refresh uniform values in place
"""

import hashlib
import logging
import time
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, Optional

from ..codegen.uniforms import apply_uniform_overrides, build_uniform_overrides, declared_array_len
from ..config import CompilerConfig, resolve_config
from ..errors import CompilationError, PortNotFoundError
from ..ir.graph import NodeKind, ShaderGraph
from .builder import PassBuilder
from .passes import CompilationResult, CompileStats

logger = logging.getLogger(__name__)

NO_OUTPUT_ERROR = 'No output node selected.'


def compile_graph(graph: ShaderGraph, output_node_id: str, output_port: Optional[str] = None,
                  config: Optional[CompilerConfig] = None) -> CompilationResult:
    """
    Compile the graph into an ordered list of passes ending with the pass
    that renders output_node_id.

    Returns:
        CompilationResult with passes in dependency order, or an empty pass
        list and an error message.
    """
    start = time.perf_counter()
    if not output_node_id:
        return CompilationResult(error=NO_OUTPUT_ERROR)

    builder = PassBuilder(graph, config)
    try:
        node = graph.require_node(output_node_id)
        if output_port and not node.is_multi_stage and node.find_output(output_port) is None:
            raise PortNotFoundError(f"Output {output_port} not found on node {output_node_id}",
                                    node_id=output_node_id, port_id=output_port)
        if node.is_multi_stage:
            builder.generate_pass(output_node_id, target_stage=output_port)
        else:
            builder.generate_pass(output_node_id, output_port)
    except CompilationError as e:
        logger.error(f"Compilation failed: {e}")
        return CompilationResult(error=str(e), warnings=list(builder.warnings))

    duration_ms = (time.perf_counter() - start) * 1000.0
    logger.debug(f"Compiled {len(builder.passes)} pass(es) in {duration_ms:.2f}ms")
    return CompilationResult(
        passes=list(builder.passes),
        warnings=list(builder.warnings),
        stats=CompileStats(
            duration_ms=duration_ms,
            pass_count=len(builder.passes),
            cycle_breaks=builder.cycle_breaks,
        ),
    )


class LRUCache:
    """
    Least Recently Used cache with size limit.

    When capacity is exceeded, the least recently accessed items are evicted.
    """

    def __init__(self, capacity: int = 16):
        self.capacity = capacity
        self._cache: OrderedDict = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Get item from cache, marking it as recently used."""
        if key in self._cache:
            self._cache.move_to_end(key)
            self._hits += 1
            return self._cache[key]
        self._misses += 1
        return None

    def put(self, key: str, value: Any) -> None:
        """Add item to cache, evicting oldest if at capacity."""
        if key in self._cache:
            self._cache.move_to_end(key)
            self._cache[key] = value
            return
        if len(self._cache) >= self.capacity:
            self._cache.popitem(last=False)
        self._cache[key] = value

    def invalidate(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    def clear(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0
        return {
            'size': len(self._cache),
            'capacity': self.capacity,
            'hits': self._hits,
            'misses': self._misses,
            'hit_rate': hit_rate,
        }


def structural_hash(graph: ShaderGraph, output_node_id: str, output_port: Optional[str] = None,
                    config: Optional[CompilerConfig] = None) -> str:
    """
    Hash everything that changes generated code.

    Included: bodies, stages, node kinds, port ids/types, output types,
    scopes, global names, bound value presence/type, declared array
    capacities, edges, the requested output. Excluded: positions, labels,
    bound values.
    """
    array_fallback = resolve_config(config).default_array_length
    hasher = hashlib.sha256()
    hasher.update(f"target:{output_node_id}:{output_port or ''}".encode())

    for node in sorted(graph.nodes, key=lambda n: n.id):
        hasher.update(f"node:{node.id}:{node.kind.name}:{node.output_type}".encode())
        hasher.update(f"scope:{node.scope_id or ''}:global:{node.global_name or ''}".encode())
        hasher.update(f"src:{node.source}".encode())
        for port in node.inputs:
            hasher.update(f"in:{port.id}:{port.type}".encode())
        for port in node.outputs:
            hasher.update(f"out:{port.id}:{port.type}".encode())
        for key in sorted(node.uniforms):
            bound = node.uniforms[key]
            length = declared_array_len(bound.type, bound, bound.value, array_fallback)
            hasher.update(f"u:{key}:{bound.type}:{length}".encode())
        if node.kind == NodeKind.GLOBAL_VAR:
            length = declared_array_len(node.output_type, node.uniforms.get('value'),
                                        node.global_value, array_fallback)
            hasher.update(f"g:{length}".encode())
        for stage in node.stages:
            ping_pong = stage.ping_pong
            hasher.update(f"stage:{stage.id}:{stage.loop}:{ping_pong!r}".encode())
            hasher.update(stage.source.encode())

    for edge in graph.edges:
        hasher.update(
            f"edge:{edge.source}:{edge.source_port}:{edge.target}:{edge.target_port}".encode())

    return hasher.hexdigest()


class GraphCompiler:
    """
    Compiles graphs to passes with caching.

    Example:
        compiler = GraphCompiler()
        result = compiler.compile(graph, 'out')
        # Same structure with new slider values is served from cache
        result = compiler.compile(graph_with_new_values, 'out')
    """

    def __init__(self, config: Optional[CompilerConfig] = None):
        self.config = resolve_config(config)
        self._cache = LRUCache(capacity=self.config.cache_capacity)

    def compile(self, graph: ShaderGraph, output_node_id: str,
                output_port: Optional[str] = None) -> CompilationResult:
        graph_hash = structural_hash(graph, output_node_id, output_port, self.config)

        cached = self._cache.get(graph_hash)
        if cached is not None:
            logger.debug(f"Graph compile CACHE HIT (hash={graph_hash[:8]}...)")
            overrides = build_uniform_overrides(graph, self.config)
            return replace(
                cached,
                passes=apply_uniform_overrides(cached.passes, overrides),
                warnings=list(cached.warnings),
                stats=replace(cached.stats, cache_hit=True),
            )

        logger.debug(f"Graph compile CACHE MISS (hash={graph_hash[:8]}...)")
        result = compile_graph(graph, output_node_id, output_port, self.config)
        if result.ok:
            self._cache.put(graph_hash, result)
        return result

    def invalidate(self, graph: ShaderGraph, output_node_id: str,
                   output_port: Optional[str] = None) -> bool:
        """Drop the cached result for a graph; True if one was cached."""
        return self._cache.invalidate(structural_hash(graph, output_node_id, output_port, self.config))

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.debug("GraphCompiler cache cleared")

    def stats(self) -> Dict[str, Any]:
        return self._cache.stats()
