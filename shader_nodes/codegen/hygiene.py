"""
Symbol hygiene for concatenated node bodies.

Independently authored bodies end up in one program, so every helper function
and constant a body declares is prefixed with its node id, and the ``run``
entry becomes ``node_<id>_run``.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence

from ..glsl.lexer import strip_comments
from ..ir.graph import BoundValue, Node, Port
from ..ir.types import GLSLType
from ..ir.values import DEFAULT_ARRAY_LENGTH, resolve_array_len

GLSL_BUILTINS = frozenset({
    'radians', 'degrees', 'sin', 'cos', 'tan', 'asin', 'acos', 'atan',
    'pow', 'exp', 'log', 'exp2', 'log2', 'sqrt', 'inversesqrt',
    'abs', 'sign', 'floor', 'ceil', 'fract', 'mod', 'min', 'max', 'clamp',
    'mix', 'step', 'smoothstep', 'length', 'distance', 'dot', 'cross',
    'normalize', 'faceforward', 'reflect', 'refract', 'matrixCompMult',
    'lessThan', 'lessThanEqual', 'greaterThan', 'greaterThanEqual',
    'equal', 'notEqual', 'any', 'all', 'not', 'texture', 'texture2D',
    'textureLod', 'textureProj', 'dFdx', 'dFdy', 'fwidth',
    'main', 'run',
})

_VALUE_TYPES = "|".join(sorted(
    (t.value for t in GLSLType if not t.is_array() and not t.is_sampler()),
    key=len, reverse=True))

_FUNC_DECL = re.compile(rf'^\s*(?:{_VALUE_TYPES}|void)\s+([A-Za-z0-9_]+)\s*\(', re.MULTILINE)
_CONST_DECL = re.compile(rf'\bconst\s+(?:{_VALUE_TYPES})\s+([A-Za-z0-9_]+)\s*=')
_RUN_DECL = re.compile(r'\bvoid\s+run\s*\(')


@dataclass(frozen=True)
class IndexLocal:
    """``int <input>_index = clamp(<uniform>, 0, <max>);`` injected into run."""
    local_name: str
    uniform_name: str
    max_index: int


def declared_helpers(code: str) -> List[str]:
    names = []
    for match in _FUNC_DECL.finditer(strip_comments(code)):
        name = match.group(1)
        if name not in GLSL_BUILTINS and name not in names:
            names.append(name)
    return names


def declared_consts(code: str) -> List[str]:
    names = []
    for match in _CONST_DECL.finditer(strip_comments(code)):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def rename_locals(code: str, prefix: str) -> str:
    """Prefix helper functions and constants declared in a body."""
    for name in declared_consts(code):
        code = re.sub(r'\b' + re.escape(name) + r'\b', f"{prefix}_{name}", code)
    for name in declared_helpers(code):
        code = re.sub(r'\b' + re.escape(name) + r'\s*\(', f"{prefix}_{name}(", code)
    return code


def _array_len(port: Port, uniforms: Mapping[str, BoundValue], fallback: int) -> int:
    return resolve_array_len(port.type, uniforms.get(port.id), fallback)


def rewrite_run_array_sizes(code: str, inputs: Sequence[Port], uniforms: Mapping[str, BoundValue],
                            fallback: int = DEFAULT_ARRAY_LENGTH) -> str:
    """Set the declared size of array parameters in the run signature."""
    match = _RUN_DECL.search(code)
    if not match:
        return code

    start = match.start()
    depth = 1
    i = match.end()
    while i < len(code) and depth > 0:
        if code[i] == '(':
            depth += 1
        elif code[i] == ')':
            depth -= 1
        i += 1
    if depth != 0:
        return code

    sig = code[start:i]
    for port in inputs:
        if not port.type.is_array():
            continue
        base = re.escape(str(port.type.element_type()))
        length = _array_len(port, uniforms, fallback)
        pattern = re.compile(r'(\b' + base + r'\s+' + re.escape(port.id) + r'\s*\[)\s*[^\]]*\s*(\])')
        sig = pattern.sub(lambda m: f"{m.group(1)}{length}{m.group(2)}", sig)
    return code[:start] + sig + code[i:]


def fallback_run(run_name: str) -> str:
    return f"void {run_name}(vec2 uv, out vec4 out_fallback) {{ out_fallback = vec4(0.0); }}"


def rename_entry(code: str, run_name: str) -> str:
    """Rename ``void run(``; bodies without one get a fallback that outputs black."""
    if _RUN_DECL.search(code):
        return _RUN_DECL.sub(f"void {run_name}(", code)
    return fallback_run(run_name)


def index_locals_for(node: Node, fallback: int = DEFAULT_ARRAY_LENGTH) -> List[IndexLocal]:
    locals_ = []
    for port in node.inputs:
        if not port.type.is_array():
            continue
        length = _array_len(port, node.uniforms, fallback)
        locals_.append(IndexLocal(
            local_name=f"{port.id}_index",
            uniform_name=f"{node.uniform_name(port.id)}_index",
            max_index=max(0, length - 1),
        ))
    return locals_


def inject_index_locals(code: str, run_name: str, locals_: Iterable[IndexLocal]) -> str:
    locals_ = list(locals_)
    if not locals_:
        return code
    injection = "\n".join(
        f"  int {l.local_name} = clamp({l.uniform_name}, 0, {l.max_index});" for l in locals_)
    pattern = re.compile(r'\bvoid\s+' + re.escape(run_name) + r'\s*\([^\)]*\)\s*\{')
    return pattern.sub(lambda m: f"{m.group(0)}\n{injection}\n", code)


def prepare_body(node: Node, source: str, fallback: int = DEFAULT_ARRAY_LENGTH) -> str:
    """Full hygiene pass for one node body."""
    code = rename_locals(source, f"node_{node.clean_id}")
    code = rewrite_run_array_sizes(code, node.inputs, node.uniforms, fallback)
    code = rename_entry(code, node.run_name)
    return inject_index_locals(code, node.run_name, index_locals_for(node, fallback))


def function_signature(name: str, inputs: Sequence[Port] = (), outputs: Sequence[Port] = (),
                       uniforms: Optional[Mapping[str, BoundValue]] = None,
                       fallback: int = DEFAULT_ARRAY_LENGTH) -> str:
    """``void name(vec2 uv, <inputs>, out <outputs>)``."""
    uniforms = uniforms or {}
    args = ['vec2 uv']
    for port in inputs:
        if port.type.is_array():
            args.append(f"{port.type.element_type()} {port.id}[{_array_len(port, uniforms, fallback)}]")
        else:
            args.append(f"{port.type} {port.id}")
    for port in outputs:
        if port.type.is_array():
            args.append(f"out {port.type.element_type()} {port.id}[{fallback}]")
        else:
            args.append(f"out {port.type} {port.id}")
    return f"void {name}({', '.join(args)})"


def sanitize_id_for_glsl(raw_id: str) -> str:
    """Collapse an arbitrary id into a GLSL-safe identifier fragment."""
    cleaned = re.sub(r'[^a-zA-Z0-9]+', '_', raw_id or '').strip('_')
    if not cleaned:
        return 'p'
    if cleaned[0].isdigit():
        return f"p_{cleaned}"
    return cleaned
