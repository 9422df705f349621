"""
Entry-function signature extraction.

Every node body declares one or more ``void run(vec2 uv, ...)`` overloads.
Parameters qualified ``out``/``inout`` become output ports, everything else
becomes an input port. The leading ``uv`` coordinate is never a port.

Overloads can carry a metadata directive on the line before them, e.g.::

    //Item[Scalar,1]
    void run(vec2 uv, float x, out float y) { ... }

    //[Item(Vector, 0)]
    void run(vec2 uv, vec3 x, out vec3 y) { ... }

The default signature is the one with the lowest ``order`` (0 when absent),
ties broken by position in the body.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import SignatureError
from ..ir.graph import Port
from ..ir.types import GLSLType
from .lexer import Token, TokenKind, strip_comments, tokenize

logger = logging.getLogger(__name__)

ENTRY_KEYWORD = 'void'
ENTRY_NAME = 'run'
COORD_PARAM = 'uv'

# Reserved feedback texture of ping-pong stages
PREVIOUS_FRAME = 'u_previousFrame'
INTERNAL_INPUTS = frozenset({PREVIOUS_FRAME})

OUTPUT_QUALIFIERS = frozenset({'out', 'inout'})

_LEGACY_DIRECTIVE = re.compile(r'^(?:#|//)\[Item\s*\(\s*([A-Za-z0-9_]+)\s*(?:,\s*(\d+))?\s*\)\]')
_ITEM_DIRECTIVE = re.compile(r'^(?:#|//)Item\s*\[\s*([A-Za-z0-9_]+)\s*(?:,\s*(\d+))?\s*\]')

_NAMED_PASS = re.compile(r'\bu_pass_([A-Za-z0-9_]+)\b')
_FIRST_PASS = re.compile(r'\bu_firstPass\b')
_PREV_PASS = re.compile(r'\bu_prevPass\b')


@dataclass(frozen=True)
class PassDependency:
    """A texture reference to another stage found in a body."""
    uniform_name: str   # e.g. "u_pass_seed"
    pass_id: str        # e.g. "seed", "__first__", "__prev__"
    kind: str           # 'specific' | 'first' | 'prev'


@dataclass
class Signature:
    inputs: List[Port] = field(default_factory=list)
    outputs: List[Port] = field(default_factory=list)
    label: Optional[str] = None
    order: Optional[int] = None
    original_index: int = 0
    valid: bool = True

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.order or 0, self.original_index)


@dataclass
class ShaderIO:
    """Ports of the default signature plus whole-body pass dependencies."""
    inputs: List[Port] = field(default_factory=list)
    outputs: List[Port] = field(default_factory=list)
    is_overloaded: bool = False
    valid: bool = False
    label: Optional[str] = None
    order: Optional[int] = None
    original_index: Optional[int] = None
    pass_dependencies: List[PassDependency] = field(default_factory=list)


def parse_metadata(directive: str) -> Optional[Tuple[str, int]]:
    """(label, order) from a directive line, None if it is not metadata."""
    match = _ITEM_DIRECTIVE.match(directive) or _LEGACY_DIRECTIVE.match(directive)
    if not match:
        return None
    return match.group(1), int(match.group(2)) if match.group(2) else 0


def _parse_parameter(parts: List[str]) -> Optional[Tuple[bool, Port]]:
    """
    Parse one parameter group into (is_output, port).

    Returns None for the coordinate parameter and for groups that do not
    name a known type.
    """
    if len(parts) < 2:
        return None

    name = parts[-1]
    is_array = False

    # type[] name
    if '[' in parts and ']' in parts:
        open_idx = parts.index('[')
        close_idx = parts.index(']')
        if open_idx < close_idx < len(parts) - 1:
            is_array = True

    # type name[N] (the size is not tokenized)
    if name == ']':
        j = len(parts) - 2
        while j >= 0 and parts[j] != '[':
            j -= 1
        if j > 0:
            name = parts[j - 1]
            is_array = True

    if name == COORD_PARAM:
        return None

    is_output = any(p in OUTPUT_QUALIFIERS for p in parts)

    type_str = next((p for p in parts if GLSLType.is_known(p)), parts[-2])
    if is_array and not type_str.endswith('[]'):
        type_str += '[]'
    if not GLSLType.is_known(type_str):
        return None

    return is_output, Port(id=name, name=name, type=GLSLType(type_str))


def _metadata_before(tokens: List[Token], idx: int) -> Optional[Tuple[str, int]]:
    # Only the nearest directive counts; an unrelated '#define' hides older ones
    j = idx - 1
    while j >= 0:
        if tokens[j].kind == TokenKind.DIRECTIVE:
            return parse_metadata(tokens[j].value)
        j -= 1
    return None


def extract_all_signatures(code: str) -> List[Signature]:
    """All ``void run(`` signatures of a body, in source order."""
    if not code:
        return []

    tokens = tokenize(strip_comments(code))
    signatures: List[Signature] = []

    for i in range(len(tokens) - 2):
        if not (tokens[i].value == ENTRY_KEYWORD
                and tokens[i + 1].value == ENTRY_NAME
                and tokens[i + 2].value == '('):
            continue

        meta = _metadata_before(tokens, i)
        sig = Signature(original_index=len(signatures))
        if meta:
            sig.label, sig.order = meta

        groups: List[List[str]] = [[]]
        k = i + 3
        while k < len(tokens) and tokens[k].value != ')':
            if tokens[k].value == ',':
                groups.append([])
            else:
                groups[-1].append(tokens[k].value)
            k += 1

        for parts in groups:
            parsed = _parse_parameter(parts)
            if parsed is None:
                continue
            is_output, port = parsed
            (sig.outputs if is_output else sig.inputs).append(port)

        signatures.append(sig)

    return signatures


def find_pass_dependencies(code: str) -> List[PassDependency]:
    """Scan a whole body for named, first and previous pass references."""
    clean = strip_comments(code or '')
    deps: List[PassDependency] = []
    seen = set()
    for match in _NAMED_PASS.finditer(clean):
        uniform = f"u_pass_{match.group(1)}"
        if uniform not in seen:
            seen.add(uniform)
            deps.append(PassDependency(uniform, match.group(1), 'specific'))
    if _FIRST_PASS.search(clean):
        deps.append(PassDependency('u_firstPass', '__first__', 'first'))
    if _PREV_PASS.search(clean):
        deps.append(PassDependency('u_prevPass', '__prev__', 'prev'))
    return deps


def extract_shader_io(code: str) -> ShaderIO:
    """Ports of the default overload; dependency textures are not ports."""
    signatures = extract_all_signatures(code)
    deps = find_pass_dependencies(code)

    if not signatures:
        return ShaderIO(pass_dependencies=deps)

    best = min(signatures, key=lambda s: s.sort_key)
    excluded = {d.uniform_name for d in deps} | INTERNAL_INPUTS

    return ShaderIO(
        inputs=[p for p in best.inputs if p.id not in excluded],
        outputs=list(best.outputs),
        is_overloaded=len(signatures) > 1,
        valid=True,
        label=best.label,
        order=best.order,
        original_index=best.original_index,
        pass_dependencies=deps,
    )


def require_signature(code: str, node_id: str = None) -> Signature:
    """Default signature of a body, raising SignatureError when there is none."""
    signatures = extract_all_signatures(code)
    if not signatures:
        raise SignatureError(f"No '{ENTRY_KEYWORD} {ENTRY_NAME}(' entry found", node_id=node_id, source=code)
    return min(signatures, key=lambda s: s.sort_key)
