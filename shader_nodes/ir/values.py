"""
Bound-value helpers: zero defaults, type migration, array capacity and the
packing of values into the typed arrays uploaded as uniforms.
"""

import math
import numbers
from dataclasses import replace
from typing import Any, Optional, Sequence

import numpy as np

from .graph import BoundValue
from .types import GLSLType

DEFAULT_ARRAY_LENGTH = 16


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def is_number_sequence(value: Any) -> bool:
    if isinstance(value, np.ndarray):
        return value.ndim == 1 and np.issubdtype(value.dtype, np.number)
    if isinstance(value, (list, tuple)):
        return all(is_number(v) for v in value)
    return False


def _vector_width(value_type: GLSLType) -> Optional[int]:
    """Component count for vector targets, None for scalar-like targets."""
    if value_type.is_vector():
        return value_type.component_count()
    return None


def default_value(value_type: GLSLType, array_len: int = DEFAULT_ARRAY_LENGTH) -> Any:
    """Zero default for a bound value of the given type."""
    if value_type.is_array():
        n = max(1, int(array_len))
        element = value_type.element_type()
        if element.is_vector():
            return tuple((0.0,) * element.component_count() for _ in range(n))
        if element == GLSLType.BOOL:
            return (False,) * n
        if element in (GLSLType.INT, GLSLType.UINT):
            return (0,) * n
        return (0.0,) * n
    if value_type.is_sampler():
        return None
    if value_type == GLSLType.VEC4:
        return (0.0, 0.0, 0.0, 1.0)
    if value_type.is_vector():
        return (0.0,) * value_type.component_count()
    if value_type.is_matrix():
        size = {GLSLType.MAT2: 2, GLSLType.MAT3: 3, GLSLType.MAT4: 4}[value_type]
        return tuple(float(v) for v in np.identity(size, dtype=np.float32).flatten())
    if value_type == GLSLType.BOOL:
        return False
    if value_type in (GLSLType.INT, GLSLType.UINT):
        return 0
    return 0.0


def value_fits_type(value: Any, value_type: GLSLType) -> bool:
    """True when the value's shape agrees with its declared type."""
    if value_type.is_sampler():
        return value is None or isinstance(value, str)
    if value_type.is_array():
        return isinstance(value, (list, tuple, np.ndarray))
    if value_type == GLSLType.BOOL:
        return isinstance(value, bool) or is_number(value)
    if value_type.is_scalar():
        return is_number(value)
    if value_type.is_vector() or value_type.is_matrix():
        return is_number_sequence(value) and len(value) == value_type.component_count()
    return False


def migrate_value(bound: Optional[BoundValue], new_type: GLSLType) -> BoundValue:
    """
    Convert a bound value to a new port type.

    scalar -> scalar copies, scalar -> vector broadcasts, vector -> scalar
    takes the first component, vector -> vector zero-pads or truncates.
    Non-numeric values are replaced by the type's zero default. Widget
    metadata is kept.
    """
    if bound is None:
        return BoundValue(type=new_type, value=default_value(new_type))

    value = bound.value
    if isinstance(value, np.ndarray):
        value = tuple(value.tolist())

    numeric = is_number(value) or (is_number_sequence(value) and not new_type.is_array())
    width = _vector_width(new_type)

    if not numeric or new_type.is_sampler() or new_type.is_array() or new_type.is_matrix():
        new_value = default_value(new_type)
    elif width is None:
        if is_number(value):
            new_value = value
        else:
            new_value = value[0] if len(value) > 0 else 0.0
        if new_type in (GLSLType.INT, GLSLType.UINT):
            new_value = int(new_value)
        elif new_type == GLSLType.BOOL:
            new_value = bool(new_value)
    elif is_number(value):
        new_value = (value,) * width
    else:
        padded = list(value)[:width]
        padded.extend([0.0] * (width - len(padded)))
        new_value = tuple(padded)

    return replace(bound, type=new_type, value=new_value)


def conform_value(bound: Optional[BoundValue], port_type: GLSLType) -> BoundValue:
    """
    Bring a bound value in line with its port type.

    A value whose declared type differs is migrated; a value whose declared
    type matches but whose shape does not is treated as absent.
    """
    if bound is None:
        return migrate_value(None, port_type)
    if bound.type != port_type:
        return migrate_value(bound, port_type)
    if not value_fits_type(bound.value, port_type):
        return replace(bound, value=default_value(port_type))
    return bound


# =============================================================================
# Arrays
# =============================================================================

def infer_array_len(array_type: GLSLType, value: Any) -> int:
    """Element count implied by a value, 0 when it cannot be told."""
    vec_size = array_type.element_type().component_count()
    if isinstance(value, np.ndarray):
        if value.ndim > 1:
            return int(value.shape[0])
        return int(value.size) if vec_size == 1 else int(value.size) // vec_size
    if isinstance(value, (list, tuple)):
        return len(value)
    return 0


def resolve_array_len(array_type: GLSLType, bound: Optional[BoundValue],
                      fallback: int = DEFAULT_ARRAY_LENGTH) -> int:
    """
    Capacity of an array port: widget config first, then the value's length,
    then the fallback.
    """
    if bound is not None:
        cfg = bound.array_length
        if is_number(cfg) and math.isfinite(cfg) and round(cfg) >= 1:
            return int(round(cfg))
        inferred = infer_array_len(array_type, bound.value)
        if inferred >= 1:
            return inferred
    return max(1, int(round(fallback)))


def resolve_array_index(array_type: GLSLType, bound: Optional[BoundValue],
                        fallback: int = DEFAULT_ARRAY_LENGTH) -> int:
    """Selected element, clamped into the array capacity."""
    length = resolve_array_len(array_type, bound, fallback)
    raw = bound.array_index if bound is not None else None
    idx = int(round(raw)) if is_number(raw) and math.isfinite(raw) else 0
    return max(0, min(length - 1, idx))


def _flatten(value: Any, vec_size: int) -> list:
    if isinstance(value, np.ndarray):
        return value.flatten().tolist()
    out = []
    for item in value:
        if isinstance(item, (list, tuple, np.ndarray)):
            row = list(item)[:vec_size]
            row.extend([0.0] * (vec_size - len(row)))
            out.extend(row)
        else:
            out.append(item)
    return out


def _finite_or_zero(v: Any) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def pack_uniform_value(value_type: GLSLType, value: Any, array_len: Optional[int] = None) -> Any:
    """
    Pack a bound value for upload.

    Vectors and matrices become float32/uint32 arrays; arrays are padded or
    truncated to their capacity; scalars and texture references pass through.
    """
    if value_type.is_array():
        element = value_type.element_type()
        vec_size = element.component_count()
        length = array_len if array_len is not None else (infer_array_len(value_type, value) or DEFAULT_ARRAY_LENGTH)
        length = max(1, int(round(length)))

        if element == GLSLType.UINT:
            out = np.zeros(length, dtype=np.uint32)
        elif element in (GLSLType.INT, GLSLType.BOOL):
            out = np.zeros(length, dtype=np.int32)
        else:
            out = np.zeros(length * vec_size, dtype=np.float32)

        if isinstance(value, (list, tuple, np.ndarray)):
            flat = _flatten(value, vec_size)[:out.size]
            if element == GLSLType.BOOL:
                out[:len(flat)] = [1 if v else 0 for v in flat]
            elif element == GLSLType.UINT:
                out[:len(flat)] = [max(0, int(_finite_or_zero(v))) for v in flat]
            elif element == GLSLType.INT:
                out[:len(flat)] = [int(_finite_or_zero(v)) for v in flat]
            else:
                out[:len(flat)] = [_finite_or_zero(v) for v in flat]
        return out

    if is_number_sequence(value):
        if value_type.is_unsigned():
            return np.asarray(value, dtype=np.uint32)
        if value_type.is_vector() or value_type.is_matrix():
            return np.asarray(value, dtype=np.float32)
    return value
