# emitters.registry is imported directly by the generator
from .types import cast_expr, default_literal, sample_expr
