# Compile-time configuration
#
# Every entry point takes an optional CompilerConfig; None means defaults.

from dataclasses import dataclass


@dataclass(frozen=True)
class CompilerConfig:
    """Knobs shared by the pass builder, code generator and compiler cache."""
    # Array capacity used when neither widget config nor value determine it
    default_array_length: int = 16

    glsl_version: str = "300 es"
    float_precision: str = "mediump"

    # Reserved uniforms bound by the host to placeholder textures
    empty_texture: str = "u_empty_tex"
    empty_cube_texture: str = "u_empty_cube"

    # GraphCompiler LRU capacity
    cache_capacity: int = 16


DEFAULT_CONFIG = CompilerConfig()


def resolve_config(config: "CompilerConfig" = None) -> CompilerConfig:
    return config if config is not None else DEFAULT_CONFIG
