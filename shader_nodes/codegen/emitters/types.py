# Type Emitters
# Handles: casts between port types, zero-default literals

from typing import Optional

from ...ir.types import GLSLType

DEFAULT_ARRAY_LENGTH = 16

_SCALAR_DEFAULTS = {
    GLSLType.FLOAT: "0.0",
    GLSLType.INT: "0",
    GLSLType.UINT: "0u",
    GLSLType.BOOL: "false",
    GLSLType.VEC2: "vec2(0.0)",
    GLSLType.VEC3: "vec3(0.0)",
    GLSLType.VEC4: "vec4(0.0, 0.0, 0.0, 1.0)",
    GLSLType.UVEC2: "uvec2(0u)",
    GLSLType.UVEC3: "uvec3(0u)",
    GLSLType.UVEC4: "uvec4(0u, 0u, 0u, 1u)",
    GLSLType.MAT2: "mat2(1.0)",
    GLSLType.MAT3: "mat3(1.0)",
    GLSLType.MAT4: "mat4(1.0)",
}

# Array elements use plain zero constructors
_ELEMENT_ZEROS = {
    GLSLType.FLOAT: "0.0",
    GLSLType.INT: "0",
    GLSLType.UINT: "0u",
    GLSLType.BOOL: "false",
    GLSLType.VEC2: "vec2(0.0)",
    GLSLType.VEC3: "vec3(0.0)",
    GLSLType.VEC4: "vec4(0.0)",
}


def default_literal(value_type: GLSLType, array_len: Optional[int] = None,
                    empty_texture: str = "u_empty_tex",
                    empty_cube_texture: str = "u_empty_cube") -> str:
    """GLSL expression for the zero default of a type."""
    if value_type == GLSLType.SAMPLER2D:
        return empty_texture
    if value_type == GLSLType.SAMPLER_CUBE:
        return empty_cube_texture
    if value_type.is_array():
        n = max(1, int(round(array_len))) if array_len is not None else DEFAULT_ARRAY_LENGTH
        element = value_type.element_type()
        zeros = ", ".join([_ELEMENT_ZEROS[element]] * n)
        return f"{element}[{n}]({zeros})"
    return _SCALAR_DEFAULTS.get(value_type, "0.0")


def cast_expr(expr: str, from_type: GLSLType, to_type: GLSLType) -> str:
    """Convert an expression between port types."""
    if from_type == to_type:
        return expr

    # Bool <-> scalar by truthiness
    if from_type == GLSLType.BOOL and to_type in (GLSLType.INT, GLSLType.FLOAT):
        return f"{to_type}({expr})"
    if to_type == GLSLType.BOOL and from_type in (GLSLType.INT, GLSLType.FLOAT):
        return f"bool({expr})"

    # Float -> vectors broadcast; vec4 keeps alpha at 1.0
    if from_type == GLSLType.FLOAT:
        if to_type in (GLSLType.VEC2, GLSLType.VEC3):
            return f"{to_type}({expr})"
        if to_type == GLSLType.VEC4:
            return f"vec4(vec3({expr}), 1.0)"
        if to_type == GLSLType.INT:
            return f"int({expr})"

    # Int goes through float first
    if from_type == GLSLType.INT:
        if to_type == GLSLType.FLOAT:
            return f"float({expr})"
        if to_type in (GLSLType.VEC2, GLSLType.VEC3):
            return f"{to_type}(float({expr}))"
        if to_type == GLSLType.VEC4:
            return f"vec4(vec3(float({expr})), 1.0)"

    # Vec2 pads with zeros
    if from_type == GLSLType.VEC2:
        if to_type == GLSLType.FLOAT:
            return f"{expr}.x"
        if to_type == GLSLType.VEC3:
            return f"vec3({expr}, 0.0)"
        if to_type == GLSLType.VEC4:
            return f"vec4({expr}, 0.0, 1.0)"

    if from_type == GLSLType.VEC3:
        if to_type == GLSLType.VEC4:
            return f"vec4({expr}, 1.0)"
        if to_type == GLSLType.FLOAT:
            return f"{expr}.r"
        if to_type == GLSLType.VEC2:
            return f"{expr}.xy"

    # Vec4 truncates to leading components
    if from_type == GLSLType.VEC4:
        if to_type == GLSLType.VEC3:
            return f"{expr}.rgb"
        if to_type == GLSLType.FLOAT:
            return f"{expr}.r"
        if to_type == GLSLType.VEC2:
            return f"{expr}.xy"

    # Generic Cast (Constructor style)
    return f"{to_type}({expr})"


def sample_expr(texture_uniform: str, to_type: GLSLType, coord: str = "uv") -> str:
    """Read a pass texture as a value of the given type."""
    if to_type.is_sampler():
        return texture_uniform
    return cast_expr(f"texture({texture_uniform}, {coord})", GLSLType.VEC4, to_type)
