from enum import Enum
from typing import Optional


class GLSLType(str, Enum):
    # Scalars
    FLOAT = "float"
    INT = "int"
    UINT = "uint"
    BOOL = "bool"

    # Vectors
    VEC2 = "vec2"
    VEC3 = "vec3"
    VEC4 = "vec4"

    UVEC2 = "uvec2"
    UVEC3 = "uvec3"
    UVEC4 = "uvec4"

    # Matrices
    MAT2 = "mat2"
    MAT3 = "mat3"
    MAT4 = "mat4"

    # Textures
    SAMPLER2D = "sampler2D"
    SAMPLER_CUBE = "samplerCube"

    # Arrays (length is resolved at compile time)
    FLOAT_ARRAY = "float[]"
    INT_ARRAY = "int[]"
    UINT_ARRAY = "uint[]"
    BOOL_ARRAY = "bool[]"
    VEC2_ARRAY = "vec2[]"
    VEC3_ARRAY = "vec3[]"
    VEC4_ARRAY = "vec4[]"

    @classmethod
    def parse(cls, text: Optional[str]) -> "GLSLType":
        """
        Sanitize a type string into a GLSLType.

        'vec1' is treated as float; anything unknown falls back to float.
        """
        if isinstance(text, GLSLType):
            return text
        if not text:
            return cls.FLOAT
        text = text.strip()
        if text == "vec1":
            return cls.FLOAT
        try:
            return cls(text)
        except ValueError:
            return cls.FLOAT

    @classmethod
    def is_known(cls, text: str) -> bool:
        return text in cls._value2member_map_

    @classmethod
    def from_rank(cls, rank: int) -> "GLSLType":
        """Map a numeric rank back to its float-based type (default float)."""
        return _RANK_TYPES.get(rank, cls.FLOAT)

    def is_array(self) -> bool:
        return self.value.endswith("[]")

    def element_type(self) -> "GLSLType":
        if self.is_array():
            return GLSLType(self.value[:-2])
        return self

    def is_sampler(self) -> bool:
        return self in (GLSLType.SAMPLER2D, GLSLType.SAMPLER_CUBE)

    def is_matrix(self) -> bool:
        return self in (GLSLType.MAT2, GLSLType.MAT3, GLSLType.MAT4)

    def is_vector(self) -> bool:
        return self in {
            GLSLType.VEC2, GLSLType.VEC3, GLSLType.VEC4,
            GLSLType.UVEC2, GLSLType.UVEC3, GLSLType.UVEC4,
        }

    def is_scalar(self) -> bool:
        return self in {GLSLType.FLOAT, GLSLType.INT, GLSLType.UINT, GLSLType.BOOL}

    def is_unsigned(self) -> bool:
        return self in {GLSLType.UINT, GLSLType.UVEC2, GLSLType.UVEC3, GLSLType.UVEC4}

    def component_count(self) -> int:
        """Number of scalar components of one element."""
        t = self.element_type()
        if t in {GLSLType.VEC2, GLSLType.UVEC2}: return 2
        if t in {GLSLType.VEC3, GLSLType.UVEC3}: return 3
        if t in {GLSLType.VEC4, GLSLType.UVEC4, GLSLType.MAT2}: return 4
        if t == GLSLType.MAT3: return 9
        if t == GLSLType.MAT4: return 16
        return 1

    @property
    def rank(self) -> int:
        """Numeric width used by type inference; 0 means non-numeric."""
        return _TYPE_RANKS.get(self, 0)

    def __str__(self):
        return self.value


_TYPE_RANKS = {
    GLSLType.FLOAT: 1,
    GLSLType.INT: 1,
    GLSLType.VEC2: 2,
    GLSLType.VEC3: 3,
    GLSLType.VEC4: 4,
}

_RANK_TYPES = {
    1: GLSLType.FLOAT,
    2: GLSLType.VEC2,
    3: GLSLType.VEC3,
    4: GLSLType.VEC4,
}
