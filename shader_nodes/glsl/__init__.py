from .lexer import Token, TokenKind, strip_comments, tokenize
from .signatures import (
    PassDependency,
    ShaderIO,
    Signature,
    extract_all_signatures,
    extract_shader_io,
    find_pass_dependencies,
    parse_metadata,
)
