# Stage pragmas
#
# Textual alternative to structured stage configuration:
#   #pragma pingpong                  enable a persistent feedback buffer
#   #pragma pingpong_init <color>     initial clear color (r,g,b[,a] | black | white | transparent)
#   #pragma pingpong_clear            clear the buffer every frame
#   #pragma pingpong_temporary        buffer does not persist across frames
#   #pragma loop N                    repeat the stage N times

import logging
import re
from dataclasses import replace
from typing import Optional, Tuple

from ..ir.graph import PingPongConfig, Stage
from .signatures import PREVIOUS_FRAME

logger = logging.getLogger(__name__)

_PINGPONG = re.compile(r'^\s*#pragma\s+pingpong', re.MULTILINE)
_PINGPONG_INIT = re.compile(r'^\s*#pragma\s+pingpong_init\s+(.+)', re.MULTILINE)
_PINGPONG_CLEAR = re.compile(r'^\s*#pragma\s+pingpong_clear', re.MULTILINE)
_PINGPONG_TEMPORARY = re.compile(r'^\s*#pragma\s+pingpong_temporary', re.MULTILINE)
_LOOP = re.compile(r'^\s*#pragma\s+loop\s+(\d+)', re.MULTILINE)
_CUSTOM_PRAGMA = re.compile(r'^\s*#pragma\s+(?:pingpong\w*|loop)\b.*$', re.MULTILINE)
_USES_PREVIOUS_FRAME = re.compile(r'\b' + PREVIOUS_FRAME + r'\b')

INIT_PRESETS = {
    'black': (0.0, 0.0, 0.0, 1.0),
    'white': (1.0, 1.0, 1.0, 1.0),
    'transparent': (0.0, 0.0, 0.0, 0.0),
}


def parse_init_color(text: str) -> Optional[Tuple[float, float, float, float]]:
    text = text.strip()
    if text in INIT_PRESETS:
        return INIT_PRESETS[text]
    try:
        values = [float(v.strip()) for v in text.split(',')]
    except ValueError:
        logger.warning(f"Ignoring unparsable pingpong_init value '{text}'")
        return None
    if len(values) < 3:
        logger.warning(f"pingpong_init needs at least 3 components, got '{text}'")
        return None
    alpha = values[3] if len(values) > 3 else 1.0
    return (values[0], values[1], values[2], alpha)


def parse_loop_count(source: str) -> Optional[int]:
    match = _LOOP.search(source)
    if match:
        count = int(match.group(1))
        if count > 1:
            return count
    return None


def resolve_ping_pong(stage: Stage, node_id: str) -> Optional[PingPongConfig]:
    """
    Effective feedback buffer config of a stage, or None when disabled.

    Structured fields win; pragmas fill what is unset; defaults fill the rest.
    """
    config = stage.ping_pong or PingPongConfig()
    source = stage.source

    if not config.enabled:
        if _PINGPONG.search(source) or _USES_PREVIOUS_FRAME.search(source):
            config = replace(config, enabled=True)
        else:
            return None

    if config.init_value is None:
        match = _PINGPONG_INIT.search(source)
        if match:
            config = replace(config, init_value=parse_init_color(match.group(1)))

    if config.clear_each_frame is None and _PINGPONG_CLEAR.search(source):
        config = replace(config, clear_each_frame=True)
    if config.persistent is None and _PINGPONG_TEMPORARY.search(source):
        config = replace(config, persistent=False)

    return replace(
        config,
        buffer_name=config.buffer_name or f"{node_id}_{stage.id}",
        persistent=True if config.persistent is None else config.persistent,
        clear_each_frame=False if config.clear_each_frame is None else config.clear_each_frame,
    )


def resolve_loop_count(stage: Stage) -> int:
    if stage.loop and stage.loop > 1:
        return stage.loop
    return parse_loop_count(stage.source) or 1


def strip_custom_pragmas(source: str) -> str:
    """Remove pragmas the GLSL compiler does not know about."""
    return _CUSTOM_PRAGMA.sub('', source)
