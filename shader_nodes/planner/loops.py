"""
Loop unrolling for multi-stage nodes.

A stage with ``loop = N`` becomes N passes. Iteration 0 keeps the stage
pass id, later iterations are ``<id>_loop<i>`` and read the previous
iteration through ``u_prevPass``.
"""

import re
from dataclasses import dataclass, replace
from typing import List

from ..codegen.glsl import empty_cube_anchor
from ..config import CompilerConfig
from ..ir.types import GLSLType
from .passes import RenderPass, UniformBinding

LOOP_INDEX_UNIFORM = "u_loopIndex"
LOOP_COUNT_UNIFORM = "u_loopCount"
PREV_PASS = "u_prevPass"

_PREV_PASS_DEFINE = re.compile(r'^\s*#define\s+u_prevPass\s+[^\n]*$', re.MULTILINE)


@dataclass
class LoopPlan:
    base_id: str
    count: int

    @property
    def is_loop(self) -> bool:
        return self.count > 1

    def iteration_id(self, index: int) -> str:
        return self.base_id if index == 0 else f"{self.base_id}_loop{index}"

    def previous_id(self, index: int) -> str:
        return self.iteration_id(index - 1)

    @property
    def last_id(self) -> str:
        return self.iteration_id(self.count - 1)


def rebind_prev_pass(fragment: str, uniform: str, anchor: str) -> str:
    """Point u_prevPass at another sampler, declaring it after the anchor line."""
    if _PREV_PASS_DEFINE.search(fragment):
        fragment = _PREV_PASS_DEFINE.sub(f"#define {PREV_PASS} {uniform}", fragment)
    else:
        fragment = fragment.replace(anchor, f"{anchor}#define {PREV_PASS} {uniform}\n", 1)
    declaration = f"uniform sampler2D {uniform};"
    if declaration not in fragment:
        fragment = fragment.replace(anchor, f"{anchor}{declaration}\n", 1)
    return fragment


def unroll(template: RenderPass, plan: LoopPlan, config: CompilerConfig,
           texture_uniform_for) -> List[RenderPass]:
    """
    Expand one stage pass into its iterations.

    texture_uniform_for maps a pass id to the sampler uniform that reads it.
    """
    anchor = empty_cube_anchor(config)
    passes = []
    for index in range(plan.count):
        uniforms = dict(template.uniforms)
        if plan.is_loop:
            uniforms[LOOP_INDEX_UNIFORM] = UniformBinding(GLSLType.INT, index)
            uniforms[LOOP_COUNT_UNIFORM] = UniformBinding(GLSLType.INT, plan.count)

        fragment = template.fragment_shader
        inputs = dict(template.input_texture_uniforms)
        bindings = dict(template.texture_bindings)
        if index > 0:
            previous = plan.previous_id(index)
            uniform = texture_uniform_for(previous)
            fragment = rebind_prev_pass(fragment, uniform, anchor)
            inputs[PREV_PASS] = uniform
            bindings[uniform] = previous
            uniforms[PREV_PASS] = UniformBinding(GLSLType.SAMPLER2D, uniform)

        passes.append(replace(
            template,
            id=plan.iteration_id(index),
            fragment_shader=fragment,
            uniforms=uniforms,
            input_texture_uniforms=inputs,
            texture_bindings=bindings,
            loop_count=plan.count if plan.is_loop else None,
            loop_index=index if plan.is_loop else None,
        ))
    return passes

