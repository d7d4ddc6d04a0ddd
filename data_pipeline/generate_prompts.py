# -*- coding: utf-8 -*-
"""
[数据生产流程的第一步]

使用大型语言模型 (LLM) 按主题一次性规划 N 条结构化的生成任务 (PromptUnit)。

工作流程:
1.  **构造指令:**
    - 系统提示词：用户自定义的覆盖内容；为空时使用当前模式的默认模板。
      Pair 模式额外附上要学习的变换和动作名提示。
    - 用户提示词：要求 LLM 只返回包含 count 个对象的 JSON 数组。

2.  **调用LLM API:**
    - 通过文本生成能力发出一次请求，输出 token 上限为 settings.PLAN_MAX_TOKENS。

3.  **解析与校验:**
    - 在原始回复中找到第一个能完整解析的 JSON 数组 (容忍前后的解释文字和代码块标记)。
    - 逐条按模式的 schema 校验；不合格的条目记录警告后跳过。
    - 一条合格条目都没有时抛出 PlanError。
"""
import json
from typing import Any, List

from pydantic import ValidationError

from api.base import BaseLlmProvider
from api.errors import PlanError
from config import settings
from data_pipeline.schemas import GenerationMode, ModeContext, PROMPT_UNIT_SCHEMAS, PromptUnit
from utils.logger import logger

# ================= 配置区 =================

# 每种模式的默认系统提示词
DEFAULT_SYSTEM_PROMPTS = {
    GenerationMode.PAIR: """You are a creative prompt engineer for AI image generation. Generate diverse, detailed prompts for creating training data.

RULES:
1. Each prompt must be unique and creative
2. base_prompt: Detailed description for generating the START image
3. edit_prompt: Instruction for transforming START → END image
4. action_name: Short identifier for this transformation type""",

    GenerationMode.SINGLE: """You are a creative prompt engineer for AI image generation. Generate diverse, detailed prompts for creating style/aesthetic training data.

RULES:
1. Each prompt must be unique and creative
2. prompt: Detailed description capturing the desired aesthetic, style, composition, lighting, and mood
3. Focus on visual consistency and aesthetic qualities that define the style""",

    GenerationMode.REFERENCE: """You are a creative prompt engineer for AI image generation. Generate diverse prompts for creating variations of a reference image.

RULES:
1. Each prompt must be unique while maintaining consistency with the reference
2. prompt: Detailed description for generating a variation that preserves key elements of the reference
3. Vary poses, angles, backgrounds, lighting, and contexts while keeping the subject recognizable""",
}

# 每种模式的用户提示词模板
USER_PROMPT_TEMPLATES = {
    GenerationMode.PAIR: """Generate {count} unique prompt pairs for the theme: "{theme}"

Return ONLY valid JSON array:
[
  {{
    "base_prompt": "detailed start image description...",
    "edit_prompt": "transformation instruction...",
    "action_name": "short_action"
  }}
]""",

    GenerationMode.SINGLE: """Generate {count} unique image prompts for the theme/style: "{theme}"

Return ONLY valid JSON array:
[
  {{
    "prompt": "detailed image description capturing the style, aesthetic, composition, lighting, colors..."
  }}
]""",

    GenerationMode.REFERENCE: """Generate {count} unique variation prompts for: "{theme}"

These prompts will be used to create variations of a reference image (character/product/style).
Each prompt should describe a different scenario, pose, angle, background, or context while keeping the subject consistent.

Return ONLY valid JSON array:
[
  {{
    "prompt": "detailed description of the variation, keeping subject consistent but varying context..."
  }}
]""",
}

PARSE_FAILURE_MESSAGE = "Failed to parse LLM response"
# =========================================


def resolve_system_prompt(context: ModeContext) -> str:
    """用户覆盖优先，空白时回退到模式默认模板。"""
    custom = (context.system_prompt or "").strip()
    return custom or DEFAULT_SYSTEM_PROMPTS[context.mode]


def build_instructions(theme: str, context: ModeContext, count: int) -> tuple[str, str]:
    """
    构造 (system_prompt, user_prompt)。
    """
    system_prompt = resolve_system_prompt(context)

    if context.mode is GenerationMode.PAIR:
        action_name = (context.action_name or "").strip()
        if action_name:
            action_hint = f'Use this action name: "{action_name}"'
        else:
            action_hint = 'Generate a short, descriptive action name (like "unzoom", "add_bg", "enhance")'
        system_prompt = f'{system_prompt}\n\nThe transformation to learn: "{context.transformation}"\n{action_hint}'

    user_prompt = USER_PROMPT_TEMPLATES[context.mode].format(count=count, theme=theme)
    return system_prompt, user_prompt


def extract_json_array(text: str) -> List[Any]:
    """
    从 LLM 的原始回复中提取第一个至少包含一个对象的完整 JSON 数组。
    LLM 有时候会废话，比如 "Here are your prompts: ```json [...] ```"，需要容忍；
    解释文字里的 [1]、["a"] 之类的片段会被跳过。

    Raises:
        PlanError: 找不到可解析的数组。
    """
    decoder = json.JSONDecoder()
    position = text.find("[")
    while position != -1:
        try:
            value, _ = decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, list) and any(isinstance(entry, dict) for entry in value):
            return value
        position = text.find("[", position + 1)
    raise PlanError(PARSE_FAILURE_MESSAGE)


def parse_prompt_units(items: List[Any], mode: GenerationMode) -> List[PromptUnit]:
    """
    逐条按模式 schema 校验。不合格的条目跳过并记录警告，顺序保持不变。
    """
    schema = PROMPT_UNIT_SCHEMAS[mode]
    units: List[PromptUnit] = []
    for position, item in enumerate(items):
        try:
            units.append(schema.model_validate(item))
        except ValidationError as e:
            logger.warning(f"跳过第 {position + 1} 条不合格的提示词: {e.errors(include_url=False)}")
    return units


class PromptPlanGenerator:
    """
    提示词规划器：一次 LLM 调用得到有序的 PromptUnit 列表。
    数量上限 (40) 由调用方在进入本阶段前保证，这里不再重复检查。
    """

    def __init__(self, llm_client: BaseLlmProvider, max_tokens: int | None = None):
        self.llm_client = llm_client
        self.max_tokens = max_tokens or settings.PLAN_MAX_TOKENS

    async def plan(self, theme: str, context: ModeContext, count: int, model: str | None = None) -> List[PromptUnit]:
        system_prompt, user_prompt = build_instructions(theme, context, count)
        logger.debug(f"规划 {count} 条 {context.mode.value} 提示词，主题: {theme}")

        content, error = await self.llm_client.call_api(
            user_prompt,
            system_prompt=system_prompt,
            model=model,
            max_tokens=self.max_tokens,
        )
        if error or not content:
            raise PlanError(f"Prompt generation failed: {error or 'empty response'}")

        raw_items = extract_json_array(content)
        units = parse_prompt_units(raw_items, context.mode)
        if not units:
            raise PlanError(f"{PARSE_FAILURE_MESSAGE}: no valid {context.mode.value} prompts in {len(raw_items)} items")

        if len(units) > count:
            logger.warning(f"LLM 返回了 {len(units)} 条提示词，截断为 {count} 条。")
            units = units[:count]
        elif len(units) < count:
            logger.warning(f"LLM 只返回了 {len(units)} 条有效提示词 (请求 {count} 条)。")
        return units
