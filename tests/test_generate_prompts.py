import asyncio
import json

import pytest

from api.errors import PlanError
from conftest import FakeLlm, image_plan, pair_plan
from data_pipeline.generate_prompts import (
    DEFAULT_SYSTEM_PROMPTS,
    PARSE_FAILURE_MESSAGE,
    PromptPlanGenerator,
    build_instructions,
    extract_json_array,
    parse_prompt_units,
)
from data_pipeline.schemas import GenerationMode, ImagePromptUnit, ModeContext, PairPromptUnit


def test_extract_json_array_tolerates_commentary_and_fences():
    text = 'Here are your prompts:\n```json\n[{"prompt": "a [bracketed] cat"}]\n```\nEnjoy!'
    assert extract_json_array(text) == [{"prompt": "a [bracketed] cat"}]


def test_extract_json_array_skips_unparseable_brackets():
    text = 'Note [see below] then [{"prompt": "ok"}]'
    assert extract_json_array(text) == [{"prompt": "ok"}]


def test_extract_json_array_without_array_raises():
    with pytest.raises(PlanError, match=PARSE_FAILURE_MESSAGE):
        extract_json_array("Sorry, I cannot help with that.")


def test_parse_prompt_units_skips_invalid_items():
    items = [
        {"base_prompt": "a", "edit_prompt": "b", "action_name": "c"},
        {"base_prompt": "missing fields"},
        "not an object",
        {"base_prompt": "d", "edit_prompt": "e", "action_name": "f"},
    ]
    units = parse_prompt_units(items, GenerationMode.PAIR)
    assert [u.base_prompt for u in units] == ["a", "d"]
    assert all(isinstance(u, PairPromptUnit) for u in units)


def test_build_instructions_uses_mode_default_when_override_blank():
    context = ModeContext(mode=GenerationMode.SINGLE, system_prompt="   ")
    system_prompt, user_prompt = build_instructions("neon noir", context, 5)
    assert system_prompt == DEFAULT_SYSTEM_PROMPTS[GenerationMode.SINGLE]
    assert 'Generate 5 unique image prompts for the theme/style: "neon noir"' in user_prompt


def test_build_instructions_prefers_custom_system_prompt():
    context = ModeContext(mode=GenerationMode.REFERENCE, system_prompt="Only write haiku.")
    system_prompt, _ = build_instructions("a red fox", context, 2)
    assert system_prompt == "Only write haiku."


def test_build_instructions_pair_appends_transformation_and_action_hint():
    context = ModeContext(mode=GenerationMode.PAIR, transformation="zoom out", action_name="unzoom")
    system_prompt, user_prompt = build_instructions("city streets", context, 3)
    assert 'The transformation to learn: "zoom out"' in system_prompt
    assert 'Use this action name: "unzoom"' in system_prompt
    assert '"base_prompt"' in user_prompt

    context = ModeContext(mode=GenerationMode.PAIR, transformation="zoom out")
    system_prompt, _ = build_instructions("city streets", context, 3)
    assert "Generate a short, descriptive action name" in system_prompt


def test_plan_returns_units_in_order():
    llm = FakeLlm(content=f"Sure!\n{pair_plan(3)}")
    planner = PromptPlanGenerator(llm, max_tokens=1234)
    context = ModeContext(mode=GenerationMode.PAIR, transformation="add rim light")

    units = asyncio.run(planner.plan("portraits", context, 3, model="some/model"))

    assert [u.base_prompt for u in units] == ["scene 0", "scene 1", "scene 2"]
    assert len(llm.calls) == 1
    call = llm.calls[0]
    assert call["max_tokens"] == 1234
    assert call["model"] == "some/model"
    assert 'The transformation to learn: "add rim light"' in call["system_prompt"]


def test_plan_truncates_extra_units():
    planner = PromptPlanGenerator(FakeLlm(content=image_plan(6)))
    units = asyncio.run(planner.plan("watercolor", ModeContext(mode=GenerationMode.SINGLE), 4))
    assert len(units) == 4
    assert all(isinstance(u, ImagePromptUnit) for u in units)


def test_plan_accepts_fewer_units_than_requested():
    planner = PromptPlanGenerator(FakeLlm(content=image_plan(2)))
    units = asyncio.run(planner.plan("watercolor", ModeContext(mode=GenerationMode.SINGLE), 5))
    assert len(units) == 2


def test_plan_without_valid_units_raises():
    content = json.dumps([{"prompt": ""}, {"wrong": "shape"}])
    planner = PromptPlanGenerator(FakeLlm(content=content))
    with pytest.raises(PlanError, match=PARSE_FAILURE_MESSAGE):
        asyncio.run(planner.plan("watercolor", ModeContext(mode=GenerationMode.SINGLE), 2))


def test_plan_remote_failure_raises_plan_error():
    planner = PromptPlanGenerator(FakeLlm(error="rate limited"))
    with pytest.raises(PlanError, match="rate limited"):
        asyncio.run(planner.plan("watercolor", ModeContext(mode=GenerationMode.SINGLE), 2))


def test_plan_unparseable_response_raises():
    planner = PromptPlanGenerator(FakeLlm(content="I'd rather not."))
    with pytest.raises(PlanError):
        asyncio.run(planner.plan("watercolor", ModeContext(mode=GenerationMode.SINGLE), 2))


def test_extract_json_array_skips_arrays_without_objects():
    text = 'Step [1] of the plan, tags ["a", "b"]:\n[{"prompt": "misty harbor"}]'
    assert extract_json_array(text) == [{"prompt": "misty harbor"}]

    with pytest.raises(PlanError):
        extract_json_array("Here you go: [1, 2, 3]")
