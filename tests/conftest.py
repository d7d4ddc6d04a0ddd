"""
测试共用的假提供商与夹具。

假提供商实现与真实提供商相同的 (value, error) 元组约定，并记录每次调用，
不会发出任何网络请求。
"""
import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parent.parent))

from api.base import (
    BaseImageEditorProvider,
    BaseImageProvider,
    BaseLlmProvider,
    BaseStorageProvider,
    BaseVisionProvider,
)
from api.factory import Capabilities
from api.fal import CredentialStore
from data_pipeline.progress import ProgressReporter


class FakeLlm(BaseLlmProvider):

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def call_api(self, prompt_text, **kwargs):
        self.calls.append({"prompt_text": prompt_text, **kwargs})
        if self.error:
            return None, self.error
        return self.content, None


class InFlightTracker:
    """记录同时在途的调用数。"""

    def __init__(self):
        self.current = 0
        self.peak = 0

    async def hold(self, delay):
        self.current += 1
        self.peak = max(self.peak, self.current)
        try:
            await asyncio.sleep(delay)
        finally:
            self.current -= 1


class FakeImage(BaseImageProvider):

    def __init__(self, fail_prompts=(), delay=0.0, tracker=None):
        self.fail_prompts = set(fail_prompts)
        self.delay = delay
        self.tracker = tracker or InFlightTracker()
        self.calls = []
        self.active = set()
        # 每次调用开始时同时在途的提示词
        self.in_flight = []

    async def call_api(self, prompt, **kwargs):
        self.calls.append({"prompt": prompt, **kwargs})
        self.active.add(prompt)
        self.in_flight.append(sorted(self.active))
        try:
            await self.tracker.hold(self.delay)
        finally:
            self.active.discard(prompt)
        if prompt in self.fail_prompts:
            return None, f"content policy violation: {prompt}"
        return f"https://cdn.test/img/{len(self.calls)}.png", None


class FakeEditor(BaseImageEditorProvider):

    def __init__(self, error=None, delay=0.0, tracker=None):
        self.error = error
        self.delay = delay
        self.tracker = tracker or InFlightTracker()
        self.calls = []

    async def call_api(self, prompt, image_urls, **kwargs):
        self.calls.append({"prompt": prompt, "image_urls": list(image_urls), **kwargs})
        await self.tracker.hold(self.delay)
        if self.error:
            return None, self.error
        return f"https://cdn.test/edit/{len(self.calls)}.png", None


class FakeVision(BaseVisionProvider):

    def __init__(self, caption="a detailed caption", error=None):
        self.caption = caption
        self.error = error
        self.calls = []

    async def call_api(self, prompt_text, image_urls, **kwargs):
        self.calls.append({"prompt_text": prompt_text, "image_urls": list(image_urls), **kwargs})
        if self.error:
            return None, self.error
        return self.caption, None


class FakeStorage(BaseStorageProvider):

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def call_api(self, data, content_type, file_name):
        self.calls.append({"size": len(data), "content_type": content_type, "file_name": file_name})
        if self.error:
            return None, self.error
        return f"https://cdn.test/uploads/{file_name}", None


class RecordingReporter(ProgressReporter):

    def __init__(self):
        self.progress = []
        self.logs = []
        self.results = []

    def on_progress(self, completed, total, status):
        self.progress.append((completed, total, status))

    def on_log(self, message, severity="info"):
        self.logs.append((message, severity))

    def on_result(self, item):
        self.results.append(item)

    def messages(self, severity):
        return [message for message, level in self.logs if level == severity]


def pair_plan(count, prefix="scene"):
    return json.dumps([
        {
            "base_prompt": f"{prefix} {i}",
            "edit_prompt": f"add rim light to {prefix} {i}",
            "action_name": "rim_light",
        }
        for i in range(count)
    ])


def image_plan(count, prefix="style"):
    return json.dumps([{"prompt": f"{prefix} {i}"} for i in range(count)])


def make_capabilities(llm=None, image=None, editor=None, vision=None, storage=None):
    return Capabilities(
        llm=llm or FakeLlm(content=pair_plan(3)),
        image=image or FakeImage(),
        editor=editor or FakeEditor(),
        vision=vision or FakeVision(),
        storage=storage or FakeStorage(),
    )


@pytest.fixture
def credentials():
    return CredentialStore("test-key")


@pytest.fixture
def reporter():
    return RecordingReporter()
