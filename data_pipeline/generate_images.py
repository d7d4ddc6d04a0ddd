"""
单条生成流水线 (Per-Item Pipeline)

角色: 生产者 (Producer)
功能: 对一条 PromptUnit 按模式依次调用远程能力，产出一条 PairOutput / ImageOutput，或失败。
模式:
  - Pair:      文生图(base_prompt) -> 编辑(起始图, edit_prompt) -> [可选] 给结束图打标
  - Single:    文生图(prompt) -> [可选] 打标
  - Reference: 编辑(参考图, prompt) -> [可选] 打标
规则:
  - 除打标外任何阶段失败都抛出 RemoteError，整条任务失败；不会只返回图片而缺少文本。
  - 打标失败只记录警告，使用兜底文本 (Pair: action_name; 其他: 原始 prompt)。
  - 配置了触发词时，最终文本前加上触发词。
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

from api.base import BaseImageEditorProvider, BaseImageProvider, BaseVisionProvider
from api.errors import CaptionError, RemoteError
from config import settings
from data_pipeline.progress import ProgressReporter
from data_pipeline.schemas import (
    GenerationMode,
    ImageOutput,
    ImagePromptUnit,
    ItemOutput,
    PairOutput,
    PairPromptUnit,
    PipelineConfig,
    PromptUnit,
)
from utils.logger import logger


def truncate(text: str, length: int) -> str:
    if not text:
        return ""
    return text[:length] + "..." if len(text) > length else text


def apply_trigger_word(text: str, trigger_word: str) -> str:
    return f"{trigger_word} {text}" if trigger_word else text


@dataclass
class PipelineContext:
    """
    单次运行内所有条目共享的只读上下文。
    """
    image: BaseImageProvider
    editor: BaseImageEditorProvider
    vision: BaseVisionProvider
    config: PipelineConfig
    reporter: ProgressReporter
    total: int
    reference_asset_url: str | None = None


class ItemPipeline(ABC):
    """
    三种模式共用的流水线骨架。
    """

    def __init__(self, ctx: PipelineContext):
        self.ctx = ctx

    @abstractmethod
    async def run(self, unit: PromptUnit, index: int) -> ItemOutput:
        """执行一条任务；失败时抛出异常。"""
        raise NotImplementedError

    def log(self, message: str, severity: str = "info"):
        self.ctx.reporter.on_log(message, severity)

    async def synthesize(self, prompt: str) -> str:
        config = self.ctx.config
        url, error = await self.ctx.image.call_api(
            prompt,
            aspect_ratio=config.aspect_ratio,
            resolution=config.resolution.value,
            num_images=1,
        )
        if error or not url:
            raise RemoteError(error or "Image generation returned no image.")
        return url

    async def edit(self, source_urls: list[str], prompt: str) -> str:
        url, error = await self.ctx.editor.call_api(
            prompt,
            source_urls,
            resolution=self.ctx.config.resolution.value,
        )
        if error or not url:
            raise RemoteError(error or "Image edit returned no image.")
        return url

    async def caption(self, image_url: str) -> str:
        content, error = await self.ctx.vision.call_api(
            settings.CAPTION_PROMPT,
            [image_url],
            model=self.ctx.config.caption_model,
            system_prompt=settings.CAPTION_SYSTEM_PROMPT,
        )
        if error or not content:
            raise CaptionError(error or "empty caption")
        return content

    async def final_text(self, image_url: str, fallback: str, index: int) -> str:
        """
        打标是尽力而为：任何失败都回退到 fallback。
        """
        text = fallback
        if self.ctx.config.use_vision_caption:
            try:
                text = await self.caption(image_url)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"[{index + 1}] Vision caption failed, using fallback text: {e}")
        return apply_trigger_word(text, self.ctx.config.trigger_word)


class PairPipeline(ItemPipeline):

    async def run(self, unit: PairPromptUnit, index: int) -> PairOutput:
        n, total = index + 1, self.ctx.total
        self.log(f"🎨 [{n}/{total}] Starting: {truncate(unit.base_prompt, 35)}")

        self.log(f"   [{n}] Generating START image...")
        start_url = await self.synthesize(unit.base_prompt)
        self.log(f"   [{n}] START done, generating END...")

        end_url = await self.edit([start_url], unit.edit_prompt)
        self.log(f"   [{n}] END done!")

        text = await self.final_text(end_url, unit.action_name, index)
        return PairOutput(
            start_image_url=start_url,
            end_image_url=end_url,
            start_prompt=unit.base_prompt,
            end_prompt=unit.edit_prompt,
            action_name=unit.action_name,
            text=text,
        )


class SinglePipeline(ItemPipeline):

    async def run(self, unit: ImagePromptUnit, index: int) -> ImageOutput:
        n, total = index + 1, self.ctx.total
        self.log(f"🎨 [{n}/{total}] Generating: {truncate(unit.prompt, 40)}")

        image_url = await self.synthesize(unit.prompt)
        self.log(f"   [{n}] Image done!")

        text = await self.final_text(image_url, unit.prompt, index)
        return ImageOutput(image_url=image_url, prompt=unit.prompt, text=text)


class ReferencePipeline(ItemPipeline):

    def __init__(self, ctx: PipelineContext):
        if not ctx.reference_asset_url:
            raise ValueError("Reference mode requires an uploaded reference image URL.")
        super().__init__(ctx)

    async def run(self, unit: ImagePromptUnit, index: int) -> ImageOutput:
        n, total = index + 1, self.ctx.total
        self.log(f"🎨 [{n}/{total}] Variation: {truncate(unit.prompt, 40)}")

        image_url = await self.edit([self.ctx.reference_asset_url], unit.prompt)
        self.log(f"   [{n}] Variation done!")

        text = await self.final_text(image_url, unit.prompt, index)
        return ImageOutput(image_url=image_url, prompt=unit.prompt, text=text)


PIPELINES = {
    GenerationMode.PAIR: PairPipeline,
    GenerationMode.SINGLE: SinglePipeline,
    GenerationMode.REFERENCE: ReferencePipeline,
}


def build_item_pipeline(mode: GenerationMode, ctx: PipelineContext) -> ItemPipeline:
    return PIPELINES[mode](ctx)
