"""
OpenRouter Vision API 适配器

功能：通过 fal 的 openrouter/router/vision 端点为图片生成训练用描述 (caption)。
角色：将图文多模态输入转换为统一的 call_api 接口。
架构：实现BaseVisionProvider抽象基类，由ApiClientFactory进行创建。
"""
from typing import Tuple

from api.base import BaseVisionProvider
from api.errors import RemoteError
from api.fal import FalClient
from config import settings
from utils.logger import logger


class OpenRouterVisionProvider(BaseVisionProvider):
    """
    一个适配器，用于调用 OpenRouter 上的视觉模型给图片打标。
    """
    def __init__(self, fal_client: FalClient, endpoint: str, model: str, temperature: float = 1.0, **kwargs):
        self.fal = fal_client
        self.endpoint = endpoint
        self.model = model
        self.temperature = temperature
        logger.debug(f"OpenRouterVisionProvider initialized for model: {self.model}")

    async def call_api(self, prompt_text: str, image_urls: list[str], **kwargs) -> Tuple[str | None, str | None]:
        """
        Args:
            prompt_text (str): 用户的文本提示。
            image_urls (list[str]): 需要描述的图片地址。
            **kwargs: model, system_prompt, temperature 可覆盖默认值。
        """
        if not image_urls:
            return None, "Image URL is required for Vision API call."

        payload = {
            "model": kwargs.get("model") or self.model,
            "prompt": prompt_text,
            "system_prompt": kwargs.get("system_prompt", settings.CAPTION_SYSTEM_PROMPT),
            "image_urls": list(image_urls),
            "temperature": kwargs.get("temperature", self.temperature),
        }

        try:
            result = await self.fal.invoke(self.endpoint, payload)
        except RemoteError as e:
            return None, e.message

        content = result.get("output")
        if not isinstance(content, str) or not content.strip():
            return None, "Vision API returned an empty caption."
        return content.strip(), None
