from typing import Tuple

from api.base import BaseImageEditorProvider
from api.errors import RemoteError
from api.fal import FalClient
from api.image.nano_banana_pro import first_image_url
from config import settings
from utils.logger import logger


class NanoBananaProEditProvider(BaseImageEditorProvider):
    """
    一个适配器，用于调用 nano-banana-pro/edit 根据指令编辑图片。
    输出宽高比固定为 auto (跟随输入图)，与流水线配置的宽高比无关。
    """

    def __init__(self, fal_client: FalClient, endpoint: str, aspect_ratio: str = "auto", **kwargs):
        self.fal = fal_client
        self.endpoint = endpoint
        self.aspect_ratio = aspect_ratio
        self.api_params = kwargs
        logger.debug(f"NanoBananaProEditProvider initialized for endpoint: {self.endpoint}")

    async def call_api(self, prompt: str, image_urls: list[str], **kwargs) -> Tuple[str | None, str | None]:
        if not image_urls:
            return None, "At least one source image URL is required for editing."

        payload = {
            # 必须是数组
            "image_urls": list(image_urls),
            "prompt": prompt,
            "aspect_ratio": self.aspect_ratio,
            "resolution": kwargs.get("resolution", settings.DEFAULT_RESOLUTION),
        }

        try:
            result = await self.fal.invoke(self.endpoint, payload)
        except RemoteError as e:
            return None, e.message

        image_url = first_image_url(result)
        if not image_url:
            logger.error(f"Edit API returned no image for prompt: {prompt[:50]}...")
            return None, "API did not return a valid image URL."
        return image_url, None
