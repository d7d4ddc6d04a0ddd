"""
nano-banana-pro 文生图API适配器

功能：封装 fal-ai/nano-banana-pro 的文生图调用，返回第一张图片的地址。
角色：作为文生图服务的适配器，将 fal 特定的请求格式转换为项目统一接口。
架构：实现BaseImageProvider抽象基类，由ApiClientFactory进行创建。
"""
from typing import Tuple

from api.base import BaseImageProvider
from api.errors import RemoteError
from api.fal import FalClient
from config import settings
from utils.logger import logger


def first_image_url(result: dict) -> str | None:
    """从 {"images": [{"url": ...}]} 结构中取出第一张图片的地址。"""
    images = result.get("images")
    if not isinstance(images, list) or not images:
        return None
    first = images[0]
    if isinstance(first, dict):
        return first.get("url") or None
    return None


class NanoBananaProProvider(BaseImageProvider):
    """
    使用 FalClient 调用 nano-banana-pro 生成图片。
    """

    def __init__(self, fal_client: FalClient, endpoint: str, **kwargs):
        self.fal = fal_client
        self.endpoint = endpoint
        self.api_params = kwargs
        logger.debug(f"NanoBananaProProvider已初始化，使用端点: {self.endpoint}")

    async def call_api(self, prompt: str, **kwargs) -> Tuple[str | None, str | None]:
        """
        生成一张图片并返回其地址。

        Args:
            prompt (str): 图片提示词。
            **kwargs: aspect_ratio ("1:1", "16:9" ...), resolution ("1K", "2K", "4K"), num_images。
        """
        params = {**self.api_params, **kwargs}
        payload = {
            "prompt": prompt,
            "aspect_ratio": params.get("aspect_ratio", settings.DEFAULT_ASPECT_RATIO),
            "resolution": params.get("resolution", settings.DEFAULT_RESOLUTION),
            "num_images": params.get("num_images", 1),
        }

        try:
            result = await self.fal.invoke(self.endpoint, payload)
        except RemoteError as e:
            return None, e.message

        image_url = first_image_url(result)
        if not image_url:
            logger.error(f"nano-banana-pro 未返回图片 | Prompt: {prompt[:30]}...")
            return None, "API did not return a valid image URL."
        return image_url, None
