"""
fal 存储上传适配器

把本地的参考图上传到 fal CDN，换取一个远程能力可以直接读取的 URL。
"""
from typing import Tuple

from api.base import BaseStorageProvider
from api.errors import RemoteError
from api.fal import FalClient
from utils.logger import logger


class FalStorageProvider(BaseStorageProvider):

    def __init__(self, fal_client: FalClient, **kwargs):
        self.fal = fal_client

    async def call_api(self, data: bytes, content_type: str, file_name: str) -> Tuple[str | None, str | None]:
        if not data:
            return None, "Refusing to upload an empty file."
        try:
            url = await self.fal.upload(data, content_type, file_name)
        except RemoteError as e:
            logger.error(f"参考图上传失败: {e.message}")
            return None, e.message
        return url, None
