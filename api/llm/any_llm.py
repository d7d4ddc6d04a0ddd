"""
fal any-llm API适配器

功能：通过 fal-ai/any-llm 调用任意托管的大语言模型生成文本。
角色：提示词规划阶段的文本生成能力。
架构：实现BaseLlmProvider抽象基类，由ApiClientFactory进行创建。
"""
from typing import Tuple

from api.base import BaseLlmProvider
from api.errors import RemoteError
from api.fal import FalClient
from config import settings
from utils.logger import logger


class AnyLlmProvider(BaseLlmProvider):
    """
    使用 FalClient 调用 fal-ai/any-llm。
    """

    def __init__(self, fal_client: FalClient, endpoint: str, model: str, **kwargs):
        self.fal = fal_client
        self.endpoint = endpoint
        self.model = model
        self.api_params = kwargs
        logger.debug(f"AnyLlmProvider已初始化，使用端点: {self.endpoint}，默认模型: {self.model}")

    async def call_api(self, prompt_text: str, **kwargs) -> Tuple[str | None, str | None]:
        """
        调用 any-llm。

        Args:
            prompt_text (str): 用户提示词。
            **kwargs: system_prompt, model (覆盖默认模型), max_tokens。

        Returns:
            一个元组 (content, error_message)。
        """
        payload = {
            "model": kwargs.get("model") or self.model,
            "prompt": prompt_text,
            "max_tokens": kwargs.get("max_tokens", settings.PLAN_MAX_TOKENS),
        }
        if kwargs.get("system_prompt"):
            payload["system_prompt"] = kwargs["system_prompt"]

        try:
            result = await self.fal.invoke(self.endpoint, payload)
        except RemoteError as e:
            return None, e.message

        content = result.get("output")
        if not isinstance(content, str) or not content.strip():
            error = result.get("error") or "LLM returned an empty response."
            logger.error(f"any-llm 未返回内容: {error}")
            return None, str(error)

        logger.debug(f"any-llm 调用成功，返回内容：{content[:50]}...")
        return content, None
