"""
API客户端工厂

根据配置动态创建并返回相应的API客户端实例，并把一次运行需要的全部能力
打包成 Capabilities，供流水线使用。
"""
from dataclasses import dataclass
from typing import Type

from .base import (
    BaseLlmProvider,
    BaseImageProvider,
    BaseImageEditorProvider,
    BaseVisionProvider,
    BaseStorageProvider,
)
from .fal import CredentialStore, FalClient
from .llm.any_llm import AnyLlmProvider
from .image.nano_banana_pro import NanoBananaProProvider
from .edit.nano_banana_pro_edit import NanoBananaProEditProvider
from .vision.openrouter_vision import OpenRouterVisionProvider
from .storage.fal_storage import FalStorageProvider

from config import settings
from utils.logger import logger


@dataclass
class Capabilities:
    """
    一次运行所使用的远程能力集合。所有提供商共享同一个 FalClient。
    """
    llm: BaseLlmProvider
    image: BaseImageProvider
    editor: BaseImageEditorProvider
    vision: BaseVisionProvider
    storage: BaseStorageProvider
    fal_client: FalClient | None = None

    async def close(self):
        for provider in (self.llm, self.image, self.editor, self.vision, self.storage):
            await provider.close()
        if self.fal_client is not None:
            await self.fal_client.close()


class ApiClientFactory:
    """
    一个根据配置创建API客户端的工厂类。
    """

    # 注册表：将提供商名称映射到其实现类
    _llm_providers: dict[str, Type[BaseLlmProvider]] = {
        "any_llm": AnyLlmProvider,
    }
    _image_providers: dict[str, Type[BaseImageProvider]] = {
        "nano_banana_pro": NanoBananaProProvider,
    }
    _image_editor_providers: dict[str, Type[BaseImageEditorProvider]] = {
        "nano_banana_pro_edit": NanoBananaProEditProvider,
    }
    _vision_providers: dict[str, Type[BaseVisionProvider]] = {
        "openrouter_vision": OpenRouterVisionProvider,
    }
    _storage_providers: dict[str, Type[BaseStorageProvider]] = {
        "fal_storage": FalStorageProvider,
    }

    @staticmethod
    def _create(kind: str, registry: dict, configs: dict, provider_name: str, fal_client: FalClient):
        logger.debug(f"请求创建{kind}客户端，提供商: {provider_name}")
        provider_class = registry.get(provider_name)
        if not provider_class:
            logger.error(f"未知的{kind}提供商: {provider_name}")
            raise ValueError(f"未知的{kind}提供商: {provider_name}")
        provider_config = configs.get(provider_name, {})
        return provider_class(fal_client, **provider_config)

    @staticmethod
    def create_llm_client(fal_client: FalClient, provider_name: str | None = None) -> BaseLlmProvider:
        return ApiClientFactory._create(
            "LLM", ApiClientFactory._llm_providers, settings.LLM_API_CONFIGS,
            provider_name or settings.LLM_API_PROVIDER, fal_client,
        )

    @staticmethod
    def create_image_client(fal_client: FalClient, provider_name: str | None = None) -> BaseImageProvider:
        return ApiClientFactory._create(
            "图片生成", ApiClientFactory._image_providers, settings.IMAGE_API_CONFIGS,
            provider_name or settings.IMAGE_API_PROVIDER, fal_client,
        )

    @staticmethod
    def create_image_editor_client(fal_client: FalClient, provider_name: str | None = None) -> BaseImageEditorProvider:
        return ApiClientFactory._create(
            "图片编辑", ApiClientFactory._image_editor_providers, settings.IMAGE_EDITOR_API_CONFIGS,
            provider_name or settings.IMAGE_EDITOR_API_PROVIDER, fal_client,
        )

    @staticmethod
    def create_vision_client(fal_client: FalClient, provider_name: str | None = None) -> BaseVisionProvider:
        return ApiClientFactory._create(
            "视觉理解", ApiClientFactory._vision_providers, settings.VISION_API_CONFIGS,
            provider_name or settings.VISION_API_PROVIDER, fal_client,
        )

    @staticmethod
    def create_storage_client(fal_client: FalClient, provider_name: str | None = None) -> BaseStorageProvider:
        return ApiClientFactory._create(
            "文件上传", ApiClientFactory._storage_providers, settings.STORAGE_API_CONFIGS,
            provider_name or settings.STORAGE_API_PROVIDER, fal_client,
        )

    @staticmethod
    def create_capabilities(credentials: CredentialStore, fal_client: FalClient | None = None) -> Capabilities:
        """
        根据全局配置创建全部远程能力。

        :param credentials: 共享的凭证容器，请求时实时读取。
        :param fal_client: 可选，传入已有的 FalClient (例如测试中使用 MockTransport)。
        """
        fal_client = fal_client or FalClient(credentials)
        return Capabilities(
            llm=ApiClientFactory.create_llm_client(fal_client),
            image=ApiClientFactory.create_image_client(fal_client),
            editor=ApiClientFactory.create_image_editor_client(fal_client),
            vision=ApiClientFactory.create_vision_client(fal_client),
            storage=ApiClientFactory.create_storage_client(fal_client),
            fal_client=fal_client,
        )
