"""
API抽象基类定义模块

功能：定义统一的API接口规范，实现适配器模式的核心抽象层
角色：为不同的远程能力提供统一的接口标准，确保流水线代码与具体API实现解耦
架构：遵循依赖倒置原则，业务逻辑依赖抽象而非具体实现

包含五种核心API抽象：
- BaseLlmProvider: 大语言模型文本生成接口 (提示词规划)
- BaseImageProvider: AI图片生成接口
- BaseImageEditorProvider: 图片编辑接口
- BaseVisionProvider: 视觉理解接口 (图片打标)
- BaseStorageProvider: 文件上传接口

约定：所有 call_api 都返回 (value, error_message) 元组，不抛出远程错误；
只有缺少凭证时会直接抛出 AuthError。
"""

from abc import ABC, abstractmethod
from typing import Tuple


class BaseLlmProvider(ABC):
    """
    LLM API提供商的抽象基类。
    """
    @abstractmethod
    async def call_api(self, prompt_text: str, **kwargs) -> Tuple[str | None, str | None]:
        """
        调用LLM API并返回文本响应。

        Args:
            prompt_text (str): 用户提示词。
            **kwargs: system_prompt, model, max_tokens 等参数。

        Returns:
            一个元组 (response_text, error_message)。
        """
        raise NotImplementedError

    async def close(self):
        """可选的关闭或清理资源的方法。"""
        pass


class BaseImageProvider(ABC):
    """
    图片生成提供商的抽象基类。
    """
    @abstractmethod
    async def call_api(self, prompt: str, **kwargs) -> Tuple[str | None, str | None]:
        """
        生成单张图片。

        Args:
            prompt (str): 用于生成图片的提示词。
            **kwargs: aspect_ratio, resolution 等参数。

        Returns:
            一个元组 (image_url, error_message)。
            - 成功时, image_url 是生成图片的地址, error_message 为 None。
            - 失败时, image_url 为 None, error_message 包含错误描述。
        """
        raise NotImplementedError

    async def close(self):
        """可选的关闭或清理资源的方法。"""
        pass


class BaseImageEditorProvider(ABC):
    """
    图片编辑提供商的抽象基类。
    """
    @abstractmethod
    async def call_api(self, prompt: str, image_urls: list[str], **kwargs) -> Tuple[str | None, str | None]:
        """
        根据文本指令编辑图片。

        Args:
            prompt (str): 用于编辑图片的文本指令。
            image_urls (list[str]): 输入图片地址列表。
            **kwargs: resolution 等参数。

        Returns:
            一个元组 (output_image_url, error_message)。
        """
        raise NotImplementedError

    async def close(self):
        """可选的关闭或清理资源的方法。"""
        pass


class BaseVisionProvider(ABC):
    """
    视觉理解提供商的抽象基类。
    """
    @abstractmethod
    async def call_api(self, prompt_text: str, image_urls: list[str], **kwargs) -> Tuple[str | None, str | None]:
        """
        调用视觉API的核心方法。

        Returns:
            一个元组 (content, error_message)。
        """
        raise NotImplementedError

    async def close(self):
        """可选的关闭或清理资源的方法。"""
        pass


class BaseStorageProvider(ABC):
    """
    文件上传提供商的抽象基类。
    """
    @abstractmethod
    async def call_api(self, data: bytes, content_type: str, file_name: str) -> Tuple[str | None, str | None]:
        """
        上传二进制内容，返回 (url, error_message)。
        """
        raise NotImplementedError

    async def close(self):
        """可选的关闭或清理资源的方法。"""
        pass
