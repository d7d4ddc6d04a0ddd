"""
fal 远程能力客户端

功能：向 fal 平台发出单次逻辑请求 (文本生成、文生图、图片编辑、图片打标、文件上传)，
      返回解析后的 JSON 结果，或抛出带类型的错误。
角色：所有 api/ 下具体提供商共用的传输层。
架构：凭证保存在 CredentialStore 中，每次请求时实时读取，因此运行途中更换 Key
      只影响尚未发出的请求。本层不做任何自动重试，由调用方决定。
"""
from typing import Any

import httpx

from api.errors import AuthError, RemoteError
from config import settings
from utils.logger import logger

GENERIC_ERROR_MESSAGE = "FAL API call failed"


class CredentialStore:
    """
    进程内共享的 fal API Key 容器。读多写少，任何时候都可以更新。
    """

    def __init__(self, api_key: str | None = None):
        self._api_key = (api_key or "").strip()

    @classmethod
    def from_settings(cls) -> "CredentialStore":
        return cls(settings.FAL_API_KEY)

    def get(self) -> str:
        return self._api_key

    def set(self, api_key: str | None):
        self._api_key = (api_key or "").strip()
        if self._api_key:
            logger.info("fal API Key 已更新。")
        else:
            logger.info("fal API Key 已清除。")

    def clear(self):
        self.set(None)

    def require(self) -> str:
        """返回当前 Key；没有配置时抛出 AuthError。"""
        if not self._api_key:
            raise AuthError("Please add your FAL API key first (set FAL_KEY in the environment or .env).")
        return self._api_key


def extract_error_message(response: httpx.Response) -> str:
    """
    从错误响应中提取最详细的诊断信息。
    fal 的错误体通常是 {"detail": "..."} 或 {"detail": [{"msg": "...", "loc": [...]}]}。
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return f"HTTP {response.status_code} - {text}" if text else GENERIC_ERROR_MESSAGE

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str) and detail.strip():
            return detail.strip()
        if isinstance(detail, list):
            messages = []
            for entry in detail:
                if isinstance(entry, dict) and entry.get("msg"):
                    messages.append(str(entry["msg"]))
                elif isinstance(entry, str):
                    messages.append(entry)
            if messages:
                return "; ".join(messages)
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message")
            if isinstance(value, str) and value.strip():
                return value.strip()
    return GENERIC_ERROR_MESSAGE


class FalClient:
    """
    使用 httpx 直接调用 fal 的同步接口 (https://fal.run/<endpoint>)。
    """

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str | None = None,
        storage_url: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.credentials = credentials
        self.base_url = (base_url or settings.FAL_RUN_URL).rstrip("/")
        self.storage_url = storage_url or settings.FAL_STORAGE_URL
        self.client = http_client or httpx.AsyncClient(timeout=timeout or settings.API_TIMEOUT)

    def _headers(self) -> dict[str, str]:
        # 每次请求都重新读取 Key
        return {"Authorization": f"Key {self.credentials.require()}"}

    async def invoke(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        调用一个 fal 能力端点并返回响应 JSON。

        Raises:
            AuthError: 没有配置 API Key (不会发出网络请求)。
            RemoteError: 网络错误、非 2xx 响应或响应不是 JSON 对象。
        """
        headers = self._headers()
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug(f"FAL request to {endpoint}: {payload}")

        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"FAL transport error for {endpoint}: {e}")
            raise RemoteError(str(e) or GENERIC_ERROR_MESSAGE) from e

        if response.is_error:
            message = extract_error_message(response)
            logger.error(f"FAL error for {endpoint} (HTTP {response.status_code}): {message}")
            raise RemoteError(message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteError(f"API response was not valid JSON. Raw text: {response.text[:200]}") from e
        if not isinstance(data, dict):
            raise RemoteError("API response was not a JSON object.")

        logger.debug(f"FAL response from {endpoint}: {data}")
        # 部分代理会把结果包一层 {"data": ...}
        inner = data.get("data")
        return inner if isinstance(inner, dict) else data

    async def upload(self, data: bytes, content_type: str, file_name: str) -> str:
        """
        上传一个文件到 fal 存储并返回可公开访问的 URL。
        先向存储服务申请上传地址，再 PUT 文件内容。
        """
        headers = self._headers()
        try:
            initiate = await self.client.post(
                self.storage_url,
                json={"content_type": content_type, "file_name": file_name},
                headers=headers,
            )
            if initiate.is_error:
                raise RemoteError(extract_error_message(initiate), status_code=initiate.status_code)

            try:
                target = initiate.json()
            except ValueError as e:
                raise RemoteError(
                    f"Storage response was not valid JSON. Raw text: {initiate.text[:200]}"
                ) from e
            if not isinstance(target, dict):
                raise RemoteError("Storage response was not a JSON object.")
            upload_url = target.get("upload_url")
            file_url = target.get("file_url")
            if not upload_url or not file_url:
                raise RemoteError("Storage service did not return an upload URL.")

            put = await self.client.put(upload_url, content=data, headers={"Content-Type": content_type})
            if put.is_error:
                raise RemoteError(extract_error_message(put), status_code=put.status_code)
        except httpx.HTTPError as e:
            logger.error(f"FAL upload transport error: {e}")
            raise RemoteError(str(e) or GENERIC_ERROR_MESSAGE) from e

        logger.info(f"文件已上传: {file_name} -> {file_url}")
        return file_url

    async def close(self):
        """关闭 httpx 客户端。"""
        if self.client:
            await self.client.aclose()
            logger.debug("FalClient (httpx) client closed.")
