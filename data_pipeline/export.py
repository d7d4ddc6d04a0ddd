"""
数据集导出

把内存中的结果集合打包成 ZIP：
  - Pair:             {id}_start.png, {id}_end.png, {id}.txt
  - Single/Reference: {id}.png, {id}.txt
txt 里是训练用的描述文本 (已带触发词)。
"""
import time
import zipfile
from pathlib import Path
from typing import Iterable

import httpx

from config import settings
from data_pipeline.schemas import PairResultItem, ResultItem
from utils.logger import logger


def default_archive_path() -> Path:
    return settings.EXPORTS_DIR / f"lora_dataset_{int(time.time() * 1000)}.zip"


async def _download(client: httpx.AsyncClient, url: str) -> bytes:
    response = await client.get(url, follow_redirects=True)
    response.raise_for_status()
    return response.content


async def export_archive(
    results: Iterable[ResultItem],
    output_path: str | Path | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Path:
    """
    下载所有图片并写入 ZIP 文件，返回文件路径。

    Raises:
        ValueError: 结果集合为空。
        httpx.HTTPError: 图片下载失败。
    """
    items = list(results)
    if not items:
        raise ValueError("No images to export! Generate some first.")

    archive_path = Path(output_path) if output_path else default_archive_path()
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    # 先写临时文件，全部下载成功后再改名，失败时不留下半个压缩包
    partial_path = archive_path.with_name(archive_path.name + ".part")

    client = http_client or httpx.AsyncClient(timeout=settings.API_TIMEOUT)
    try:
        with zipfile.ZipFile(partial_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for item in items:
                if isinstance(item, PairResultItem):
                    zf.writestr(f"{item.sequence_id}_start.png", await _download(client, item.start_image_url))
                    zf.writestr(f"{item.sequence_id}_end.png", await _download(client, item.end_image_url))
                else:
                    zf.writestr(f"{item.sequence_id}.png", await _download(client, item.image_url))
                zf.writestr(f"{item.sequence_id}.txt", item.text)
        partial_path.replace(archive_path)
    finally:
        partial_path.unlink(missing_ok=True)
        if http_client is None:
            await client.aclose()

    logger.success(f"数据集已导出: {archive_path} ({len(items)} 条)")
    return archive_path
