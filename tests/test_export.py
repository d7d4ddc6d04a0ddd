import asyncio
import zipfile

import httpx
import pytest

from data_pipeline.cost import estimate_cost, image_cost
from data_pipeline.export import export_archive
from data_pipeline.schemas import GenerationMode, ImageResultItem, PairResultItem, Resolution


def pair_item(sequence_id):
    return PairResultItem(
        sequence_id=sequence_id,
        start_image_url=f"https://cdn.test/{sequence_id}/start.png",
        end_image_url=f"https://cdn.test/{sequence_id}/end.png",
        start_prompt="a cafe",
        end_prompt="make it night",
        action_name="to_night",
        text="ohwx to_night",
    )


def mock_http_client():
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=request.url.path.encode())))


def test_export_pair_items(tmp_path):
    archive = tmp_path / "out" / "dataset.zip"
    result = asyncio.run(export_archive([pair_item("0001"), pair_item("0002")], archive, mock_http_client()))

    assert result == archive
    with zipfile.ZipFile(archive) as zf:
        assert sorted(zf.namelist()) == [
            "0001.txt", "0001_end.png", "0001_start.png",
            "0002.txt", "0002_end.png", "0002_start.png",
        ]
        assert zf.read("0001_end.png") == b"/0001/end.png"
        assert zf.read("0002.txt").decode() == "ohwx to_night"


def test_export_image_items(tmp_path):
    item = ImageResultItem(
        sequence_id="0007", image_url="https://cdn.test/7.png", prompt="p", text="caption", mode=GenerationMode.SINGLE
    )
    archive = asyncio.run(export_archive([item], tmp_path / "d.zip", mock_http_client()))
    with zipfile.ZipFile(archive) as zf:
        assert sorted(zf.namelist()) == ["0007.png", "0007.txt"]


def test_export_empty_collection_raises(tmp_path):
    with pytest.raises(ValueError):
        asyncio.run(export_archive([], tmp_path / "d.zip", mock_http_client()))


def test_export_download_failure_propagates(tmp_path):
    def handler(request):
        # 第二张图下载失败
        if request.url.path.endswith("end.png"):
            return httpx.Response(500)
        return httpx.Response(200, content=b"png")

    archive = tmp_path / "d.zip"
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(export_archive([pair_item("0001")], archive, client))
    assert not archive.exists()
    assert list(tmp_path.iterdir()) == []


def test_cost_estimate():
    assert image_cost(Resolution.R4K) == 0.30
    assert image_cost("1K") == 0.15
    # 10 pairs = 20 images at 1K + one planning call
    assert estimate_cost(GenerationMode.PAIR, 10, Resolution.R1K) == 3.02
    # captions: one per pair (end image only)
    assert estimate_cost(GenerationMode.PAIR, 10, Resolution.R1K, use_vision=True) == 3.04
    assert estimate_cost(GenerationMode.SINGLE, 10, Resolution.R4K, use_vision=True) == 3.04
