"""成本估算。价格全部来自 settings 中的价格表。"""
from config import settings
from data_pipeline.schemas import GenerationMode, Resolution


def image_cost(resolution: Resolution | str) -> float:
    key = resolution.value if isinstance(resolution, Resolution) else resolution
    return settings.RESOLUTION_COSTS[key]


def estimate_cost(mode: GenerationMode, count: int, resolution: Resolution | str, use_vision: bool = False) -> float:
    """
    估算一次运行的美元成本: 图片费用 + 打标费用 + 一次提示词规划。
    每个条目只打标一次 (Pair 模式只给结束图打标)。
    """
    images = count * mode.images_per_item
    vision = count * settings.VISION_CAPTION_COST if use_vision else 0.0
    return round(images * image_cost(resolution) + vision + settings.PROMPT_PLAN_COST, 4)
