"""
统一配置模块

集中管理项目中所有可配置的参数，包括：
1. 全局流水线控制参数 (如单次生成数量上限、并发窗口大小)
2. 远程能力配置 (fal 端点、模型、提供商选择)
3. 价格表 (成本估算只读取这里的数据)
4. 文件输入输出路径
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# 加载 .env 文件中的环境变量
# 这行代码会自动查找项目根目录下的 .env 文件并加载它
load_dotenv()

# ==============================================================================
# 1. 全局流水线控制 (Global Pipeline Controls)
# ==============================================================================

# 单次运行允许生成的最大条目数。超过则直接拒绝，需要更多数据请多次运行（结果会在内存中累积）。
MAX_PROMPT_COUNT = 40

# 每个并发窗口默认同时处理的条目数。
DEFAULT_MAX_CONCURRENT = 3

# 并发窗口的硬上限，防止误配置把远端服务打爆。
MAX_CONCURRENT_LIMIT = int(os.getenv("MAX_CONCURRENT_LIMIT", "8"))

# 结果编号的位数 (0001, 0002, ...)
SEQUENCE_ID_WIDTH = 4


# ==============================================================================
# 2. 基础路径配置 (Base Path Configurations)
# ==============================================================================
# 项目根目录
BASE_DIR = Path(__file__).parent.parent

# 输出目录
OUTPUTS_DIR = BASE_DIR / "outputs"
EXPORTS_DIR = OUTPUTS_DIR / "datasets"
LOGS_DIR = OUTPUTS_DIR / "logs"


def create_output_dirs():
    """创建所有必需的输出文件夹"""
    for d in (OUTPUTS_DIR, EXPORTS_DIR, LOGS_DIR):
        d.mkdir(parents=True, exist_ok=True)


# ==============================================================================
# 3. 远程能力配置 (Remote Capabilities)
# ==============================================================================
# 所有能力都通过 fal 的同步接口调用: POST {FAL_RUN_URL}/{endpoint}

FAL_API_KEY = os.getenv("FAL_KEY") or os.getenv("FAL_API_KEY")
FAL_RUN_URL = os.getenv("FAL_RUN_URL", "https://fal.run")
FAL_STORAGE_URL = os.getenv("FAL_STORAGE_URL", "https://rest.alpha.fal.ai/storage/upload/initiate")

# ------------------------------------------------------------------------------
# 配置: api/llm (提示词规划)
# ------------------------------------------------------------------------------
LLM_API_PROVIDER = "any_llm"  # 可选值: "any_llm"

LLM_API_CONFIGS = {
    "any_llm": {
        "endpoint": "fal-ai/any-llm",
        "model": os.getenv("PROMPT_MODEL", "google/gemini-2.5-flash"),
    }
}

# 提示词规划请求的输出 token 上限。40 组详细提示词需要足够宽松的上限。
PLAN_MAX_TOKENS = 16000

# ------------------------------------------------------------------------------
# 配置: api/image (文生图)
# ------------------------------------------------------------------------------
IMAGE_API_PROVIDER = "nano_banana_pro"  # 可选值: "nano_banana_pro"

IMAGE_API_CONFIGS = {
    "nano_banana_pro": {
        "endpoint": "fal-ai/nano-banana-pro",
    }
}

# nano-banana-pro 支持的宽高比
SUPPORTED_ASPECT_RATIOS = ["21:9", "16:9", "3:2", "4:3", "5:4", "1:1", "4:5", "3:4", "2:3", "9:16"]
DEFAULT_ASPECT_RATIO = "1:1"

# ------------------------------------------------------------------------------
# 配置: api/edit (图生图 / 编辑)
# ------------------------------------------------------------------------------
IMAGE_EDITOR_API_PROVIDER = "nano_banana_pro_edit"  # 可选值: "nano_banana_pro_edit"

IMAGE_EDITOR_API_CONFIGS = {
    "nano_banana_pro_edit": {
        "endpoint": "fal-ai/nano-banana-pro/edit",
        # 编辑接口始终使用 auto，输出宽高比跟随输入图
        "aspect_ratio": "auto",
    }
}

# ------------------------------------------------------------------------------
# 配置: api/vision (图片打标)
# ------------------------------------------------------------------------------
VISION_API_PROVIDER = "openrouter_vision"  # 可选值: "openrouter_vision"

VISION_API_CONFIGS = {
    "openrouter_vision": {
        "endpoint": "openrouter/router/vision",
        "model": os.getenv("CAPTION_MODEL", "google/gemini-2.5-flash"),
        "temperature": 1.0,
    }
}

CAPTION_PROMPT = (
    "Caption this image for a text-to-image model. Describe everything visible in detail: "
    "subject, appearance, clothing, pose, expression, background, lighting, colors, style. "
    "Be specific and comprehensive."
)
CAPTION_SYSTEM_PROMPT = "Only answer the question, do not provide any additional information. Don't use markdown."

# ------------------------------------------------------------------------------
# 配置: api/storage (参考图上传)
# ------------------------------------------------------------------------------
STORAGE_API_PROVIDER = "fal_storage"  # 可选值: "fal_storage"

STORAGE_API_CONFIGS = {
    "fal_storage": {}
}


# ==============================================================================
# 4. 价格表 (Pricing, USD)
# ==============================================================================
# 每张图片的价格按分辨率档位区分。成本估算只读这张表，不写死在逻辑里。
RESOLUTION_COSTS = {
    "1K": 0.15,
    "2K": 0.15,
    "4K": 0.30,
}
DEFAULT_RESOLUTION = "1K"

VISION_CAPTION_COST = 0.002
PROMPT_PLAN_COST = 0.02


# ==============================================================================
#  5. 通用API调用行为 (适用于所有API客户端)
# ==============================================================================

# 单个HTTP请求的最长等待时间（秒）。图片生成走同步接口，耗时较长。
# 注意：远程调用不做自动重试，失败由调用方决定如何处理。
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "300"))
