"""
数据流水线协议定义模块 (Data Pipeline Schemas)

角色: 协议层 (Protocol Layer)
功能: 定义数据流水线中各阶段的标准数据结构 (Pydantic Models)，确保上下游数据一致性。
核心模型:
  - PromptUnit:        [规划产物] LLM 规划出的一条生成任务，按模式区分字段。
  - PipelineConfig:    [运行参数] 一次运行的只读配置。
  - PairOutput / ImageOutput: [中间态] 单条流水线产出，尚未分配编号。
  - ResultItem:        [终态] 带顺序编号的结果，写入结果集合后不可变。
  - SettlementOutcome: [瞬态] 单条任务的结算结果 (成功 / 失败)。
  - RunState / RunSummary: 运行状态与最终汇总。
"""
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import settings

# ==============================================================================
# 1. 枚举 (Enumerations)
# ==============================================================================

class GenerationMode(str, Enum):
    """
    生成模式，一次运行中固定不变。
    """
    PAIR = "pair"            # 起始图 + 编辑后的结束图 (学习变换)
    SINGLE = "single"        # 单图 (学习风格)
    REFERENCE = "reference"  # 基于参考图的变体 (学习主体)

    @property
    def images_per_item(self) -> int:
        return 2 if self is GenerationMode.PAIR else 1

    @property
    def item_label(self) -> str:
        return "pairs" if self is GenerationMode.PAIR else "images"


class Resolution(str, Enum):
    R1K = "1K"
    R2K = "2K"
    R4K = "4K"


# ==============================================================================
# 2. 规划产物 (Prompt Units)
# ==============================================================================

class PairPromptUnit(BaseModel):
    """
    Pair 模式的一条任务：起始图描述 + 变换指令 + 动作名。
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_prompt: str = Field(..., min_length=1, description="起始图的详细描述")
    edit_prompt: str = Field(..., min_length=1, description="从起始图变换到结束图的指令")
    action_name: str = Field(..., min_length=1, description="变换类型的简短标识")


class ImagePromptUnit(BaseModel):
    """
    Single / Reference 模式的一条任务。
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: str = Field(..., min_length=1)


PromptUnit = Union[PairPromptUnit, ImagePromptUnit]

PROMPT_UNIT_SCHEMAS = {
    GenerationMode.PAIR: PairPromptUnit,
    GenerationMode.SINGLE: ImagePromptUnit,
    GenerationMode.REFERENCE: ImagePromptUnit,
}


# ==============================================================================
# 3. 运行参数 (Run Parameters)
# ==============================================================================

class PipelineConfig(BaseModel):
    """
    一次运行的参数。运行开始前构造，运行期间只读。
    count 的 1..40 范围由 DatasetGenerator.start_run 校验。
    """
    model_config = ConfigDict(frozen=True)

    count: int = 20
    aspect_ratio: str = settings.DEFAULT_ASPECT_RATIO
    resolution: Resolution = Resolution.R1K
    use_vision_caption: bool = False
    caption_model: str = settings.VISION_API_CONFIGS["openrouter_vision"]["model"]
    prompt_model: str = settings.LLM_API_CONFIGS["any_llm"]["model"]
    trigger_word: str = ""
    max_concurrent: int = Field(settings.DEFAULT_MAX_CONCURRENT, ge=1, le=settings.MAX_CONCURRENT_LIMIT)
    reference_asset_url: Optional[str] = None

    @field_validator("aspect_ratio")
    @classmethod
    def _check_aspect_ratio(cls, value: str) -> str:
        if value not in settings.SUPPORTED_ASPECT_RATIOS:
            raise ValueError(f"不支持的宽高比: {value}")
        return value

    @field_validator("trigger_word")
    @classmethod
    def _strip_trigger_word(cls, value: str) -> str:
        return value.strip()


class ModeContext(BaseModel):
    """
    与模式相关的规划输入。
    """
    model_config = ConfigDict(frozen=True)

    mode: GenerationMode = GenerationMode.PAIR
    transformation: str = ""                    # Pair 模式必填：要学习的变换
    action_name: str = ""                       # Pair 模式可选：指定动作名
    system_prompt: str = ""                     # 可选：覆盖默认的系统提示词
    reference_image_path: Optional[str] = None  # Reference 模式：待上传的本地参考图


# ==============================================================================
# 4. 结果 (Results)
# ==============================================================================

class PairOutput(BaseModel):
    """
    Pair 流水线的产出 (尚未编号)。
    """
    start_image_url: str
    end_image_url: str
    start_prompt: str
    end_prompt: str
    action_name: str
    text: str


class ImageOutput(BaseModel):
    """
    Single / Reference 流水线的产出 (尚未编号)。
    """
    image_url: str
    prompt: str
    text: str


ItemOutput = Union[PairOutput, ImageOutput]


class PairResultItem(PairOutput):
    model_config = ConfigDict(frozen=True)

    sequence_id: str
    mode: GenerationMode = GenerationMode.PAIR


class ImageResultItem(ImageOutput):
    model_config = ConfigDict(frozen=True)

    sequence_id: str
    mode: GenerationMode


ResultItem = Union[PairResultItem, ImageResultItem]


def build_result_item(output: ItemOutput, sequence_id: str, mode: GenerationMode) -> ResultItem:
    """把流水线产出和聚合阶段分配的编号合成为最终结果。"""
    if isinstance(output, PairOutput):
        return PairResultItem(**output.model_dump(), sequence_id=sequence_id)
    return ImageResultItem(**output.model_dump(), sequence_id=sequence_id, mode=mode)


# ==============================================================================
# 5. 结算与运行状态 (Settlement & Run State)
# ==============================================================================

class UnitSuccess(BaseModel):
    kind: Literal["success"] = "success"
    index: int  # 在规划序列中的原始位置 (0-based)
    output: ItemOutput


class UnitFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    index: int
    reason: str


SettlementOutcome = Union[UnitSuccess, UnitFailure]


class RunState(BaseModel):
    """
    单次运行的可变状态。is_running 同时是协作式取消标志：
    外部清除后，调度器在下一个窗口开始前停止。
    """
    is_running: bool = False
    completed: int = 0
    failed: int = 0
    total: int = 0

    def reset(self, total: int = 0):
        self.is_running = False
        self.completed = 0
        self.failed = 0
        self.total = total


class RunSummary(BaseModel):
    completed: int
    failed: int
    total: int
    stopped: bool = False
    failures: List[UnitFailure] = Field(default_factory=list)
