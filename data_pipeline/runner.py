"""
运行编排 (Run Orchestration)

DatasetGenerator 是流水线对外的入口：
  - start_run(theme, context, config): 校验 -> 凭证检查 -> [上传参考图] -> 规划 -> 窗口调度 -> 聚合
  - request_stop(): 设置协作式取消标志
  - clear_results(): 清空内存中的结果集合并重置编号

同一时间只允许一次运行。结果集合跨运行累积，直到显式清空；运行以失败结束时，
已完成的部分结果仍然可以导出。
"""
import mimetypes
from pathlib import Path

from api.errors import AuthError, InvalidRunError, PlanError, RemoteError
from api.factory import Capabilities
from api.fal import CredentialStore
from config import settings
from data_pipeline.aggregator import ResultAggregator, ResultCollection
from data_pipeline.generate_images import PipelineContext, build_item_pipeline
from data_pipeline.generate_prompts import PromptPlanGenerator
from data_pipeline.progress import ProgressReporter
from data_pipeline.scheduler import BatchScheduler
from data_pipeline.schemas import GenerationMode, ModeContext, PipelineConfig, RunState, RunSummary
from utils.logger import logger


def validate_run(theme: str, context: ModeContext, config: PipelineConfig):
    """
    在发出任何远程调用之前校验运行参数。

    Raises:
        InvalidRunError: 参数不合法。
    """
    if not 1 <= config.count <= settings.MAX_PROMPT_COUNT:
        raise InvalidRunError(
            f"Maximum {settings.MAX_PROMPT_COUNT} items allowed per run, got {config.count}. "
            "Please enter a number between 1 and 40; run multiple generations to accumulate more."
        )
    if not theme or not theme.strip():
        raise InvalidRunError("Please fill in the dataset theme.")
    if context.mode is GenerationMode.PAIR and not context.transformation.strip():
        raise InvalidRunError("Please fill in the transformation to learn.")
    if context.mode is GenerationMode.REFERENCE and not (config.reference_asset_url or context.reference_image_path):
        raise InvalidRunError("Please provide a reference image.")


class DatasetGenerator:
    """
    批量生成数据集的高层入口。

    _active 表示有一次运行尚未返回；run_state.is_running 只是协作式取消标志。
    请求停止后，直到当前窗口跑完、start_run 返回之前，都不能开始新的运行。
    """

    def __init__(self, capabilities: Capabilities, credentials: CredentialStore):
        self.capabilities = capabilities
        self.credentials = credentials
        self.run_state = RunState()
        self.results = ResultCollection()
        self.planner = PromptPlanGenerator(capabilities.llm)
        self._active = False
        self._reporter: ProgressReporter | None = None

    @property
    def is_running(self) -> bool:
        return self._active

    async def start_run(
        self,
        theme: str,
        context: ModeContext,
        config: PipelineConfig,
        reporter: ProgressReporter | None = None,
    ) -> RunSummary:
        """
        执行一次完整的运行并返回汇总。

        Raises:
            InvalidRunError: 参数校验失败或已有运行在进行中 (不会发出任何远程调用)。
            AuthError: 未配置 API Key。
            PlanError: 提示词规划失败。
            RemoteError: Reference 模式下参考图上传失败。
        """
        reporter = reporter or ProgressReporter()
        if self._active:
            raise InvalidRunError("A generation run is already in progress.")
        validate_run(theme, context, config)
        self.credentials.require()

        self._active = True
        self._reporter = reporter
        self.run_state.reset(total=config.count)
        self.run_state.is_running = True
        try:
            reporter.on_progress(0, config.count, "Generating prompts with AI...")

            reference_url = config.reference_asset_url
            if context.mode is GenerationMode.REFERENCE and not reference_url:
                reporter.on_log("📤 Uploading reference image...")
                reference_url = await self._upload_reference(context.reference_image_path)
                reporter.on_log("✅ Reference uploaded", "success")

            reporter.on_log("🤖 Generating creative prompts...")
            units = await self.planner.plan(theme.strip(), context, config.count, config.prompt_model)
            reporter.on_log(f"✅ Generated {len(units)} unique prompts", "success")

            self.run_state.total = len(units)
            ctx = PipelineContext(
                image=self.capabilities.image,
                editor=self.capabilities.editor,
                vision=self.capabilities.vision,
                config=config,
                reporter=reporter,
                total=len(units),
                reference_asset_url=reference_url,
            )
            pipeline = build_item_pipeline(context.mode, ctx)
            scheduler = BatchScheduler(config.max_concurrent, self.run_state)
            aggregator = ResultAggregator(self.results, self.run_state, context.mode, reporter)

            reporter.on_log(f"⚡ Starting parallel generation ({config.max_concurrent} at a time)...")
            async for outcome in scheduler.execute(units, pipeline):
                aggregator.consume(outcome)

            settled = self.run_state.completed + self.run_state.failed
            summary = aggregator.finish(stopped=settled < self.run_state.total)
            if summary.completed:
                reporter.on_log("📥 Export the collection to save your dataset")
            return summary
        except (AuthError, PlanError, RemoteError) as e:
            reporter.on_log(f"❌ Error: {e}", "error")
            raise
        finally:
            self.run_state.is_running = False
            self._reporter = None
            self._active = False

    async def _upload_reference(self, image_path: str | None) -> str:
        path = Path(image_path or "")
        if not path.is_file():
            raise InvalidRunError(f"Reference image not found: {image_path}")

        content_type = mimetypes.guess_type(path.name)[0] or "image/png"
        url, error = await self.capabilities.storage.call_api(path.read_bytes(), content_type, path.name)
        if error or not url:
            raise RemoteError(f"Reference upload failed: {error or 'no URL returned'}")
        logger.info(f"参考图已上传: {url}")
        return url

    def request_stop(self):
        """
        请求协作式停止：当前窗口内已启动的任务会跑完，之后不再调度新的窗口。
        """
        if self._active and self.run_state.is_running:
            self.run_state.is_running = False
            self._reporter.on_log("⏹️ Stopped by user", "info")

    def clear_results(self) -> int:
        """清空结果集合并重置编号，返回被清除的条目数。"""
        cleared = len(self.results)
        self.results.clear()
        if not self._active:
            self.run_state.reset()
        logger.info(f"已清空 {cleared} 条结果。")
        return cleared
