"""
批量生成 LoRA 训练数据集 (命令行入口)

功能: 按主题规划提示词 -> 并发生成图片 (Pair / Single / Reference) -> [可选] 视觉打标 -> 导出 ZIP。
特性:
  - 并发窗口: 每次最多 --max-concurrent 条任务同时在途，窗口之间串行。
  - 部分失败隔离: 单条失败不影响其他条目，最后汇总成功/失败数量。
  - Ctrl+C 请求协作式停止: 当前窗口跑完后停止，已完成的结果照常导出。
输出: outputs/datasets/lora_dataset_<timestamp>.zip (或 --output 指定的路径)

执行命令示例:
`python data_pipeline/generate_dataset.py "studio portraits" --mode pair --transformation "add dramatic rim light" --count 10`
"""
import argparse
import asyncio
import signal
import sys
from pathlib import Path

import httpx

# 确保可以导入项目根目录的模块
sys.path.append(str(Path(__file__).resolve().parent.parent))

from pydantic import ValidationError

from api.errors import DatasetError
from api.factory import ApiClientFactory
from api.fal import CredentialStore
from config import settings
from data_pipeline.cost import estimate_cost
from data_pipeline.export import export_archive
from data_pipeline.progress import TqdmProgressReporter
from data_pipeline.runner import DatasetGenerator
from data_pipeline.schemas import GenerationMode, ModeContext, PipelineConfig, Resolution
from utils.logger import logger, setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="使用 fal 批量生成 LoRA 训练数据集")
    parser.add_argument("theme", help="数据集主题")
    parser.add_argument("--mode", choices=[m.value for m in GenerationMode], default=GenerationMode.PAIR.value)
    parser.add_argument("--count", type=int, default=20, help=f"生成数量 (1-{settings.MAX_PROMPT_COUNT})")
    parser.add_argument("--transformation", default="", help="Pair 模式: 要学习的变换")
    parser.add_argument("--action-name", default="", help="Pair 模式: 指定动作名")
    parser.add_argument("--reference-image", default=None, help="Reference 模式: 本地参考图路径")
    parser.add_argument("--system-prompt-file", default=None, help="覆盖默认系统提示词的文本文件")
    parser.add_argument("--trigger-word", default="", help="加在每条描述前的触发词")
    parser.add_argument("--max-concurrent", type=int, default=settings.DEFAULT_MAX_CONCURRENT)
    parser.add_argument("--aspect-ratio", choices=settings.SUPPORTED_ASPECT_RATIOS, default=settings.DEFAULT_ASPECT_RATIO)
    parser.add_argument("--resolution", choices=[r.value for r in Resolution], default=settings.DEFAULT_RESOLUTION)
    parser.add_argument("--vision-caption", action="store_true", help="使用视觉模型为图片生成描述")
    parser.add_argument("--caption-model", default=settings.VISION_API_CONFIGS["openrouter_vision"]["model"])
    parser.add_argument("--llm-model", default=settings.LLM_API_CONFIGS["any_llm"]["model"])
    parser.add_argument("--output", default=None, help="导出的 ZIP 路径")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def build_inputs(args: argparse.Namespace) -> tuple[ModeContext, PipelineConfig]:
    system_prompt = ""
    if args.system_prompt_file:
        system_prompt = Path(args.system_prompt_file).read_text(encoding="utf-8")

    context = ModeContext(
        mode=GenerationMode(args.mode),
        transformation=args.transformation,
        action_name=args.action_name,
        system_prompt=system_prompt,
        reference_image_path=args.reference_image,
    )
    config = PipelineConfig(
        count=args.count,
        aspect_ratio=args.aspect_ratio,
        resolution=Resolution(args.resolution),
        use_vision_caption=args.vision_caption,
        caption_model=args.caption_model,
        prompt_model=args.llm_model,
        trigger_word=args.trigger_word,
        max_concurrent=args.max_concurrent,
    )
    return context, config


async def main(args: argparse.Namespace) -> int:
    try:
        context, config = build_inputs(args)
    except ValidationError as e:
        logger.error(f"参数错误: {e}")
        return 1

    cost = estimate_cost(context.mode, config.count, config.resolution, config.use_vision_caption)
    logger.info(
        f"Generate {config.count} {context.mode.item_label} | ⚡ {config.max_concurrent} parallel requests | "
        f"💰 Estimated cost: ~${cost:.2f}"
    )

    credentials = CredentialStore.from_settings()
    capabilities = ApiClientFactory.create_capabilities(credentials)
    generator = DatasetGenerator(capabilities, credentials)
    reporter = TqdmProgressReporter(unit=context.mode.item_label)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, generator.request_stop)
    except (NotImplementedError, RuntimeError):
        # Windows 事件循环不支持 add_signal_handler
        pass

    try:
        summary = await generator.start_run(args.theme, context, config, reporter)
    except DatasetError as e:
        logger.error(f"生成失败: {e}")
        return 1
    finally:
        reporter.close()
        await capabilities.close()

    for failure in summary.failures:
        logger.warning(f"  #{failure.index + 1}: {failure.reason}")

    if len(generator.results) == 0:
        logger.warning("没有可导出的结果。")
        return 1

    try:
        archive = await export_archive(generator.results, args.output)
    except httpx.HTTPError as e:
        logger.error(f"导出失败，图片下载出错: {e}")
        return 1
    print(f"Dataset: {archive}")
    return 0


def cli(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings.create_output_dirs()
    setup_logging(console_level=args.log_level, log_dir=settings.LOGS_DIR)
    return asyncio.run(main(args))


if __name__ == "__main__":
    raise SystemExit(cli())
