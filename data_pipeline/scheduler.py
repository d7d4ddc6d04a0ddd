"""
批量调度器 (Batch Scheduler)

把有序的 PromptUnit 列表切成大小为 max_concurrent 的连续窗口，窗口内并发执行，
窗口之间严格串行：第 K+1 个窗口只会在第 K 个窗口的所有任务都结算之后才开始。
因此同时在途的任务数永远不超过 max_concurrent。

取消是协作式的：每个窗口开始前检查 RunState.is_running，已经启动的任务总是允许跑完。
跨窗口的 work stealing 可以提高吞吐，目前没有实现。
"""
import asyncio
from typing import AsyncIterator, Sequence

from data_pipeline.generate_images import ItemPipeline
from data_pipeline.schemas import PromptUnit, RunState, SettlementOutcome, UnitFailure, UnitSuccess
from utils.logger import logger


async def settle(pipeline: ItemPipeline, unit: PromptUnit, index: int) -> SettlementOutcome:
    """
    执行一条任务并把结果转成结算结果。任务内的异常不会向外传播。
    """
    try:
        output = await pipeline.run(unit, index)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        reason = str(e) or "Generation failed"
        logger.debug(f"Unit {index + 1} failed: {reason}")
        return UnitFailure(index=index, reason=reason)
    return UnitSuccess(index=index, output=output)


class BatchScheduler:

    def __init__(self, max_concurrent: int, run_state: RunState):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.max_concurrent = max_concurrent
        self.run_state = run_state

    def windows(self, units: Sequence[PromptUnit]) -> list[range]:
        """返回每个窗口覆盖的原始下标范围。"""
        size = self.max_concurrent
        return [range(start, min(start + size, len(units))) for start in range(0, len(units), size)]

    async def execute(self, units: Sequence[PromptUnit], pipeline: ItemPipeline) -> AsyncIterator[SettlementOutcome]:
        """
        逐个窗口执行，按到达顺序产出结算结果。
        """
        for window_number, window in enumerate(self.windows(units), start=1):
            if not self.run_state.is_running:
                logger.info(f"运行已停止，跳过剩余的窗口 (从第 {window.start + 1} 条开始)。")
                return

            logger.debug(f"Window {window_number}: units {window.start + 1}-{window.stop}")
            tasks = [asyncio.create_task(settle(pipeline, units[i], i)) for i in window]
            try:
                for next_done in asyncio.as_completed(tasks):
                    yield await next_done
            finally:
                # 消费方提前退出时也要等窗口内的任务全部结算，不留下游离的任务
                await asyncio.gather(*tasks, return_exceptions=True)
