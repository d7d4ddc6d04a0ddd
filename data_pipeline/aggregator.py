"""
结果聚合 (Progress/Result Aggregator)

按结算结果到达的顺序 (窗口顺序，窗口内按完成先后) 处理：
  - 成功: 分配下一个顺序编号 -> 写入结果集合 -> completed + 1
  - 失败: failed + 1，保留失败原因和原始位置
每处理一条都发出一次进度事件。编号在聚合时分配而不是在任务完成时分配，
所以即使有任务失败，编号也连续、不重复。
"""
from typing import Iterator, List

from config import settings
from data_pipeline.progress import ProgressReporter
from data_pipeline.schemas import (
    GenerationMode,
    ResultItem,
    RunState,
    RunSummary,
    SettlementOutcome,
    UnitFailure,
    UnitSuccess,
    build_result_item,
)


class ResultCollection:
    """
    内存中的有序结果集合。编号计数器跨运行保留，直到 clear()。
    """

    def __init__(self):
        self._items: List[ResultItem] = []
        self._counter = 0

    def allocate_id(self) -> str:
        self._counter += 1
        return str(self._counter).zfill(settings.SEQUENCE_ID_WIDTH)

    def append(self, item: ResultItem):
        self._items.append(item)

    def clear(self):
        self._items = []
        self._counter = 0

    @property
    def high_water_mark(self) -> int:
        return self._counter

    @property
    def items(self) -> List[ResultItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ResultItem]:
        return iter(list(self._items))


class ResultAggregator:

    def __init__(self, results: ResultCollection, run_state: RunState, mode: GenerationMode, reporter: ProgressReporter):
        self.results = results
        self.run_state = run_state
        self.mode = mode
        self.reporter = reporter
        self.failures: List[UnitFailure] = []

    def consume(self, outcome: SettlementOutcome):
        state = self.run_state
        if isinstance(outcome, UnitSuccess):
            item = build_result_item(outcome.output, self.results.allocate_id(), self.mode)
            self.results.append(item)
            state.completed += 1
            self.reporter.on_result(item)
            self.reporter.on_log(f"✅ #{item.sequence_id} complete", "success")
        else:
            state.failed += 1
            self.failures.append(outcome)
            self.reporter.on_log(f"❌ {outcome.index + 1} failed: {outcome.reason or 'Unknown error'}", "error")

        self.reporter.on_progress(state.completed + state.failed, state.total, f"{state.completed}/{state.total} done")

    def finish(self, stopped: bool = False) -> RunSummary:
        state = self.run_state
        fail_info = f" ({state.failed} failed)" if state.failed else ""
        if stopped:
            self.reporter.on_progress(state.completed + state.failed, state.total, "Stopped")
            self.reporter.on_log(
                f"⏹️ Stopped: {state.completed} {self.mode.item_label} generated{fail_info}", "info"
            )
        else:
            self.reporter.on_progress(state.total, state.total, "Complete!")
            self.reporter.on_log(f"🎉 Done! {state.completed} {self.mode.item_label} generated{fail_info}", "success")

        return RunSummary(
            completed=state.completed,
            failed=state.failed,
            total=state.total,
            stopped=stopped,
            failures=list(self.failures),
        )
