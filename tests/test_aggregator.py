from conftest import RecordingReporter
from data_pipeline.aggregator import ResultAggregator, ResultCollection
from data_pipeline.schemas import (
    GenerationMode,
    ImageOutput,
    ImageResultItem,
    PairOutput,
    PairResultItem,
    RunState,
    UnitFailure,
    UnitSuccess,
)


def image_success(index):
    return UnitSuccess(index=index, output=ImageOutput(image_url=f"https://x/{index}.png", prompt="p", text="t"))


def test_ids_are_contiguous_despite_failures():
    results = ResultCollection()
    reporter = RecordingReporter()
    state = RunState(is_running=True, total=4)
    aggregator = ResultAggregator(results, state, GenerationMode.SINGLE, reporter)

    for outcome in (image_success(2), UnitFailure(index=0, reason="boom"), image_success(1), image_success(3)):
        aggregator.consume(outcome)

    assert [item.sequence_id for item in results] == ["0001", "0002", "0003"]
    assert [item.image_url for item in results] == ["https://x/2.png", "https://x/1.png", "https://x/3.png"]
    assert all(isinstance(item, ImageResultItem) and item.mode is GenerationMode.SINGLE for item in results)
    assert (state.completed, state.failed) == (3, 1)
    assert reporter.messages("error") == ["❌ 1 failed: boom"]
    assert [p[0] for p in reporter.progress] == [1, 2, 3, 4]
    assert reporter.progress[-1] == (4, 4, "3/4 done")
    assert len(reporter.results) == 3


def test_pair_outputs_become_pair_items():
    results = ResultCollection()
    aggregator = ResultAggregator(results, RunState(total=1), GenerationMode.PAIR, RecordingReporter())
    output = PairOutput(
        start_image_url="s", end_image_url="e", start_prompt="a", end_prompt="b", action_name="c", text="c"
    )
    aggregator.consume(UnitSuccess(index=0, output=output))
    item = results.items[0]
    assert isinstance(item, PairResultItem)
    assert item.sequence_id == "0001"


def test_counter_persists_across_runs_until_cleared():
    results = ResultCollection()
    for _ in range(2):
        aggregator = ResultAggregator(results, RunState(total=2), GenerationMode.SINGLE, RecordingReporter())
        aggregator.consume(image_success(0))
        aggregator.consume(image_success(1))

    assert [item.sequence_id for item in results] == ["0001", "0002", "0003", "0004"]
    assert results.high_water_mark == 4

    results.clear()
    assert len(results) == 0
    assert results.allocate_id() == "0001"


def test_finish_reports_completion_and_stop():
    reporter = RecordingReporter()
    state = RunState(total=3, completed=2, failed=1)
    aggregator = ResultAggregator(ResultCollection(), state, GenerationMode.PAIR, reporter)

    summary = aggregator.finish()
    assert reporter.progress[-1] == (3, 3, "Complete!")
    assert reporter.messages("success")[-1] == "🎉 Done! 2 pairs generated (1 failed)"
    assert (summary.completed, summary.failed, summary.stopped) == (2, 1, False)

    summary = aggregator.finish(stopped=True)
    assert reporter.progress[-1] == (3, 3, "Stopped")
    assert summary.stopped
