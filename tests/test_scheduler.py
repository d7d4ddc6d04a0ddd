import asyncio

import pytest

from conftest import FakeImage, FakeEditor, FakeVision, InFlightTracker, RecordingReporter
from data_pipeline.generate_images import ItemPipeline, PipelineContext, SinglePipeline
from data_pipeline.scheduler import BatchScheduler, settle
from data_pipeline.schemas import ImagePromptUnit, PipelineConfig, RunState, UnitFailure, UnitSuccess


def units(n):
    return [ImagePromptUnit(prompt=f"p{i}") for i in range(n)]


def single_pipeline(image, total):
    ctx = PipelineContext(
        image=image,
        editor=FakeEditor(),
        vision=FakeVision(),
        config=PipelineConfig(),
        reporter=RecordingReporter(),
        total=total,
    )
    return SinglePipeline(ctx)


async def collect(scheduler, plan, pipeline):
    return [outcome async for outcome in scheduler.execute(plan, pipeline)]


def test_windows_are_contiguous():
    scheduler = BatchScheduler(3, RunState(is_running=True))
    assert scheduler.windows(units(7)) == [range(0, 3), range(3, 6), range(6, 7)]
    assert scheduler.windows([]) == []


def test_rejects_non_positive_concurrency():
    with pytest.raises(ValueError):
        BatchScheduler(0, RunState())


def test_in_flight_never_exceeds_max_concurrent():
    tracker = InFlightTracker()
    image = FakeImage(delay=0.01, tracker=tracker)
    scheduler = BatchScheduler(2, RunState(is_running=True))

    outcomes = asyncio.run(collect(scheduler, units(5), single_pipeline(image, 5)))

    assert len(outcomes) == 5
    assert all(isinstance(o, UnitSuccess) for o in outcomes)
    assert tracker.peak == 2
    assert sorted(o.index for o in outcomes) == [0, 1, 2, 3, 4]


def test_windows_settle_in_order():
    scheduler = BatchScheduler(2, RunState(is_running=True))
    outcomes = asyncio.run(collect(scheduler, units(5), single_pipeline(FakeImage(), 5)))
    window_of = [o.index // 2 for o in outcomes]
    assert window_of == sorted(window_of)


def test_failure_keeps_original_index():
    image = FakeImage(fail_prompts={"p1"})
    scheduler = BatchScheduler(3, RunState(is_running=True))
    outcomes = asyncio.run(collect(scheduler, units(3), single_pipeline(image, 3)))

    failures = [o for o in outcomes if isinstance(o, UnitFailure)]
    assert len(failures) == 1
    assert failures[0].index == 1
    assert "content policy violation" in failures[0].reason


def test_stop_lets_current_window_finish():
    run_state = RunState(is_running=True)
    scheduler = BatchScheduler(2, run_state)

    async def run():
        seen = []
        async for outcome in scheduler.execute(units(6), single_pipeline(FakeImage(delay=0.01), 6)):
            seen.append(outcome)
            run_state.is_running = False
        return seen

    outcomes = asyncio.run(run())
    assert sorted(o.index for o in outcomes) == [0, 1]


def test_stop_before_start_runs_nothing():
    image = FakeImage()
    scheduler = BatchScheduler(2, RunState(is_running=False))
    assert asyncio.run(collect(scheduler, units(4), single_pipeline(image, 4))) == []
    assert image.calls == []


class ExplodingPipeline(ItemPipeline):

    async def run(self, unit, index):
        raise RuntimeError()


def test_settle_uses_generic_reason_for_blank_errors():
    pipeline = ExplodingPipeline(None)
    outcome = asyncio.run(settle(pipeline, ImagePromptUnit(prompt="x"), 4))
    assert outcome == UnitFailure(index=4, reason="Generation failed")
