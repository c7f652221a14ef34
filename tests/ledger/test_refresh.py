"""Tests for RefreshRunner."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ledger import GenerationResult, RefreshRunner, SubjectKey
from shared_types import RepredictionAction


def _result(value=None, docs=("standings.csv",)):
    return GenerationResult(
        value=value or {"home_goals": 1, "away_goals": 0},
        cost=0.03,
        token_usage='{"input": 100, "output": 20}',
        document_names=list(docs),
        group="1",
    )


def _subjects(n, model="gpt-4o", context="pes-squad"):
    return [SubjectKey(f"match_{i}", model, context) for i in range(n)]


class TestRefreshRunner:
    @pytest.mark.asyncio
    async def test_predicts_unpredicted_subjects(self, indexer, collector):
        generator = AsyncMock(return_value=_result())
        runner = RefreshRunner(indexer, generator, collector=collector)

        outcomes = await runner.run(_subjects(3))

        assert [o.action for o in outcomes] == [RepredictionAction.PREDICT_FIRST] * 3
        assert [o.index for o in outcomes] == [0, 0, 0]
        assert generator.await_count == 3
        assert collector.get("subject_predicted") == 3
        record = indexer.store.get_record(SubjectKey("match_0", "gpt-4o", "pes-squad"), 0)
        assert record.group == "1"
        assert record.dependency_document_names == ["standings.csv"]

    @pytest.mark.asyncio
    async def test_current_subjects_are_not_regenerated(self, indexer, collector, documents, clock):
        subjects = _subjects(2)
        documents.save("standings.csv", "v1", "pes-squad")
        clock.advance(minutes=5)
        for s in subjects:
            indexer.append_next(s, {"home_goals": 0}, ["standings.csv"], 0.01, "")

        generator = AsyncMock(return_value=_result())
        outcomes = await RefreshRunner(indexer, generator, collector=collector).run(subjects)

        generator.assert_not_awaited()
        assert all(o.action == RepredictionAction.SKIP_CURRENT for o in outcomes)
        assert collector.get("subject_current") == 2

    @pytest.mark.asyncio
    async def test_stale_subject_is_repredicted(self, indexer, collector, documents, clock):
        subject = _subjects(1)[0]
        indexer.append_next(subject, {"home_goals": 0}, ["standings.csv"], 0.01, "")
        clock.advance(minutes=5)
        documents.save("standings.csv", "v2", "pes-squad")
        clock.advance(minutes=5)

        generator = AsyncMock(return_value=_result({"home_goals": 3}))
        outcomes = await RefreshRunner(indexer, generator, collector=collector).run([subject])

        assert outcomes[0].action == RepredictionAction.REPREDICT
        assert outcomes[0].index == 1
        assert indexer.store.get_latest(subject).value == {"home_goals": 3}
        assert collector.get("subject_repredicted") == 1

    @pytest.mark.asyncio
    async def test_max_repredictions_skips_stale_subject(self, indexer, collector, documents, clock):
        subject = _subjects(1)[0]
        indexer.append_next(subject, {}, ["standings.csv"], 0.01, "")
        clock.advance(minutes=5)
        documents.save("standings.csv", "v2", "pes-squad")

        generator = AsyncMock(return_value=_result())
        runner = RefreshRunner(indexer, generator, max_repredictions=0, collector=collector)
        outcomes = await runner.run([subject])

        generator.assert_not_awaited()
        assert outcomes[0].action == RepredictionAction.SKIP_MAX_REACHED
        assert collector.get("subject_max_reached") == 1

    @pytest.mark.asyncio
    async def test_failure_of_one_subject_does_not_stop_others(self, indexer, collector):
        subjects = _subjects(3)

        async def generator(subject, community_context):
            if subject.entity_id == "match_1":
                raise RuntimeError("generation service timed out")
            return _result()

        outcomes = await RefreshRunner(indexer, generator, collector=collector).run(subjects)

        failed = [o for o in outcomes if o.failed]
        assert [o.subject.entity_id for o in failed] == ["match_1"]
        assert "timed out" in failed[0].error
        assert indexer.get_current_index(subjects[0]) == 0
        assert indexer.get_current_index(subjects[1]) == -1
        assert indexer.get_current_index(subjects[2]) == 0
        assert collector.get("subject_failed") == 1
        assert collector.get("subject_predicted") == 2

    @pytest.mark.asyncio
    async def test_sync_generator_runs_in_thread(self, indexer, collector):
        generator = MagicMock(return_value=_result())
        outcomes = await RefreshRunner(indexer, generator, collector=collector).run(_subjects(1))

        generator.assert_called_once()
        args = generator.call_args.args
        assert args[1] == "pes-squad"
        assert outcomes[0].index == 0

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, indexer, collector):
        active = 0
        peak = 0

        async def generator(subject, community_context):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return _result()

        runner = RefreshRunner(indexer, generator, max_concurrency=2, collector=collector)
        await runner.run(_subjects(6))

        assert peak <= 2
        assert collector.get("subject_predicted") == 6

    @pytest.mark.asyncio
    async def test_cancelled_run_keeps_saved_records_and_rerun_resumes(self, indexer, collector):
        subjects = _subjects(3)
        first = subjects[0]
        never = asyncio.Event()

        async def generator(subject, community_context):
            if subject.entity_id != first.entity_id:
                await never.wait()
            return _result()

        runner = RefreshRunner(indexer, generator, max_concurrency=3, collector=collector)
        task = asyncio.create_task(runner.run(subjects))

        async def saved():
            while await asyncio.to_thread(indexer.get_current_index, first) < 0:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(saved(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert indexer.get_current_index(first) == 0
        assert [indexer.get_current_index(s) for s in subjects[1:]] == [-1, -1]

        rerun = AsyncMock(return_value=_result())
        outcomes = await RefreshRunner(indexer, rerun, collector=collector).run(subjects)

        regenerated = sorted(call.args[0].entity_id for call in rerun.await_args_list)
        assert regenerated == ["match_1", "match_2"]
        assert outcomes[0].action == RepredictionAction.SKIP_CURRENT
        assert [o.index for o in outcomes] == [0, 0, 0]

    def test_from_config_reads_runner_section(self, indexer, collector):
        config = MagicMock(max_concurrency=2, max_repredictions=1)
        runner = RefreshRunner.from_config(indexer, AsyncMock(), config, collector=collector)
        assert runner.max_concurrency == 2
        assert runner.max_repredictions == 1
        assert runner.metrics is collector

    @pytest.mark.asyncio
    async def test_durations_recorded(self, indexer, collector):
        await RefreshRunner(indexer, AsyncMock(return_value=_result()), collector=collector).run(_subjects(2))
        assert collector.summary()["timers"]["subject_duration"]["count"] == 2


def test_run_now_from_sync_context(indexer, collector):
    runner = RefreshRunner(indexer, MagicMock(return_value=_result()), collector=collector)
    outcomes = runner.run_now(_subjects(1))
    assert outcomes[0].action == RepredictionAction.PREDICT_FIRST
