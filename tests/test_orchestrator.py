"""
Tests for the Orchestrator - cycle outcomes, degradation, single-flight.
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from mirrorsite.engine.orchestrator import CycleOutcome, Orchestrator, generate_cycle_id
from mirrorsite.errors import BuildFailure, BuildKind
from mirrorsite.mirror.state import MirrorState, SyncStatus
from mirrorsite.models.status import CycleRecord, ServiceStatus
from mirrorsite.persistence.status_file import load_status, save_status
from mirrorsite.site.pipeline import BuildResult


def synced_state(path: Path) -> MirrorState:
    return MirrorState(
        local_path=path,
        exists=True,
        is_valid=True,
        active_remote="gitee",
        last_sync_outcome=SyncStatus.SYNCED,
    )


def failed_state(path: Path) -> MirrorState:
    return MirrorState(local_path=path, last_sync_outcome=SyncStatus.FAILED, last_error="offline")


@pytest.fixture
def status_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "service_status.json"


@pytest.fixture
def mirror(tmp_path: Path):
    mirror = MagicMock()
    mirror.ensure_synced.return_value = synced_state(tmp_path / "repo")
    return mirror


@pytest.fixture
def pipeline(tmp_path: Path):
    pipeline = MagicMock()
    pipeline.build_full.return_value = BuildResult(kind=BuildKind.FULL, output_dir=tmp_path / "website")
    pipeline.build_minimal.return_value = BuildResult(kind=BuildKind.MINIMAL, output_dir=tmp_path / "website")
    return pipeline


@pytest.fixture
def orchestrator(mirror, pipeline, status_file):
    return Orchestrator(mirror=mirror, pipeline=pipeline, status_file=status_file)


class TestCycleOutcomes:

    def test_full_build_is_success(self, orchestrator, pipeline, status_file):
        result = orchestrator.run_cycle()

        assert result.outcome == CycleOutcome.SUCCESS
        assert result.build_kind == BuildKind.FULL
        assert result.sync_status == SyncStatus.SYNCED
        assert result.active_remote == "gitee"
        pipeline.build_minimal.assert_not_called()
        assert load_status(status_file).last_success_iso == result.ended_at

    def test_full_failure_degrades_to_minimal_once(self, orchestrator, pipeline):
        pipeline.build_full.side_effect = BuildFailure(BuildKind.FULL, "copy failed", step="copy")

        result = orchestrator.run_cycle()

        assert result.outcome == CycleOutcome.DEGRADED_SUCCESS
        assert result.build_kind == BuildKind.MINIMAL
        assert pipeline.build_minimal.call_count == 1
        assert any("copy failed" in e for e in result.errors)

    def test_degraded_success_advances_last_sync(self, orchestrator, pipeline, status_file):
        pipeline.build_full.side_effect = BuildFailure(BuildKind.FULL, "npm broke")

        result = orchestrator.run_cycle()

        assert load_status(status_file).last_success_iso == result.ended_at

    def test_minimal_failure_is_failure(self, orchestrator, pipeline, status_file):
        save_status(ServiceStatus(last_success_iso="2026-01-01T02:00:00Z"), status_file)
        pipeline.build_full.side_effect = BuildFailure(BuildKind.FULL, "npm broke")
        pipeline.build_minimal.side_effect = BuildFailure(BuildKind.MINIMAL, "no build/")

        result = orchestrator.run_cycle()

        assert result.outcome == CycleOutcome.FAILURE
        assert result.build_kind == BuildKind.FAILED
        assert pipeline.build_minimal.call_count == 1
        status = load_status(status_file)
        assert status.last_success_iso == "2026-01-01T02:00:00Z"
        assert status.last_cycle.outcome == "failure"

    def test_failed_sync_skips_build(self, orchestrator, mirror, pipeline, tmp_path):
        mirror.ensure_synced.return_value = failed_state(tmp_path / "repo")

        result = orchestrator.run_cycle()

        assert result.outcome == CycleOutcome.FAILURE
        assert result.sync_status == SyncStatus.FAILED
        pipeline.build_full.assert_not_called()
        pipeline.build_minimal.assert_not_called()
        assert "sync: offline" in result.errors

    def test_unexpected_error_is_contained(self, orchestrator, pipeline, caplog):
        pipeline.build_full.side_effect = RuntimeError("disk exploded")

        with caplog.at_level(logging.ERROR):
            result = orchestrator.run_cycle()

        assert result.outcome == CycleOutcome.FAILURE
        assert any("disk exploded" in e for e in result.errors)
        assert any(r.exc_info for r in caplog.records)
        pipeline.build_minimal.assert_not_called()

    def test_next_cycle_runs_after_failure(self, orchestrator, pipeline):
        pipeline.build_full.side_effect = [RuntimeError("boom"), pipeline.build_full.return_value]

        first = orchestrator.run_cycle()
        second = orchestrator.run_cycle()

        assert first.outcome == CycleOutcome.FAILURE
        assert second.outcome == CycleOutcome.SUCCESS
        assert orchestrator.last_result is second

    def test_result_timing_fields(self, orchestrator):
        result = orchestrator.run_cycle()

        assert result.cycle_id.startswith("C-")
        assert result.ended_at >= result.started_at
        assert result.duration_ms >= 0

    def test_cycle_log_lines_carry_cycle_id(self, orchestrator, caplog):
        with caplog.at_level(logging.INFO):
            result = orchestrator.run_cycle()

        tagged = [r for r in caplog.records if getattr(r, "cycle_id", None) == result.cycle_id]
        assert len(tagged) == 2
        assert "finished: success" in tagged[-1].getMessage()


class TestSingleFlight:

    def test_overlapping_trigger_is_skipped(self, orchestrator, pipeline):
        nested = []

        def build_full():
            assert orchestrator.is_running
            nested.append(orchestrator.run_cycle())
            return BuildResult(kind=BuildKind.FULL, output_dir=Path("website"))

        pipeline.build_full.side_effect = build_full

        result = orchestrator.run_cycle()

        assert nested == [None]
        assert result.outcome == CycleOutcome.SUCCESS
        assert not orchestrator.is_running

    def test_lock_released_after_failure(self, orchestrator, mirror):
        mirror.ensure_synced.side_effect = RuntimeError("boom")

        orchestrator.run_cycle()

        assert not orchestrator.is_running


class TestStatusRecording:

    def test_persist_failure_is_logged_not_raised(self, orchestrator, caplog):
        with patch("mirrorsite.engine.orchestrator.save_status", side_effect=OSError("disk full")):
            result = orchestrator.run_cycle()

        assert result.outcome == CycleOutcome.SUCCESS
        assert "Failed to persist cycle status" in caplog.text

    def test_history_is_bounded_newest_first(self):
        status = ServiceStatus()
        for i in range(25):
            status.record(CycleRecord(cycle_id=f"C-{i}", started_at=f"t{i}", outcome="failure"))

        assert len(status.history) == 20
        assert status.history[0].cycle_id == "C-24"
        assert status.last_success_iso is None

    def test_without_status_file(self, mirror, pipeline):
        orchestrator = Orchestrator(mirror=mirror, pipeline=pipeline)

        assert orchestrator.run_cycle().outcome == CycleOutcome.SUCCESS
        assert orchestrator.load_status().last_cycle is None


class TestFromSettings:

    def test_wires_components_and_loggers(self, settings):
        orchestrator = Orchestrator.from_settings(settings)
        try:
            assert orchestrator.mirror.local_path == settings.paths.repo
            assert orchestrator.pipeline.website_path == settings.paths.website
            assert orchestrator.mirror.log.name == "mirrorsite.sync"
            assert orchestrator.pipeline.log.name == "mirrorsite.build"
            assert orchestrator.status_file == settings.paths.state / "service_status.json"
            assert (settings.logs.dir / "sync.log").exists()
        finally:
            orchestrator.close()

        assert not orchestrator.mirror.log.handlers


def test_cycle_ids_are_unique():
    assert generate_cycle_id() != generate_cycle_id()
