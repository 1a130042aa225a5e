"""End-to-end tests for compare_image()."""

import asyncio
import dataclasses
import logging
import math
import threading
import time

import pytest

from goldenstag import (
    ArtifactReporter,
    ArtifactWriteError,
    CollaboratorUnavailableError,
    Decision,
    DimensionMismatchError,
    ExecutionMode,
    Image,
    PixelComparisonMode,
    compare_image,
    compare_image_outcome,
)

PRECISE = PixelComparisonMode.precise()


class TestLocalComparison:
    """Local runs compare against goldens on disk."""

    @pytest.mark.asyncio
    async def test_identical_is_ok(self, white_4x4, golden_client, run_config, store_golden):
        """A matching screenshot passes without writing artifacts."""
        store_golden("a.png", white_4x4)
        result = await compare_image(
            white_4x4, False, "a.png", PRECISE, 0.01, golden_client, config=run_config
        )
        assert result == "OK"
        assert not run_config.results_dir.exists()
        assert (run_config.screenshots_dir / "a.png").is_file()

    @pytest.mark.asyncio
    async def test_small_difference_warns(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden, caplog
    ):
        """A diff below the threshold is OK, but reported and logged."""
        store_golden("a.png", white_4x4)
        with caplog.at_level(logging.WARNING, logger="goldenstag"):
            outcome = await compare_image_outcome(
                one_black_pixel, False, "a.png", PRECISE, 0.5, golden_client,
                config=run_config,
            )
        assert outcome.status == "OK"
        assert outcome.decision is Decision.WARN
        assert (
            "(6.2500% of pixels were different. Maximum allowed rate is: 50.0000%)."
            in outcome.message
        )
        assert len(list(run_config.results_dir.iterdir())) == 4
        assert any(
            record.levelno == logging.WARNING and "WARNING:" in record.getMessage()
            for record in caplog.records
        )

    @pytest.mark.asyncio
    async def test_large_difference_fails(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden
    ):
        """A diff at or above the threshold returns the failure summary."""
        store_golden("button.png", white_4x4)
        result = await compare_image(
            one_black_pixel, False, "button.png", PRECISE, 0.01, golden_client,
            config=run_config,
        )
        assert result != "OK"
        assert result.startswith("Golden file button.png did not match")
        results = run_config.results_dir.absolute()
        assert str(results / "button.expected.png") in result
        assert str(results / "button.actual.png") in result
        assert str(results / "button.report.html") in result

    @pytest.mark.asyncio
    async def test_missing_golden_is_new_baseline(
        self, one_black_pixel, golden_client, run_config
    ):
        """Without a golden the screenshot is generated and accepted."""
        outcome = await compare_image_outcome(
            one_black_pixel, False, "new.png", PRECISE, 0.0, golden_client,
            config=run_config,
        )
        assert outcome.status == "OK"
        assert outcome.decision is Decision.NEW_BASELINE
        assert str(run_config.screenshots_dir / "new.png") in outcome.message
        assert not run_config.results_dir.exists()

    @pytest.mark.asyncio
    async def test_repeated_runs_are_idempotent(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden
    ):
        """Running twice gives the same status and byte-identical artifacts."""
        store_golden("a.png", white_4x4)
        first = await compare_image(
            one_black_pixel, False, "a.png", PRECISE, 0.01, golden_client,
            config=run_config,
        )
        contents = {p.name: p.read_bytes() for p in run_config.results_dir.iterdir()}
        second = await compare_image(
            one_black_pixel, False, "a.png", PRECISE, 0.01, golden_client,
            config=run_config,
        )
        assert first == second
        assert {p.name: p.read_bytes() for p in run_config.results_dir.iterdir()} == contents

    @pytest.mark.asyncio
    async def test_update_goldens(self, white_4x4, one_black_pixel, golden_client,
                                  run_config, store_golden):
        """With update_goldens the screenshot replaces the golden."""
        store_golden("a.png", white_4x4)
        outcome = await compare_image_outcome(
            one_black_pixel, True, "a.png", PRECISE, 0.0, golden_client, config=run_config
        )
        assert outcome.status == "OK"
        assert outcome.decision is Decision.NEW_BASELINE
        assert ("accept", "a.png") in golden_client.calls
        assert ("fetch", "a.png") not in golden_client.calls
        assert Image.from_file(run_config.goldens_dir / "a.png") == one_black_pixel

        result = await compare_image(
            one_black_pixel, False, "a.png", PRECISE, 0.0, golden_client, config=run_config
        )
        assert result == "OK"

    @pytest.mark.asyncio
    async def test_fuzzy_comparison(self, white_4x4, golden_client, run_config, store_golden):
        """Small channel deltas pass in fuzzy mode."""
        store_golden("a.png", white_4x4)
        candidate = white_4x4.with_pixel(2, 2, (252, 255, 255, 255))
        result = await compare_image(
            candidate, False, "a.png", PixelComparisonMode.fuzzy(), 0.0, golden_client,
            config=run_config,
        )
        assert result == "OK"
        assert not run_config.results_dir.exists()

    @pytest.mark.asyncio
    async def test_expected_artifact_is_screenshot(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden
    ):
        """The expected artifact holds the run's screenshot, not the golden."""
        store_golden("a.png", white_4x4)
        outcome = await compare_image_outcome(
            one_black_pixel, False, "a.png", PRECISE, 0.01, golden_client,
            config=run_config,
        )
        assert Image.from_file(outcome.artifacts.expected) == one_black_pixel
        assert (
            outcome.artifacts.expected.read_bytes()
            == (run_config.screenshots_dir / "a.png").read_bytes()
        )

    @pytest.mark.asyncio
    async def test_concurrent_comparisons(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden
    ):
        """Comparisons of distinct screenshots can run concurrently."""
        for index in range(6):
            store_golden(f"shot{index}.png", white_4x4)
        screenshots = [white_4x4, one_black_pixel] * 3

        results = await asyncio.gather(*[
            compare_image(shot, False, f"shot{index}.png", PRECISE, 0.01, golden_client,
                          config=run_config)
            for index, shot in enumerate(screenshots)
        ])
        assert [result == "OK" for result in results] == [True, False] * 3
        assert len(list(run_config.results_dir.iterdir())) == 3 * 4

    @pytest.mark.asyncio
    async def test_reporting_keeps_event_loop_responsive(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden,
        monkeypatch,
    ):
        """Comparison and artifact writes run in a worker thread."""
        store_golden("a.png", white_4x4)
        original_report = ArtifactReporter.report
        report_threads = []

        def slow_report(self, *args, **kwargs):
            report_threads.append(threading.current_thread())
            time.sleep(0.3)
            return original_report(self, *args, **kwargs)

        monkeypatch.setattr(ArtifactReporter, "report", slow_report)

        ticks = 0
        done = asyncio.Event()

        async def ticker():
            nonlocal ticks
            while not done.is_set():
                ticks += 1
                await asyncio.sleep(0.01)

        ticker_task = asyncio.create_task(ticker())
        try:
            result = await compare_image(
                one_black_pixel, False, "a.png", PRECISE, 0.01, golden_client,
                config=run_config,
            )
        finally:
            done.set()
            await ticker_task

        assert result != "OK"
        assert report_threads and report_threads[0] is not threading.main_thread()
        assert ticks >= 5


class TestErrors:
    """Failures propagate instead of being reported as a mismatch."""

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, white_4x4, golden_client, run_config, store_golden):
        """Different sizes raise and write no artifacts."""
        store_golden("a.png", white_4x4)
        with pytest.raises(DimensionMismatchError) as exc_info:
            await compare_image(
                Image.solid(4, 5), False, "a.png", PRECISE, 0.5, golden_client,
                config=run_config,
            )
        assert exc_info.value.name == "a.png"
        assert "a.png" in str(exc_info.value)
        assert not run_config.results_dir.exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threshold", [-0.01, math.nan])
    async def test_invalid_threshold(
        self, white_4x4, golden_client, run_config, store_golden, threshold
    ):
        """A negative or NaN threshold is rejected when comparing."""
        store_golden("a.png", white_4x4)
        with pytest.raises(ValueError):
            await compare_image(
                white_4x4, False, "a.png", PRECISE, threshold, golden_client,
                config=run_config,
            )
        assert not run_config.results_dir.exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threshold", [-0.01, 1.5, 2.0])
    async def test_any_threshold_for_new_baseline(
        self, white_4x4, golden_client, run_config, threshold
    ):
        """Without a golden the threshold is never consulted."""
        outcome = await compare_image_outcome(
            white_4x4, False, "a.png", PRECISE, threshold, golden_client,
            config=run_config,
        )
        assert outcome.decision is Decision.NEW_BASELINE
        assert outcome.status == "OK"

    @pytest.mark.asyncio
    async def test_threshold_above_one_warns(
        self, white_4x4, golden_client, run_config, store_golden
    ):
        """A threshold above 1 reports differences without failing."""
        store_golden("a.png", white_4x4)
        black = Image.solid(4, 4, (0, 0, 0, 255))
        outcome = await compare_image_outcome(
            black, False, "a.png", PRECISE, 1.5, golden_client, config=run_config
        )
        assert outcome.decision is Decision.WARN
        assert outcome.status == "OK"
        assert "Maximum allowed rate is: 150.0000%" in outcome.message

    @pytest.mark.asyncio
    async def test_golden_service_failure(self, white_4x4, golden_client, run_config):
        golden_client.fail_with = ConnectionError("unreachable")
        with pytest.raises(CollaboratorUnavailableError):
            await compare_image(
                white_4x4, False, "a.png", PRECISE, 0.01, golden_client, config=run_config
            )

    @pytest.mark.asyncio
    async def test_unwritable_results_dir(
        self, white_4x4, one_black_pixel, golden_client, run_config, store_golden
    ):
        store_golden("a.png", white_4x4)
        run_config.results_dir.write_text("in the way")
        with pytest.raises(ArtifactWriteError):
            await compare_image(
                one_black_pixel, False, "a.png", PRECISE, 0.01, golden_client,
                config=run_config,
            )

    @pytest.mark.asyncio
    async def test_no_client_skips(self, white_4x4, run_config):
        """Without a golden client nothing is compared or written."""
        outcome = await compare_image_outcome(
            white_4x4, False, "a.png", PRECISE, 0.01, None, config=run_config
        )
        assert outcome.status == "OK"
        assert "skipped" in outcome.message
        assert not run_config.screenshots_dir.exists()
        assert not run_config.results_dir.exists()


class TestRemoteModes:
    """CI runs upload screenshots instead of comparing locally."""

    @pytest.mark.asyncio
    async def test_post_submit_ingests(self, white_4x4, golden_client, run_config):
        config = dataclasses.replace(run_config, mode=ExecutionMode.POST_SUBMIT)
        result = await compare_image(
            white_4x4, False, "a.png", PRECISE, 0.01, golden_client, config=config
        )
        assert result == "OK"
        assert golden_client.calls == [
            ("imgtest_add", "a.png", run_config.screenshots_dir / "a.png", 16, False)
        ]
        assert (run_config.screenshots_dir / "a.png").is_file()
        assert not run_config.results_dir.exists()

    @pytest.mark.asyncio
    async def test_pre_submit_uses_tryjob(self, white_4x4, golden_client, run_config):
        config = dataclasses.replace(run_config, mode=ExecutionMode.PRE_SUBMIT)
        result = await compare_image(
            white_4x4, True, "a.png", PRECISE, 0.01, golden_client,
            fuzzy_matching=True, config=config,
        )
        assert result == "OK"
        assert golden_client.calls == [
            ("tryjob_add", "a.png", run_config.screenshots_dir / "a.png", 16, True)
        ]

    @pytest.mark.asyncio
    async def test_upload_failure_propagates(self, white_4x4, golden_client, run_config):
        """A failed upload raises and is not retried."""
        config = dataclasses.replace(run_config, mode=ExecutionMode.POST_SUBMIT)
        golden_client.fail_with = TimeoutError("service timed out")
        with pytest.raises(CollaboratorUnavailableError):
            await compare_image(
                white_4x4, False, "a.png", PRECISE, 0.01, golden_client, config=config
            )
        assert len(golden_client.calls) == 1
