"""Unit tests for the per-file run context."""

import logging

from hdrflow.logging.context import RunContextFilter, get_run_context, run_context


def _filtered() -> logging.LogRecord:
    record = logging.LogRecord("hdrflow", logging.INFO, __file__, 1, "m", None, None)
    assert RunContextFilter().filter(record)
    return record


class TestRunContext:
    """Tests for run_context()."""

    def test_empty_outside_run(self) -> None:
        assert get_run_context() == (None, None, None)

    def test_sets_and_restores(self) -> None:
        with run_context("r1", "/media/a.mkv", worker_id="01"):
            assert get_run_context() == ("01", "r1", "/media/a.mkv")
        assert get_run_context() == (None, None, None)

    def test_nested_runs_restore_outer(self) -> None:
        with run_context("outer", "/media/a.mkv"):
            with run_context("inner"):
                assert get_run_context() == (None, "inner", None)
            assert get_run_context() == (None, "outer", "/media/a.mkv")

    def test_restored_on_exception(self) -> None:
        try:
            with run_context("r1"):
                raise KeyError("x")
        except KeyError:
            pass
        assert get_run_context() == (None, None, None)


class TestRunContextFilter:
    """Tests for RunContextFilter run tags."""

    def test_no_context(self) -> None:
        record = _filtered()
        assert record.run_tag == ""
        assert record.run_id is None

    def test_run_only(self) -> None:
        with run_context("3f2a1c"):
            assert _filtered().run_tag == "[3f2a1c] "

    def test_worker_and_run(self) -> None:
        with run_context("3f2a1c", "/media/a.mkv", worker_id="01"):
            record = _filtered()
        assert record.run_tag == "[W01:3f2a1c] "
        assert record.source_path == "/media/a.mkv"
