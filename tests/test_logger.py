"""Tests for logging helpers."""

from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from budget_reporting import logger as logger_module


class _RecordingLogger:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def info(self, event: str, **kwargs) -> None:
        self.calls.append(("info", event, kwargs))

    def debug(self, event: str, **kwargs) -> None:
        self.calls.append(("debug", event, kwargs))


def test_select_renderer_uses_console_in_debug(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", True)
    renderer = logger_module._select_renderer()
    assert isinstance(renderer, ConsoleRenderer)


def test_select_renderer_uses_json_in_production(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", False)
    renderer = logger_module._select_renderer()
    assert isinstance(renderer, JSONRenderer)


def test_log_timing_records_duration_and_context() -> None:
    recorder = _RecordingLogger()

    with logger_module.log_timing("collect_event_data", logger=recorder, level="debug", facility_id=20) as timing:
        timing["row_count"] = 3

    level, event, fields = recorder.calls[0]
    assert level == "debug"
    assert event == "collect_event_data completed"
    assert fields["operation"] == "collect_event_data"
    assert fields["facility_id"] == 20
    assert fields["row_count"] == 3
    assert fields["duration_ms"] >= 0


def test_log_timing_logs_even_when_the_block_fails() -> None:
    recorder = _RecordingLogger()

    try:
        with logger_module.log_timing("generate_statement", logger=recorder):
            raise ValueError("boom")
    except ValueError:
        pass

    assert recorder.calls[0][0] == "info"
    assert recorder.calls[0][1] == "generate_statement completed"
