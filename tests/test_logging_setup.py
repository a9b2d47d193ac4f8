# tests/test_logging_setup.py

from __future__ import annotations

import logging

from dagenda.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_keeps_notifier_and_third_party_quiet() -> None:
    f = _ConsoleNoiseFilter()
    assert f.filter(_record("dagenda.tasks.task_reducer", logging.DEBUG))
    assert not f.filter(_record("dagenda.tasks.task_scheduler", logging.INFO))
    assert f.filter(_record("dagenda.tasks.task_scheduler", logging.WARNING))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))
