# src/dagenda/connectors/log_notifier.py

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime

from ..core.state import AppState
from ..tasks.task_scheduler import run_agenda_notifier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LogNotifier:
    """Notifier that only writes upcoming task starts to the log."""

    sent: int = 0

    async def notify(self, *, timestamp: int, title: str, body: str, uuid: str) -> None:
        when = datetime.fromtimestamp(timestamp / 1000).astimezone().strftime("%H:%M")
        logger.info("[%s] %s %s", when, title, f"- {body}" if body else "")
        self.sent += 1


@dataclass
class NotifierBackgroundRunner:
    """Runs run_agenda_notifier on its own event loop in a daemon thread."""

    state: AppState
    interval_seconds: float
    lookahead_ms: int
    notifier: LogNotifier = field(default_factory=LogNotifier)

    _thread: threading.Thread | None = None
    _loop: asyncio.AbstractEventLoop | None = None
    _task: asyncio.Task[None] | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._run, name="agenda-notifier", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        self._task = loop.create_task(
            run_agenda_notifier(
                self.state,
                self.notifier,
                interval_seconds=self.interval_seconds,
                lookahead_ms=self.lookahead_ms,
            )
        )
        try:
            loop.run_until_complete(self._task)
        except asyncio.CancelledError:
            logger.debug("Agenda notifier cancelled.")
        finally:
            loop.close()

    def stop(self) -> None:
        if self._loop is not None and self._task is not None:
            self._loop.call_soon_threadsafe(self._task.cancel)

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)


def start_notifier_in_background(state: AppState) -> NotifierBackgroundRunner:
    settings = state.settings
    runner = NotifierBackgroundRunner(
        state=state,
        interval_seconds=float(getattr(settings, "notify_interval_seconds", 30.0)),
        lookahead_ms=int(getattr(settings, "lookahead_ms", 24 * 60 * 60 * 1000)),
    )
    runner.start()
    logger.info("Agenda notifier started (interval=%ss).", runner.interval_seconds)
    return runner
