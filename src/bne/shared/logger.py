"""Operator-facing run log for CLI sweeps.

Library modules log through stdlib ``logging`` with ``[Tag]`` prefixes.
The CLI owns one ``RunLogger``; ``attach("bne")`` routes the library records
into it so a sweep prints a single stream and, optionally, appends the same
lines to a log file kept across runs.
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Any, TextIO

BAR_WIDTH = 24


class RunLogger:
    """Console + optional file log with sections, a progress bar and counters.

    The console shows records at or above ``min_level``. The file receives
    everything from INFO up, regardless of the console gate.
    """

    def __init__(
        self,
        log_file: str | Path | None = None,
        console: bool = True,
        min_level: int | str = logging.INFO,
    ) -> None:
        self.console = console
        self.min_level = (
            logging.getLevelName(min_level.upper()) if isinstance(min_level, str) else min_level
        )
        self.log_path = Path(log_file) if log_file else None
        self._file: TextIO | None = None
        self._counters: dict[str, int] = {}
        self._t0 = time.perf_counter()
        self._handler: _RunLogHandler | None = None

        if self.log_path:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.log_path.open("a", encoding="utf-8", buffering=1)
            self._write_file(f"# bne run {time.strftime('%Y-%m-%d %H:%M:%S')}")

    # -- sinks --------------------------------------------------------------

    def _write_file(self, line: str) -> None:
        if self._file:
            self._file.write(line + "\n")

    def _write_console(self, line: str) -> None:
        if self.console:
            sys.stdout.write(line + "\n")
            sys.stdout.flush()

    def log(self, level: int, msg: str) -> None:
        stamp = time.strftime("%H:%M:%S")
        since = time.perf_counter() - self._t0
        line = f"{stamp} +{since:7.1f}s {logging.getLevelName(level):<7} {msg}"
        if level >= self.min_level:
            self._write_console(line)
        if level >= logging.INFO:
            self._write_file(line)

    def debug(self, msg: str) -> None:
        self.log(logging.DEBUG, msg)

    def info(self, msg: str) -> None:
        self.log(logging.INFO, msg)

    def warn(self, msg: str) -> None:
        self.log(logging.WARNING, msg)

    def error(self, msg: str) -> None:
        self.log(logging.ERROR, msg)

    # -- structured output --------------------------------------------------

    def section(self, title: str) -> None:
        rule = "-" * 60
        for line in (rule, f"  {title}", rule):
            self._write_console(line)
            self._write_file(line)

    def progress(self, done: int, total: int, label: str = "") -> None:
        ratio = done / total if total else 0.0
        filled = round(BAR_WIDTH * ratio)
        bar = "#" * filled + "." * (BAR_WIDTH - filled)
        width = len(str(total))
        msg = f"[{done:>{width}}/{total}] [{bar}] {ratio * 100:5.1f}%"
        self.info(f"{msg}  {label}" if label else msg)

    def metric(self, name: str, value: Any, unit: str = "") -> None:
        shown = f"{value:,}" if isinstance(value, int) else str(value)
        self.info(f"{name} = {shown}{' ' + unit if unit else ''}")

    def count(self, name: str, amount: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + amount

    def summary(self) -> None:
        self.section("RUN SUMMARY")
        self.info(f"elapsed {time.perf_counter() - self._t0:.1f}s")
        width = max((len(k) for k in self._counters), default=0)
        for name in sorted(self._counters):
            self.info(f"  {name:<{width}}  {self._counters[name]:>7,}")
        if self.log_path:
            self.info(f"log file: {self.log_path}")

    # -- stdlib bridge ------------------------------------------------------

    def attach(self, logger_name: str = "bne", level: int = logging.INFO) -> None:
        """Route records of ``logger_name`` (and its children) to this log."""
        self.detach(logger_name)
        target = logging.getLogger(logger_name)
        self._handler = _RunLogHandler(self)
        self._handler.setLevel(level)
        target.addHandler(self._handler)
        target.setLevel(level)
        target.propagate = False

    def detach(self, logger_name: str = "bne") -> None:
        target = logging.getLogger(logger_name)
        for handler in [h for h in target.handlers if isinstance(h, _RunLogHandler)]:
            target.removeHandler(handler)
        target.propagate = True
        self._handler = None

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class _RunLogHandler(logging.Handler):
    def __init__(self, run_log: RunLogger) -> None:
        super().__init__()
        self._run_log = run_log

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._run_log.log(record.levelno, self.format(record))
        except Exception:
            self.handleError(record)
