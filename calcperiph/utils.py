"""Helpers: memory-span colour config, file watching and argument parsing."""

from __future__ import annotations

import logging
import os
import string
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

_WHITESPACE = " \t\n\r\f\v"
_ULONG = 1 << 64
DEFAULT_SCRIPT = "lua-common.lua"


class SpansConfigError(Exception):
    """Raised when a span configuration file cannot be read."""


@dataclass(frozen=True)
class MarkedSpan:
    """A coloured range of memory shown in the memory viewer."""

    start: int
    length: int
    color: tuple[int, int, int, int]
    desc: str = ""


def _strtoul(text: str, base: int) -> int:
    digits_allowed = string.hexdigits if base == 16 else string.digits
    rest = text.lstrip(_WHITESPACE)
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if base == 16 and rest[:2].lower() == "0x" and rest[2:3] and rest[2] in string.hexdigits:
        rest = rest[2:]
    end = 0
    while end < len(rest) and rest[end] in digits_allowed:
        end += 1
    value = int(rest[:end], base) if end else 0
    return (-value) % _ULONG if negative else value


def _scan_hex_pairs(text: str, count: int) -> list[int]:
    values: list[int] = []
    for index in range(count):
        pair = text[2 * index:2 * index + 2]
        digits = ""
        for char in pair:
            if char not in string.hexdigits:
                break
            digits += char
        if not digits:
            break
        values.append(int(digits, 16))
        if len(digits) < len(pair):
            break
    return values + [0] * (count - len(values))


def _split_fields(line: str) -> list[str]:
    if not line:
        return []
    parts = line.split(",")
    if parts[-1] == "":
        parts.pop()
    return parts


def _parse_span(parts: list[str]) -> MarkedSpan:
    start = _strtoul(parts[0], 16)
    if parts[1].startswith("0x"):
        end = _strtoul(parts[1], 16)
    else:
        end = (start + _strtoul(parts[1], 10) - 1) % _ULONG
    r = g = b = a = 0
    if len(parts[2]) == 6:
        r, g, b = _scan_hex_pairs(parts[2], 3)
    elif len(parts[2]) == 8:
        a, r, g, b = _scan_hex_pairs(parts[2], 4)
    return MarkedSpan(
        start=start,
        length=(end - start + 1) % _ULONG,
        color=(r, g, b, 50 if a == 0 else a),
        desc=parts[3] if len(parts) == 4 else "",
    )


def parse_colored_spans_config(path: str | os.PathLike) -> list[MarkedSpan]:
    """Read ``start,end-or-length,colour[,description]`` lines from a file."""
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            lines = handle.read().splitlines()
    except OSError as exc:
        raise SpansConfigError("Failed to open the file.") from exc
    spans = []
    for line in lines:
        if line.startswith("#"):
            continue
        parts = _split_fields(line)
        if len(parts) < 3:
            continue
        spans.append(_parse_span(parts))
    return spans


def file_exists(path: str | os.PathLike) -> bool:
    return os.path.exists(path)


def mtime_ms(path: str | os.PathLike) -> int:
    """Modification time in milliseconds, or 0 if the file cannot be stat'ed."""
    try:
        return os.stat(path).st_mtime_ns // 1_000_000
    except OSError as exc:
        logger.warning("stat %s: %s", path, exc)
        return 0


def parse_argv(argv: Iterable[str]) -> dict[str, str]:
    """Turn ``key=value`` arguments into a map; a bare argument names the model."""
    result: dict[str, str] = {}
    for position, arg in enumerate(argv, start=1):
        key, sep, value = arg.partition("=")
        if not sep:
            key, value = "model", arg
        if key in result:
            logger.info("[argv] #%d: key '%s' already set", position, key)
            continue
        result[key] = value
    result["script"] = DEFAULT_SCRIPT
    return result


class SpansWatcher:
    """Polls a span configuration file and reports its spans when it changes."""

    def __init__(
        self,
        path: str | os.PathLike,
        callback: Callable[[list[MarkedSpan]], None],
        interval: float = 1.0,
    ) -> None:
        self.path = path
        self.callback = callback
        self.interval = interval
        self._last_mtime = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll(self) -> Optional[list[MarkedSpan]]:
        """Check the file once; returns the spans passed on, or None if unchanged."""
        if file_exists(self.path):
            mtime = mtime_ms(self.path)
            if mtime == self._last_mtime:
                return None
            spans = parse_colored_spans_config(self.path)
            self.callback(spans)
            self._last_mtime = mtime
            return spans
        self.callback([])
        self._last_mtime = 0
        return []

    def _run(self) -> None:
        while True:
            try:
                self.poll()
            except SpansConfigError as exc:
                logger.warning("cannot read %s: %s", self.path, exc)
            if self._stop_event.wait(self.interval):
                break

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="spans-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None