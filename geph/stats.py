"""Client statistics, the in-memory log buffer and the debug pack."""

from __future__ import annotations

import dataclasses
import io
import json
import re
import tarfile
import threading
import time
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

LOG_LIMIT = 100000
TRACE_HEADER = "time,last_recv,total_recv,total_loss,ping"

_IP_REGEX = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}")


def redact_ips(line: str) -> str:
    """Replace every dotted-quad IPv4 address in the line with "[redacted]"."""
    return _IP_REGEX.sub("[redacted]", line)


@dataclass(frozen=True)
class SessionSample:
    """One session statistics sample; ``time`` and ``ping`` are in seconds."""

    time: float
    high_recv: int
    total_recv: int
    total_loss: float
    ping: float


class StatCollector:
    """Thread-safe counters reported on the local stats endpoint."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.total_rx = 0
        self.total_tx = 0
        self.open_conns = 0
        self.open_latency = 0.0
        self.loss = 0.0
        self.exit_info: Any = None

    def incr_total_rx(self, nbytes: int) -> None:
        """Count received bytes."""
        with self._lock:
            self.total_rx += nbytes

    def incr_total_tx(self, nbytes: int) -> None:
        """Count transmitted bytes."""
        with self._lock:
            self.total_tx += nbytes

    def set_latency(self, ms: float) -> None:
        """Record the current latency in milliseconds."""
        with self._lock:
            self.open_latency = float(ms)

    def set_loss(self, loss: float) -> None:
        """Record the current loss percentage."""
        with self._lock:
            self.loss = float(loss)

    def set_exit_descriptor(self, desc: Any) -> None:
        """Record the exit in use, or None."""
        with self._lock:
            self.exit_info = desc

    def to_json(self) -> str:
        """Serialize all counters as a compact JSON object."""
        with self._lock:
            exit_info = self.exit_info
            if dataclasses.is_dataclass(exit_info) and not isinstance(exit_info, type):
                exit_info = dataclasses.asdict(exit_info)
            payload = {
                "total_rx": self.total_rx,
                "total_tx": self.total_tx,
                "open_conns": self.open_conns,
                "open_latency": self.open_latency,
                "loss": self.loss,
                "exit_info": exit_info,
            }
        return json.dumps(payload, separators=(",", ":"))

    def update_from_samples(self, samples: Sequence[SessionSample]) -> None:
        """Refresh latency and loss from the latest session samples, if any."""
        if not samples:
            return
        self.set_latency(samples[-1].ping * 1000.0)
        loss = compute_loss(samples)
        if loss is not None:
            self.set_loss(loss * 100.0)


class LogBuffer:
    """A bounded, thread-safe buffer of redacted log lines; oldest lines drop first."""

    def __init__(self, limit: int = LOG_LIMIT) -> None:
        if limit < 1:
            raise ValueError("limit must be positive")
        self._lines: deque[str] = deque(maxlen=limit)
        self._lock = threading.Lock()

    def push(self, line: str) -> None:
        """Append a line with its IP addresses redacted."""
        redacted = redact_ips(line)
        with self._lock:
            self._lines.append(redacted)

    def lines(self) -> list[str]:
        """Return a snapshot of the buffered lines, oldest first."""
        with self._lock:
            return list(self._lines)


def compute_loss(samples: Sequence[SessionSample]) -> Optional[float]:
    """Estimate the loss fraction between the middle and the last sample.

    Returns None when there are no samples.
    """
    if not samples:
        return None
    last = samples[-1]
    mid = samples[len(samples) // 2]
    delta_high = float(max(last.high_recv - mid.high_recv, 1))
    delta_total = float(max(last.total_recv - mid.total_recv, 1))
    return 1.0 - min(max(delta_total / delta_high, 0.0), 1.0)


def _fmt_number(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    value = float(value)
    if value.is_integer():
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        return format(Decimal(text), "f")
    return text


def sosistab_trace_csv(samples: Sequence[SessionSample]) -> str:
    """Render samples as CSV, with times relative to the first sample."""
    rows = [TRACE_HEADER]
    if samples:
        first_time = samples[0].time
        for item in samples:
            rows.append(
                ",".join(
                    (
                        _fmt_number(max(item.time - first_time, 0.0)),
                        _fmt_number(item.high_recv),
                        _fmt_number(item.total_recv),
                        _fmt_number(item.total_loss),
                        _fmt_number(item.ping * 1000.0),
                    )
                )
            )
    return "".join(row + "\n" for row in rows)


def _add_file(archive: tarfile.TarFile, name: str, data: bytes) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = 0o666
    info.mtime = int(time.time())
    archive.addfile(info, io.BytesIO(data))


def build_debugpack(
    log_lines: Iterable[str],
    samples: Optional[Sequence[SessionSample]] = None,
) -> bytes:
    """Build a tar archive of the logs and, when samples are given, a session trace."""
    logs = "".join(line + "\n" for line in log_lines).encode("utf-8")
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.GNU_FORMAT) as archive:
        if samples is not None:
            _add_file(
                archive, "sosistab-trace.csv", sosistab_trace_csv(samples).encode("utf-8")
            )
        _add_file(archive, "logs.txt", logs)
    return buffer.getvalue()