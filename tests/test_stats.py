import io
import json
import tarfile
import threading
from dataclasses import dataclass

import pytest

from geph.stats import (
    LogBuffer,
    SessionSample,
    StatCollector,
    build_debugpack,
    compute_loss,
    redact_ips,
    sosistab_trace_csv,
)


def sample(t, high, total, loss=0.0, ping=0.05):
    return SessionSample(time=t, high_recv=high, total_recv=total, total_loss=loss, ping=ping)


def test_redact_ips_replaces_addresses():
    line = "connecting to 10.0.0.1 via 192.168.1.254"
    assert redact_ips(line) == "connecting to [redacted] via [redacted]"


def test_redact_ips_leaves_other_text():
    line = "version 4.2 started"
    assert redact_ips(line) == line


def test_log_buffer_redacts_and_orders():
    buf = LogBuffer()
    buf.push("first")
    buf.push("peer 1.2.3.4 up")
    assert buf.lines() == ["first", "peer [redacted] up"]


def test_log_buffer_drops_oldest_past_limit():
    buf = LogBuffer(limit=3)
    for n in range(5):
        buf.push(f"line {n}")
    assert buf.lines() == ["line 2", "line 3", "line 4"]


def test_log_buffer_rejects_bad_limit():
    with pytest.raises(ValueError):
        LogBuffer(limit=0)


def test_stat_collector_json_fields():
    stats = StatCollector()
    decoded = json.loads(stats.to_json())
    assert set(decoded) == {
        "total_rx",
        "total_tx",
        "open_conns",
        "open_latency",
        "loss",
        "exit_info",
    }
    assert decoded["exit_info"] is None
    assert decoded["total_rx"] == 0


def test_stat_collector_counters_accumulate():
    stats = StatCollector()
    stats.incr_total_rx(10)
    stats.incr_total_rx(5)
    stats.incr_total_tx(7)
    decoded = json.loads(stats.to_json())
    assert decoded["total_rx"] == 10 + 5
    assert decoded["total_tx"] == 7


def test_stat_collector_concurrent_increments():
    stats = StatCollector()

    def work():
        for _ in range(1000):
            stats.incr_total_tx(1)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert json.loads(stats.to_json())["total_tx"] == 4000


def test_stat_collector_setters_and_exit():
    @dataclass
    class Exit:
        hostname: str
        country_code: str

    stats = StatCollector()
    stats.set_latency(12.5)
    stats.set_loss(3.25)
    stats.set_exit_descriptor(Exit("exit.example.com", "us"))
    decoded = json.loads(stats.to_json())
    assert decoded["open_latency"] == 12.5
    assert decoded["loss"] == 3.25
    assert decoded["exit_info"] == {"hostname": "exit.example.com", "country_code": "us"}
    stats.set_exit_descriptor(None)
    assert json.loads(stats.to_json())["exit_info"] is None


def test_compute_loss_empty_is_none():
    assert compute_loss([]) is None


def test_compute_loss_no_loss_when_all_received():
    samples = [sample(0, 0, 0), sample(1, 100, 100), sample(2, 200, 200)]
    assert compute_loss(samples) == 0.0


def test_compute_loss_half():
    samples = [sample(0, 0, 0), sample(1, 100, 100), sample(2, 200, 150)]
    assert compute_loss(samples) == pytest.approx(0.5)


def test_compute_loss_is_bounded():
    samples = [sample(0, 0, 0), sample(1, 50, 10), sample(2, 40, 900)]
    loss = compute_loss(samples)
    assert 0.0 <= loss <= 1.0


def test_update_from_samples_sets_latency_and_loss():
    stats = StatCollector()
    samples = [sample(0, 0, 0), sample(1, 100, 100, ping=0.1), sample(2, 200, 150, ping=0.2)]
    stats.update_from_samples(samples)
    decoded = json.loads(stats.to_json())
    assert decoded["open_latency"] == pytest.approx(0.2 * 1000.0)
    assert decoded["loss"] == pytest.approx(compute_loss(samples) * 100.0)


def test_update_from_samples_empty_keeps_values():
    stats = StatCollector()
    stats.set_latency(9.0)
    stats.update_from_samples([])
    assert json.loads(stats.to_json())["open_latency"] == 9.0


def test_trace_csv_header_only_when_empty():
    assert sosistab_trace_csv([]) == "time,last_recv,total_recv,total_loss,ping\n"


def test_trace_csv_rows():
    samples = [sample(100.0, 5, 4, loss=0.0, ping=0.001), sample(103.0, 9, 8, loss=0.0, ping=0.001)]
    lines = sosistab_trace_csv(samples).splitlines()
    assert lines[0] == "time,last_recv,total_recv,total_loss,ping"
    assert lines[1] == "0,5,4,0,1"
    assert lines[2].split(",")[1:3] == ["9", "8"]
    assert len(lines) == 3


def test_trace_csv_clamps_negative_time():
    samples = [sample(10.0, 1, 1), sample(5.0, 2, 2)]
    rows = sosistab_trace_csv(samples).splitlines()
    assert rows[2].split(",")[0] == "0"


def _read_tar(data):
    with tarfile.open(fileobj=io.BytesIO(data)) as archive:
        return {
            member.name: (archive.extractfile(member).read(), member.mode)
            for member in archive.getmembers()
        }


def test_debugpack_without_samples_has_only_logs():
    files = _read_tar(build_debugpack(["alpha", "beta"]))
    assert set(files) == {"logs.txt"}
    content, mode = files["logs.txt"]
    assert content == b"alpha\nbeta\n"
    assert mode == 0o666


def test_debugpack_with_samples_includes_trace():
    samples = [sample(1.0, 2, 2), sample(2.0, 4, 3)]
    files = _read_tar(build_debugpack(["gamma"], samples))
    assert set(files) == {"logs.txt", "sosistab-trace.csv"}
    assert files["sosistab-trace.csv"][0].decode() == sosistab_trace_csv(samples)
    assert files["logs.txt"][0] == b"gamma\n"