"""
Resolution metrics for the document cache-or-fetch path.

Tracks: cache hits and misses, fetch/storage failures, bytes downloaded,
latency. Appends one JSON line per resolution to metrics.jsonl.
"""
from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path

import psutil

from .config import METRICS_DIR

OUTCOMES = ("hit", "miss", "fetch_error", "storage_error")


class ResolutionMetrics:
    """Thread-safe resolution tracker with JSONL file logging."""

    def __init__(self, log_dir: str | Path | None = None):
        self._lock = threading.Lock()
        self._start_time: float = time.time()

        self._counts: dict[str, int] = {outcome: 0 for outcome in OUTCOMES}
        self._total_latency_ms: float = 0.0
        self._max_latency_ms: float = 0.0
        self._bytes_downloaded: int = 0

        self._log_dir = Path(log_dir) if log_dir else METRICS_DIR
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._log_path = self._log_dir / "metrics.jsonl"

        self._process = psutil.Process(os.getpid())

    @property
    def log_path(self) -> Path:
        return self._log_path

    def record_resolution(
        self,
        entity_id: str,
        outcome: str,
        latency_ms: float,
        bytes_downloaded: int = 0,
    ) -> None:
        if outcome not in self._counts:
            raise ValueError(f"unknown resolution outcome: {outcome}")

        entry = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "entity_id": str(entity_id),
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "bytes_downloaded": int(bytes_downloaded),
        }

        with self._lock:
            self._counts[outcome] += 1
            self._total_latency_ms += latency_ms
            self._max_latency_ms = max(self._max_latency_ms, latency_ms)
            self._bytes_downloaded += int(bytes_downloaded)

        # Append to JSONL file outside the lock.
        try:
            with open(self._log_path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, ensure_ascii=True) + "\n")
        except OSError:
            pass

    def get_summary(self) -> dict:
        with self._lock:
            counts = dict(self._counts)
            total = sum(counts.values())
            avg_lat = (self._total_latency_ms / total) if total > 0 else 0.0
            max_lat = self._max_latency_ms
            downloaded = self._bytes_downloaded

        mem_info = self._process.memory_info()

        return {
            "resolutions": {
                "total": total,
                **counts,
                "hit_rate_percent": round((counts["hit"] / total * 100) if total > 0 else 0.0, 2),
            },
            "latency": {
                "avg_ms": round(avg_lat, 2),
                "max_ms": round(max_lat, 2),
            },
            "bytes_downloaded": downloaded,
            "memory": {
                "rss_mb": round(mem_info.rss / (1024 * 1024), 1),
            },
            "uptime_seconds": round(time.time() - self._start_time, 1),
        }
