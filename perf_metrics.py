# =============================
# PerfMetrics — render pass profiler
# =============================
"""
Rolling-average timings for render passes.

Usage::

    metrics = PerfMetrics()              # CPU only
    metrics = PerfMetrics(ctx)           # + GPU timer queries
    with metrics.section("kernel"):
        ...
    metrics.begin_gpu("glass")           # around a moderngl draw
    ...
    metrics.end_gpu("glass")
    for line in metrics.summary():
        log.info(line)

CPU sections use ``time.perf_counter()``.  GPU sections wrap a
``moderngl`` time query; since the renderer reads the framebuffer back
right after drawing, the query result is already available and is
collected immediately.
"""

import time
from contextlib import contextmanager

import numpy as np

# Rolling history length (passes)
_HISTORY = 120


class _Section:
    __slots__ = ('history', 'idx', 'start', 'avg_ms', 'max_ms', 'query')

    def __init__(self, query=None):
        self.history = np.zeros(_HISTORY, dtype=np.float64)
        self.idx = 0
        self.start = 0.0
        self.avg_ms = 0.0
        self.max_ms = 0.0
        self.query = query

    def record(self, elapsed_ms):
        self.history[self.idx % _HISTORY] = elapsed_ms
        self.idx += 1
        n = min(self.idx, _HISTORY)
        self.avg_ms = float(np.mean(self.history[:n]))
        self.max_ms = float(np.max(self.history[:n]))

    @property
    def count(self):
        return self.idx


class PerfMetrics:
    """CPU (+ optional GPU) section timer with rolling averages."""

    def __init__(self, ctx=None, enabled=True):
        self.ctx = ctx
        self.enabled = enabled
        self._cpu: dict[str, _Section] = {}
        self._gpu: dict[str, _Section] = {}

    # ────────────── CPU sections ──────────────

    def begin(self, name: str):
        if not self.enabled:
            return
        sec = self._cpu.get(name)
        if sec is None:
            sec = self._cpu[name] = _Section()
        sec.start = time.perf_counter()

    def end(self, name: str):
        if not self.enabled:
            return
        sec = self._cpu.get(name)
        if sec is None:
            return
        sec.record((time.perf_counter() - sec.start) * 1000.0)

    @contextmanager
    def section(self, name: str):
        self.begin(name)
        try:
            yield
        finally:
            self.end(name)

    # ────────────── GPU sections ──────────────

    def begin_gpu(self, name: str):
        if not self.enabled or self.ctx is None:
            return
        sec = self._gpu.get(name)
        if sec is None:
            sec = self._gpu[name] = _Section(self.ctx.query(time=True))
        sec.query.__enter__()

    def end_gpu(self, name: str):
        if not self.enabled or self.ctx is None:
            return
        sec = self._gpu.get(name)
        if sec is None:
            return
        sec.query.__exit__(None, None, None)
        sec.record(sec.query.elapsed / 1_000_000.0)

    # ────────────── Reporting ──────────────

    def get_cpu_sections(self):
        """Returns list of (name, avg_ms, max_ms, count)."""
        return [(n, s.avg_ms, s.max_ms, s.count) for n, s in self._cpu.items()]

    def get_gpu_sections(self):
        return [(n, s.avg_ms, s.max_ms, s.count) for n, s in self._gpu.items()]

    def summary(self):
        lines = []
        for kind, rows in (("cpu", self.get_cpu_sections()),
                           ("gpu", self.get_gpu_sections())):
            for name, avg, peak, count in rows:
                lines.append(f"[{kind}] {name:<12} avg {avg:8.2f} ms  "
                             f"max {peak:8.2f} ms  n={count}")
        return lines

    def reset(self):
        self._cpu.clear()
        self._gpu.clear()
