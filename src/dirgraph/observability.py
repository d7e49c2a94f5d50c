"""In-process metrics for the engines' store fan-outs.

Every ``timed`` block produces one ``OperationSample``: the engine
operation, the consistency level its reads asked for, how many objects
it produced and, on failure, the exception type. Samples aggregate per
operation and consistency level, with failures counted per exception
type.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from dataclasses import field
from threading import Lock
from time import perf_counter

from dirgraph.models.refs import ConsistencyLevel

logger = logging.getLogger(__name__)

ANY_CONSISTENCY = "any"


@dataclass
class OperationSample:
    """What one engine operation observed."""

    operation: str
    consistency: ConsistencyLevel | None = None
    objects: int = 0
    duration_ms: float = 0.0
    error: str | None = None

    @property
    def consistency_label(self) -> str:
        if self.consistency is None:
            return ANY_CONSISTENCY
        return self.consistency.value.lower()


@dataclass
class OperationStats:
    """Aggregates for one operation at one consistency level."""

    calls: int = 0
    objects: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    errors: Counter[str] = field(default_factory=Counter)

    def add(self, sample: OperationSample) -> None:
        self.calls += 1
        self.objects += sample.objects
        self.total_ms += sample.duration_ms
        self.max_ms = max(self.max_ms, sample.duration_ms)
        if sample.error is not None:
            self.errors[sample.error] += 1

    def as_dict(self) -> dict[str, object]:
        return {
            "calls": self.calls,
            "objects": self.objects,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.total_ms / self.calls if self.calls else 0.0, 3),
            "max_ms": round(self.max_ms, 3),
            "errors": dict(sorted(self.errors.items())),
        }


class _OperationRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[tuple[str, str], OperationStats] = {}

    def record(self, sample: OperationSample) -> None:
        sample.duration_ms = max(float(sample.duration_ms), 0.0)
        key = (sample.operation, sample.consistency_label)
        with self._lock:
            self._stats.setdefault(key, OperationStats()).add(sample)

        logger.info(
            "operation=%s consistency=%s objects=%d duration_ms=%.3f error=%s",
            sample.operation,
            sample.consistency_label,
            sample.objects,
            sample.duration_ms,
            sample.error or "-",
        )

    def snapshot(self) -> dict[str, dict[str, dict[str, object]]]:
        with self._lock:
            snapshot: dict[str, dict[str, dict[str, object]]] = {}
            for (operation, consistency), stats in sorted(self._stats.items()):
                snapshot.setdefault(operation, {})[consistency] = stats.as_dict()
            return snapshot

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_REGISTRY = _OperationRegistry()


def record_operation(sample: OperationSample) -> None:
    """Fold one finished sample into the aggregates."""
    _REGISTRY.record(sample)


@contextmanager
def timed(
    operation: str, *, consistency: ConsistencyLevel | None = None
) -> Iterator[OperationSample]:
    """Time the enclosed block and record it under *operation*.

    The block may set ``objects`` on the yielded sample. If it raises,
    the exception's type name is recorded and the exception propagates.
    """
    sample = OperationSample(operation=operation, consistency=consistency)
    start = perf_counter()
    try:
        yield sample
    except BaseException as exc:
        sample.error = type(exc).__name__
        raise
    finally:
        sample.duration_ms = (perf_counter() - start) * 1000
        record_operation(sample)


def operation_metrics_snapshot() -> dict[str, dict[str, dict[str, object]]]:
    """Return ``{operation: {consistency: aggregates}}``."""
    return _REGISTRY.snapshot()


def reset_operation_metrics() -> None:
    """Clear all aggregates (test helper)."""
    _REGISTRY.reset()
