"""
Metrics collection for MODINJECT.

Collects timings for provider instantiation, application bootstrap and
operation lifetimes when metrics are enabled in InjectorConfig.
"""

import functools
import inspect
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..constants import DEFAULT_MAX_METRICS

logger = logging.getLogger(__name__)


@dataclass
class OperationMetrics:
    """Aggregated timings of one metric key."""

    operation_name: str
    count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: float = float("inf")
    max_duration_ms: float = 0.0
    error_count: int = 0
    last_execution: datetime | None = None

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count > 0 else 0.0

    @property
    def error_rate(self) -> float:
        """Error rate as percentage."""
        return (self.error_count / self.count * 100) if self.count > 0 else 0.0

    def record(self, duration_ms: float, success: bool = True) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        self.min_duration_ms = min(self.min_duration_ms, duration_ms)
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if not success:
            self.error_count += 1
        self.last_execution = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation_name,
            "count": self.count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "min_duration_ms": (
                round(self.min_duration_ms, 2) if self.min_duration_ms != float("inf") else 0.0
            ),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "error_count": self.error_count,
            "error_rate_percent": round(self.error_rate, 2),
            "last_execution": (self.last_execution.isoformat() if self.last_execution else None),
        }


class MetricsCollector:
    """
    Bounded, thread-safe metrics store.

    Keys combine the operation name with its tags, e.g.
    ``injector.instantiate[token=Database]``; the least recently used key is
    evicted once ``max_metrics`` keys exist.
    """

    def __init__(self, max_metrics: int = DEFAULT_MAX_METRICS):
        self._metrics: OrderedDict[str, OperationMetrics] = OrderedDict()
        self._lock = threading.Lock()
        self._max_metrics = max_metrics

    def record_operation(
        self, operation_name: str, duration_ms: float, success: bool = True, **tags: Any
    ) -> None:
        """
        Record one execution.

        Args:
            operation_name: Name of the operation (e.g., "injector.instantiate")
            duration_ms: Duration in milliseconds
            success: Whether the operation succeeded
            **tags: Additional tags (token, module_id, ...)
        """
        key = operation_name
        if tags:
            tag_str = "_".join(f"{k}={v}" for k, v in sorted(tags.items()))
            key = f"{operation_name}[{tag_str}]"

        with self._lock:
            if key in self._metrics:
                self._metrics.move_to_end(key)
            else:
                if len(self._metrics) >= self._max_metrics:
                    self._metrics.popitem(last=False)
                self._metrics[key] = OperationMetrics(operation_name=operation_name)

            self._metrics[key].record(duration_ms, success)

    def get_metrics(self, operation_name: str | None = None) -> dict[str, Any]:
        """
        Get metrics, optionally only those whose key starts with ``operation_name``.
        """
        with self._lock:
            keys = [k for k in self._metrics if not operation_name or k.startswith(operation_name)]
            metrics = {k: self._metrics[k].to_dict() for k in keys}
            for key in keys:
                self._metrics.move_to_end(key)
            total_operations = len(self._metrics)

        return {
            "timestamp": datetime.now().isoformat(),
            "metrics": metrics,
            "total_operations": total_operations,
        }

    def get_operation_count(self, operation_name: str) -> int:
        """Total executions of ``operation_name`` across all tag combinations."""
        with self._lock:
            return sum(
                metric.count
                for metric in self._metrics.values()
                if metric.operation_name == operation_name
            )

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def record_operation(
    operation_name: str, duration_ms: float, success: bool = True, **tags: Any
) -> None:
    """Record an operation in the global metrics collector."""
    get_metrics_collector().record_operation(operation_name, duration_ms, success, **tags)


def timed_operation(operation_name: str, **tags: Any):
    """
    Decorator to time a function and record it in the global collector.

    Usage:
        @timed_operation("app.create")
        def create_app(...):
            ...
    """

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                success = True
                try:
                    return await func(*args, **kwargs)
                except Exception:
                    success = False
                    raise
                finally:
                    duration_ms = (time.perf_counter() - start_time) * 1000
                    record_operation(operation_name, duration_ms, success, **tags)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            success = True
            try:
                return func(*args, **kwargs)
            except Exception:
                success = False
                raise
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000
                record_operation(operation_name, duration_ms, success, **tags)

        return sync_wrapper

    return decorator
