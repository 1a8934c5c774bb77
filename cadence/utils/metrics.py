"""
Metrics Collection for recurring task materialization.

Counts refresh and cleanup activity in-process; exposed by the API.
"""

import time
from typing import Dict, Any, Callable
from collections import defaultdict
from datetime import datetime
from functools import wraps
import threading


class MetricsCollector:
    """Collects and manages metrics for materialization and cleanup jobs."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["recurring_tasks_processed_total"] = 0
        self.metrics["recurring_tasks_errors_total"] = 0
        self.metrics["task_instances_created_total"] = 0
        self.metrics["task_instances_purged_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat()
            }

    def reset(self):
        """Zero every counter and timer."""
        with self.lock:
            for name in self.metrics:
                self.metrics[name] = 0
            self.timers.clear()

    def recurring_task_processed(self):
        """Record that a recurring task went through materialization."""
        self.increment_counter("recurring_tasks_processed_total")

    def recurring_task_error(self):
        """Record that materializing a recurring task failed."""
        self.increment_counter("recurring_tasks_errors_total")

    def instances_created(self, count: int):
        """Record newly materialized task instances."""
        self.increment_counter("task_instances_created_total", count)

    def instances_purged(self, count: int):
        """Record task instances removed by cleanup."""
        self.increment_counter("task_instances_purged_total", count)

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator that accumulates the wall time of each call."""
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
