"""Durable retry queue for mutating requests that failed while offline."""

from swproxy.retry.queue import RetryQueue

__all__ = ["RetryQueue"]
