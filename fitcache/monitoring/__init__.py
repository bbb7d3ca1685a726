"""
fitcache Monitoring Module

Prometheus metrics for cache reads, loads and writes.
"""

from .cache_metrics import CacheMetricsCollector

__all__ = ["CacheMetricsCollector"]
