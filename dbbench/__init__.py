"""
Database load benchmark harness.

This package drives repeated create/insert/read/drop cycles against SQLite,
MySQL and PostgreSQL with randomized batch sizes, and exposes latency and
throughput as Prometheus metrics for dashboards to scrape.
"""

from .main import main

__all__ = ["main"]
