"""Logging and metrics.

Submodules:
    logging  -- structlog configuration.
    metrics  -- Prometheus counters and textfile export.
"""
