"""
Observability for the thesis archive.

Structured logging with correlation, Prometheus metrics, health checks
and domain event helpers.
"""
from .events import log_domain_event
from .logging import get_sanitized_logger
from .metrics import metrics

__all__ = ['metrics', 'log_domain_event', 'get_sanitized_logger']
