"""
Prometheus metrics for the thesis archive.

Metrics are registered once at import time in the default registry.
"""
from prometheus_client import Counter, Histogram


class MetricsRegistry:
    """
    Central metrics registry.

    Provides typed access to all application metrics.
    """

    def __init__(self):
        # ===================================================================
        # HTTP Metrics
        # ===================================================================
        self.exceptions_total = Counter(
            'thesis_archive_exceptions_total',
            'Unhandled exceptions rendered as 500',
            ['exception_type'],
        )

        # ===================================================================
        # Thesis Metrics
        # ===================================================================
        self.thesis_transitions_total = Counter(
            'thesis_transitions_total',
            'Thesis status transitions',
            ['action', 'result'],  # result: success|forbidden|invalid|missing_document
        )

        self.thesis_created_total = Counter(
            'thesis_created_total',
            'Theses created',
            ['category'],
        )

        # ===================================================================
        # Document Metrics
        # ===================================================================
        self.document_uploads_total = Counter(
            'thesis_document_uploads_total',
            'Thesis document uploads',
            ['kind', 'result'],  # kind: primary|supplementary
        )

        self.document_upload_bytes = Histogram(
            'thesis_document_upload_bytes',
            'Size of accepted thesis documents',
            buckets=[64 * 1024, 256 * 1024, 1024 * 1024, 4 * 1024 * 1024, 10 * 1024 * 1024],
        )

        self.document_downloads_total = Counter(
            'thesis_document_downloads_total',
            'Primary document downloads streamed',
        )

        # ===================================================================
        # Calendar Metrics
        # ===================================================================
        self.event_attachment_uploads_total = Counter(
            'calendar_event_attachment_uploads_total',
            'Calendar event attachment uploads',
            ['result'],  # result: success|payload_too_large|unsupported_media
        )


metrics = MetricsRegistry()
