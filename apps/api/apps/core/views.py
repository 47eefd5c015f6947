"""
Prometheus scrape endpoint.
"""
from django.http import HttpResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest


class MetricsView(View):
    """Expose the default Prometheus registry."""

    def get(self, request):
        return HttpResponse(generate_latest(), content_type=CONTENT_TYPE_LATEST)
