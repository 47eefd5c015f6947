"""
Page-number pagination rendered inside the success envelope.
"""
from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class EnvelopePagination(PageNumberPagination):
    """
    ``?page=N&limit=M`` pagination; ``limit`` is capped at THESIS_MAX_PAGE_SIZE.
    """
    page_size_query_param = 'limit'

    @property
    def max_page_size(self):
        return getattr(settings, 'THESIS_MAX_PAGE_SIZE', 50)

    def get_paginated_response(self, data):
        return Response({
            'success': True,
            'data': data,
            'pagination': {
                'current_page': self.page.number,
                'total_pages': self.page.paginator.num_pages,
                'total_items': self.page.paginator.count,
                'items_per_page': self.get_page_size(self.request),
            },
        })

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'properties': {
                'success': {'type': 'boolean'},
                'data': schema,
                'pagination': {
                    'type': 'object',
                    'properties': {
                        'current_page': {'type': 'integer'},
                        'total_pages': {'type': 'integer'},
                        'total_items': {'type': 'integer'},
                        'items_per_page': {'type': 'integer'},
                    },
                },
            },
        }
