"""
Theses URLs
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ThesisViewSet

router = DefaultRouter()
router.register(r'theses', ThesisViewSet, basename='thesis')

urlpatterns = [
    path('', include(router.urls)),
]
