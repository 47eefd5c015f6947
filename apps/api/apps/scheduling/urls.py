"""
Scheduling URLs - Calendar
"""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import CalendarEventViewSet

router = DefaultRouter()
router.register(r'calendar', CalendarEventViewSet, basename='calendar-event')

urlpatterns = [
    path('', include(router.urls)),
]
