"""
Dashboard URLs
"""
from django.urls import path

from .views import (
    AdminAnalyticsView,
    AdminDashboardView,
    DashboardActivityView,
    DashboardDepartmentStatsView,
    DashboardStatsView,
    DashboardUpcomingEventsView,
)

urlpatterns = [
    path('dashboard/stats/', DashboardStatsView.as_view(), name='dashboard-stats'),
    path('dashboard/activity/', DashboardActivityView.as_view(), name='dashboard-activity'),
    path('dashboard/upcoming-events/', DashboardUpcomingEventsView.as_view(), name='dashboard-upcoming-events'),
    path('dashboard/department-stats/', DashboardDepartmentStatsView.as_view(), name='dashboard-department-stats'),
    path('admin/dashboard/', AdminDashboardView.as_view(), name='admin-dashboard'),
    path('admin/analytics/', AdminAnalyticsView.as_view(), name='admin-analytics'),
]
