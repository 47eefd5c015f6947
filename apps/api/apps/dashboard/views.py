"""
Dashboard endpoints.

Endpoints:
- GET /api/v1/dashboard/stats/ - Role-dependent totals
- GET /api/v1/dashboard/activity/ - Recent activity
- GET /api/v1/dashboard/upcoming-events/ - Next events visible to the caller
- GET /api/v1/dashboard/department-stats/ - Totals for the caller's department (Admin: ?department=<code>)
- GET /api/v1/admin/dashboard/ - System overview (Admin)
- GET /api/v1/admin/analytics/?period=7d|30d|90d|1y - Trends (Admin)
"""
from rest_framework.exceptions import ValidationError
from rest_framework.views import APIView

from apps.academics.models import Department
from apps.accounts.identity import require_identity
from apps.accounts.permissions import IsAdmin
from apps.accounts.serializers import UserListSerializer
from apps.core.exceptions import NotFound
from apps.core.responses import success_response
from apps.dashboard import services
from apps.scheduling.serializers import CalendarEventSerializer
from apps.theses.serializers import ThesisListSerializer


class DashboardStatsView(APIView):
    def get(self, request):
        identity = require_identity(request)
        if identity.is_admin:
            return success_response(services.admin_stats())
        return success_response(services.user_stats(identity))


class DashboardActivityView(APIView):
    def get(self, request):
        identity = require_identity(request)
        return success_response(services.recent_activity(identity))


class DashboardUpcomingEventsView(APIView):
    def get(self, request):
        identity = require_identity(request)
        events = services.upcoming_events(identity)
        return success_response(CalendarEventSerializer(events, many=True).data)


class DashboardDepartmentStatsView(APIView):
    def get(self, request):
        identity = require_identity(request)
        code = request.query_params.get('department')
        if code and identity.is_admin:
            department = Department.objects.filter(code__iexact=code).first()
        elif identity.department_id:
            department = Department.objects.filter(pk=identity.department_id).first()
        else:
            department = None
        if department is None:
            raise NotFound('Department not found.')
        return success_response(services.department_stats(department))


class AdminDashboardView(APIView):
    permission_classes = [IsAdmin]

    def get(self, request):
        overview = services.admin_overview()
        return success_response({
            'statistics': overview['statistics'],
            'departments': overview['departments'],
            'recent_activities': {
                'theses': ThesisListSerializer(overview['recent_theses'], many=True).data,
                'users': UserListSerializer(overview['recent_users'], many=True).data,
                'events': CalendarEventSerializer(overview['upcoming'], many=True).data,
            },
        })


class AdminAnalyticsView(APIView):
    permission_classes = [IsAdmin]

    def get(self, request):
        period = request.query_params.get('period', '30d')
        if period not in services.ANALYTICS_PERIODS:
            raise ValidationError({'period': f'Must be one of: {", ".join(services.ANALYTICS_PERIODS)}'})
        return success_response(services.analytics(period))
