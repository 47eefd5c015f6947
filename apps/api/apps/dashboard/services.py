"""
Dashboard and analytics queries.

Everything here is read-only and scoped by the caller's identity; thesis
rows always go through apps.theses.visibility.
"""
from datetime import timedelta

from django.db import models
from django.db.models.functions import TruncDate
from django.utils import timezone

from apps.academics.models import Department
from apps.accounts.models import RoleChoices, User
from apps.scheduling.models import ACTIVE_EVENT_STATUSES, CalendarEvent
from apps.scheduling.views import visible_events
from apps.theses.models import Thesis, ThesisStatus, ThesisStatusChange
from apps.theses.visibility import SCOPE_MINE, authored_by_q, public_archive_q, visible_theses

ANALYTICS_PERIODS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
}

ACTIVITY_LIMIT = 10
TOP_LIMIT = 10


def _month_start(now):
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _totals(theses):
    totals = theses.aggregate(
        views=models.Sum('view_count'),
        downloads=models.Sum('download_count'),
    )
    return totals['views'] or 0, totals['downloads'] or 0


def admin_stats():
    now = timezone.now()
    return {
        'total_theses': Thesis.objects.count(),
        'total_users': User.objects.filter(is_active=True).count(),
        'total_departments': Department.objects.filter(is_active=True).count(),
        'recent_submissions': Thesis.objects.filter(submitted_at__gte=now - timedelta(days=7)).count(),
        'published_this_month': Thesis.objects.filter(
            status=ThesisStatus.PUBLISHED,
            published_at__gte=_month_start(now),
        ).count(),
        'pending_reviews': Thesis.objects.filter(status=ThesisStatus.UNDER_REVIEW).count(),
    }


def user_stats(identity):
    """
    Authors: their own theses. Advisers: theses they advise, plus the
    review queue of their department.
    """
    if identity.is_adviser:
        theses = Thesis.objects.filter(adviser_id=identity.user_id)
        pending = Thesis.objects.filter(
            department_id=identity.department_id,
            status=ThesisStatus.UNDER_REVIEW,
        ).count() if identity.department_id else 0
    else:
        theses = visible_theses(identity, SCOPE_MINE)
        pending = theses.filter(status=ThesisStatus.UNDER_REVIEW).count()

    views, downloads = _totals(theses)
    return {
        'my_theses': theses.count(),
        'published_theses': theses.filter(status=ThesisStatus.PUBLISHED).count(),
        'total_views': views,
        'total_downloads': downloads,
        'pending_reviews': pending,
    }


def recent_activity(identity):
    """Newest first, at most ACTIVITY_LIMIT entries."""
    since = timezone.now() - timedelta(days=30)

    if identity.is_admin:
        submissions = Thesis.objects.filter(submitted_at__gte=since).select_related('creator').order_by('-submitted_at')
        registrations = User.objects.filter(created_at__gte=since).order_by('-created_at')
        activities = [
            {
                'type': 'thesis',
                'title': f'New thesis submitted: "{thesis.title}"',
                'date': thesis.submitted_at,
                'author': thesis.creator.full_name,
                'thesis_id': str(thesis.pk),
            }
            for thesis in submissions[:ACTIVITY_LIMIT]
        ] + [
            {
                'type': 'user',
                'title': f'New user registered: {user.full_name}',
                'date': user.created_at,
                'role': user.role,
            }
            for user in registrations[:5]
        ]
    else:
        if identity.is_adviser:
            related = models.Q(thesis__adviser_id=identity.user_id)
            if identity.department_id:
                related |= models.Q(thesis__department_id=identity.department_id)
        else:
            related = models.Q(thesis__in=Thesis.objects.filter(authored_by_q(identity.user_id)).values('pk'))
        changes = ThesisStatusChange.objects.filter(related).select_related('thesis').order_by('-created_at')
        activities = [
            {
                'type': 'status_change',
                'title': f'Thesis "{change.thesis.title}" status: {change.to_status}',
                'date': change.created_at,
                'status': change.to_status,
                'thesis_id': str(change.thesis_id),
            }
            for change in changes[:ACTIVITY_LIMIT]
        ]

    activities.sort(key=lambda activity: activity['date'], reverse=True)
    return activities[:ACTIVITY_LIMIT]


def department_stats(department):
    """Totals for one department; submissions counted over the last 30 days."""
    since = timezone.now() - timedelta(days=30)
    theses = Thesis.objects.filter(department=department)
    members = department.statistics()
    return {
        'department': {
            'id': str(department.pk),
            'name': department.name,
            'code': department.code,
            'description': department.description,
            'is_active': department.is_active,
        },
        'thesis_count': theses.count(),
        'user_count': department.members.filter(is_active=True).count(),
        'recent_submissions': theses.filter(submitted_at__gte=since).count(),
        'published_theses': members['total_theses'],
        'total_students': members['total_students'],
        'total_faculty': members['total_faculty'],
    }


def upcoming_events(identity, limit=5):
    queryset = visible_events(identity).filter(
        start_date__gte=timezone.localdate(),
        status__in=ACTIVE_EVENT_STATUSES,
    ).select_related('department', 'organizer')
    return queryset.order_by('start_date', 'start_time')[:limit]


def admin_overview():
    today = timezone.localdate()
    active_users = User.objects.filter(is_active=True)
    upcoming = CalendarEvent.objects.filter(start_date__gte=today, status__in=ACTIVE_EVENT_STATUSES)
    departments = Department.objects.filter(is_active=True).order_by('name')

    return {
        'statistics': {
            'total_users': active_users.count(),
            'total_students': active_users.filter(role=RoleChoices.STUDENT).count(),
            'total_faculty': active_users.filter(role__in=[RoleChoices.FACULTY, RoleChoices.ADVISER]).count(),
            'total_theses': Thesis.objects.count(),
            'published_theses': Thesis.objects.filter(status=ThesisStatus.PUBLISHED).count(),
            'pending_theses': Thesis.objects.filter(
                status__in=[ThesisStatus.DRAFT, ThesisStatus.UNDER_REVIEW]
            ).count(),
            'total_events': CalendarEvent.objects.count(),
            'upcoming_events': upcoming.count(),
            'departments': departments.count(),
        },
        'departments': [
            {'id': str(department.pk), 'name': department.name, 'code': department.code, **department.statistics()}
            for department in departments
        ],
        'recent_theses': Thesis.objects.select_related('creator').order_by('-created_at')[:5],
        'recent_users': active_users.order_by('-created_at')[:5],
        'upcoming': upcoming.select_related('department', 'organizer').order_by('start_date', 'start_time')[:5],
    }


def _per_day(queryset, field):
    rows = (
        queryset.annotate(day=TruncDate(field))
        .values('day')
        .annotate(count=models.Count('pk'))
        .order_by('day')
    )
    return [{'date': row['day'].isoformat(), 'count': row['count']} for row in rows]


def _top_theses(order_field):
    theses = Thesis.objects.filter(public_archive_q()).select_related('creator').order_by(f'-{order_field}', 'title')
    return [
        {
            'id': str(thesis.pk),
            'title': thesis.title,
            'author': thesis.creator.full_name,
            'view_count': thesis.view_count,
            'download_count': thesis.download_count,
        }
        for thesis in theses[:TOP_LIMIT]
    ]


def analytics(period):
    """
    Raises:
        KeyError: unknown period
    """
    since = timezone.now() - timedelta(days=ANALYTICS_PERIODS[period])

    department_stats = (
        Thesis.objects.values('department__code', 'department__name')
        .annotate(
            total_theses=models.Count('pk'),
            published_theses=models.Count('pk', filter=models.Q(status=ThesisStatus.PUBLISHED)),
        )
        .order_by('-total_theses', 'department__code')
    )

    return {
        'period': period,
        'user_registrations': _per_day(User.objects.filter(created_at__gte=since), 'created_at'),
        'thesis_submissions': _per_day(Thesis.objects.filter(submitted_at__gte=since), 'submitted_at'),
        'department_stats': [
            {
                'department': row['department__code'],
                'name': row['department__name'],
                'total_theses': row['total_theses'],
                'published_theses': row['published_theses'],
            }
            for row in department_stats
        ],
        'top_downloads': _top_theses('download_count'),
        'top_views': _top_theses('view_count'),
    }
