import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import apps.theses.models


STATUS_CHOICES = [
    ('Draft', 'Draft'),
    ('Under Review', 'Under Review'),
    ('Approved', 'Approved'),
    ('Rejected', 'Rejected'),
    ('Published', 'Published'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Thesis',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('abstract', models.TextField(help_text='Up to 2000 characters')),
                ('keywords', models.JSONField(blank=True, default=list, help_text='Ordered list of keywords')),
                ('adviser_name', models.CharField(blank=True, help_text='Adviser display name; kept for legacy records without a user reference', max_length=150)),
                ('academic_year', models.CharField(help_text='e.g. 2024-2025', max_length=9)),
                ('semester', models.CharField(choices=[('1st Semester', '1st Semester'), ('2nd Semester', '2nd Semester'), ('Summer', 'Summer')], max_length=20)),
                ('category', models.CharField(choices=[('Undergraduate', 'Undergraduate'), ('Graduate', 'Graduate'), ('Doctoral', 'Doctoral'), ('Research Paper', 'Research Paper')], max_length=20)),
                ('status', models.CharField(choices=STATUS_CHOICES, default='Draft', max_length=20)),
                ('is_public', models.BooleanField(default=False)),
                ('review_comments', models.TextField(blank=True)),
                ('review_score', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('download_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('published_at', models.DateTimeField(blank=True, null=True)),
                ('adviser', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='advised_theses', to=settings.AUTH_USER_MODEL)),
                ('co_authors', models.ManyToManyField(blank=True, related_name='coauthored_theses', to=settings.AUTH_USER_MODEL)),
                ('creator', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='created_theses', to=settings.AUTH_USER_MODEL)),
                ('department', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='theses', to='academics.department')),
                ('program', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='theses', to='academics.course')),
                ('reviewer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_theses', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Thesis',
                'verbose_name_plural': 'Theses',
                'db_table': 'theses',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ThesisDocument',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('primary', 'Primary'), ('supplementary', 'Supplementary')], max_length=15)),
                ('file', models.FileField(max_length=255, upload_to=apps.theses.models.thesis_document_path)),
                ('original_name', models.CharField(max_length=255)),
                ('content_type', models.CharField(max_length=100)),
                ('size_bytes', models.PositiveIntegerField()),
                ('sha256', models.CharField(help_text='Hex digest of the stored bytes', max_length=64)),
                ('is_current', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('thesis', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='theses.thesis')),
                ('uploaded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='uploaded_thesis_documents', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Thesis Document',
                'verbose_name_plural': 'Thesis Documents',
                'db_table': 'thesis_documents',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['thesis', 'kind'], name='idx_thesis_document_kind')],
            },
        ),
        migrations.AddField(
            model_name='thesis',
            name='primary_document',
            field=models.ForeignKey(blank=True, help_text='Current primary PDF', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='theses.thesisdocument'),
        ),
        migrations.AddIndex(
            model_name='thesis',
            index=models.Index(fields=['status', 'is_public'], name='idx_thesis_archive'),
        ),
        migrations.AddIndex(
            model_name='thesis',
            index=models.Index(fields=['department', 'status'], name='idx_thesis_department'),
        ),
        migrations.AddIndex(
            model_name='thesis',
            index=models.Index(fields=['published_at'], name='idx_thesis_published_at'),
        ),
        migrations.AddIndex(
            model_name='thesis',
            index=models.Index(fields=['submitted_at'], name='idx_thesis_submitted_at'),
        ),
        migrations.AddIndex(
            model_name='thesis',
            index=models.Index(fields=['academic_year'], name='idx_thesis_academic_year'),
        ),
        migrations.CreateModel(
            name='ThesisStatusChange',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('submit', 'Submit'), ('approve', 'Approve'), ('reject', 'Reject'), ('publish', 'Publish'), ('reset', 'Reset (correction)')], max_length=10)),
                ('from_status', models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ('to_status', models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ('comment', models.TextField(blank=True)),
                ('is_correction', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='thesis_status_changes', to=settings.AUTH_USER_MODEL)),
                ('thesis', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_changes', to='theses.thesis')),
            ],
            options={
                'verbose_name': 'Thesis Status Change',
                'verbose_name_plural': 'Thesis Status Changes',
                'db_table': 'thesis_status_changes',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['thesis', 'created_at'], name='idx_status_change_thesis')],
            },
        ),
    ]
