from django.apps import AppConfig


class ThesesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.theses'
    verbose_name = 'Theses'
