from django.contrib import admin

from .models import Course, Department


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'head', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'code']
    readonly_fields = ['id', 'created_at', 'updated_at']
    autocomplete_fields = ['head']


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'department', 'level', 'is_active']
    list_filter = ['level', 'is_active', 'department']
    search_fields = ['code', 'name']
    readonly_fields = ['id', 'created_at', 'updated_at']
