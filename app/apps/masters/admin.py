from django.contrib import admin
from import_export.admin import ImportExportModelAdmin

from .models import Department, Worker
from .resources import DepartmentResource, WorkerResource

admin.site.site_header = "GarmentFlow Admin"
admin.site.site_title = "GarmentFlow"
admin.site.index_title = "Production Floor"


# ---------------------
# Pagination mixin (centralized control)
# ---------------------
class PaginationMixin:
    list_per_page = 20


@admin.register(Department)
class DepartmentAdmin(PaginationMixin, ImportExportModelAdmin):
    resource_class = DepartmentResource
    list_display = ("code", "name", "active")
    search_fields = ("code", "name")
    list_filter = ("active",)


@admin.register(Worker)
class WorkerAdmin(PaginationMixin, ImportExportModelAdmin):
    resource_class = WorkerResource
    list_display = ("code", "name", "department", "active")
    list_filter = ("department", "active")
    search_fields = ("code", "name")
    list_select_related = ("department",)
