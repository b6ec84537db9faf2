from django.contrib import admin, messages
from django.utils.translation import gettext as _
from import_export.admin import ExportMixin

from apps.masters.admin import PaginationMixin

from . import services
from .exceptions import WorkflowError
from .models import (
    ExceptionEntry, StageHistoryEntry, SubBatch, WorkAssignment, WorkLogEntry, WorkflowStep, Workflow,
)
from .resources import StageHistoryEntryResource, WorkLogEntryResource


class ReadOnlyAdminMixin:
    """Audit tables are written by the production services only."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class WorkflowStepInline(admin.TabularInline):
    model = WorkflowStep
    extra = 0
    fields = ("step_index", "department")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(SubBatch)
class SubBatchAdmin(PaginationMixin, admin.ModelAdmin):
    list_display = ("name", "estimated_pieces", "status", "current_department", "start_date", "due_date", "completed_at")
    list_filter = ("status",)
    search_fields = ("name",)
    readonly_fields = ("status", "completed_at", "created_at", "updated_at")
    actions = ("action_advance_selected", "action_mark_completed_selected")

    fieldsets = (
        (None, {"fields": ("name", "estimated_pieces", ("start_date", "due_date"))}),
        ("Status", {"fields": ("status", "completed_at", "created_at", "updated_at")}),
    )

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is None:
            return readonly
        if obj.is_frozen:
            return ["name", "estimated_pieces", "start_date", "due_date", *readonly]
        # the first card was opened with this quantity
        if Workflow.objects.filter(sub_batch=obj).exists():
            return ["estimated_pieces", *readonly]
        return readonly

    def has_delete_permission(self, request, obj=None):
        if obj is not None and Workflow.objects.filter(sub_batch=obj).exists():
            return False
        return super().has_delete_permission(request, obj)

    def current_department(self, obj):
        workflow = getattr(obj, "workflow", None)
        if workflow is None:
            return ""
        step = workflow.steps.filter(step_index=workflow.current_step_index).select_related("department").first()
        return step.department.name if step else ""
    current_department.short_description = "Current Department"

    @admin.action(description="Advance selected sub-batch(es) to the next department")
    def action_advance_selected(self, request, queryset):
        advanced = 0
        for sub_batch in queryset:
            try:
                card = services.advance(sub_batch.pk)
            except WorkflowError as exc:
                self.message_user(request, f"{sub_batch.name}: {exc.message}", level=messages.WARNING)
                continue
            if card is None:
                self.message_user(request, f"{sub_batch.name} is already at its last department.", level=messages.INFO)
                continue
            advanced += 1
        self.message_user(request, _("Advanced %d sub-batch(es).") % advanced)

    @admin.action(description="Mark selected sub-batch(es) as completed")
    def action_mark_completed_selected(self, request, queryset):
        completed = 0
        for sub_batch in queryset:
            try:
                services.mark_completed(sub_batch.pk)
                completed += 1
            except WorkflowError as exc:
                self.message_user(request, f"{sub_batch.name}: {exc.message}", level=messages.WARNING)
        self.message_user(request, _("Completed %d sub-batch(es).") % completed)


@admin.register(Workflow)
class WorkflowAdmin(ReadOnlyAdminMixin, PaginationMixin, admin.ModelAdmin):
    list_display = ("sub_batch", "current_step_index", "created_at")
    inlines = (WorkflowStepInline,)
    list_select_related = ("sub_batch",)


@admin.register(WorkAssignment)
class WorkAssignmentAdmin(ReadOnlyAdminMixin, PaginationMixin, admin.ModelAdmin):
    list_display = (
        "id", "sub_batch", "department", "lineage", "stage", "is_current",
        "quantity_received", "quantity_remaining", "assigned_worker", "version",
    )
    list_filter = ("department", "lineage", "stage", "is_current")
    search_fields = ("sub_batch__name", "department__code", "department__name")
    list_select_related = ("sub_batch", "department", "assigned_worker")


@admin.register(WorkLogEntry)
class WorkLogEntryAdmin(ReadOnlyAdminMixin, PaginationMixin, ExportMixin, admin.ModelAdmin):
    resource_class = WorkLogEntryResource
    list_display = ("work_date", "sub_batch", "assignment", "worker", "quantity_worked", "unit_price", "activity_type")
    list_filter = ("activity_type", "work_date")
    search_fields = ("sub_batch__name", "worker__code", "worker__name")
    list_select_related = ("sub_batch", "assignment", "worker")


@admin.register(ExceptionEntry)
class ExceptionEntryAdmin(ReadOnlyAdminMixin, PaginationMixin, admin.ModelAdmin):
    list_display = ("created_at", "kind", "sub_batch", "source_department", "target_department", "quantity", "reason")
    list_filter = ("kind",)
    search_fields = ("sub_batch__name", "reason")
    list_select_related = ("sub_batch", "source_department", "target_department")


@admin.register(StageHistoryEntry)
class StageHistoryEntryAdmin(ReadOnlyAdminMixin, PaginationMixin, ExportMixin, admin.ModelAdmin):
    resource_class = StageHistoryEntryResource
    list_display = ("recorded_at", "sub_batch", "assignment", "from_stage", "to_stage", "to_department", "reason")
    list_filter = ("to_stage",)
    search_fields = ("sub_batch__name", "reason")
    list_select_related = ("sub_batch", "to_department")
