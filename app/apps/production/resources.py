# apps/production/resources.py
"""Export-only resources for the production audit tables."""
from import_export import resources, fields

from .models import StageHistoryEntry, WorkLogEntry


class WorkLogEntryResource(resources.ModelResource):
    sub_batch = fields.Field(attribute="sub_batch__name", column_name="sub_batch")
    department = fields.Field(attribute="assignment__department__code", column_name="department_code")
    lineage = fields.Field(attribute="assignment__lineage", column_name="lineage")
    worker = fields.Field(attribute="worker__code", column_name="worker_code")

    class Meta:
        model = WorkLogEntry
        fields = (
            "id", "sub_batch", "department", "lineage", "worker", "work_date", "size_category",
            "particulars", "quantity_received", "quantity_worked", "unit_price", "activity_type",
        )
        export_order = (
            "id", "sub_batch", "department", "lineage", "worker", "work_date", "size_category",
            "particulars", "quantity_received", "quantity_worked", "unit_price", "activity_type",
        )

    def get_queryset(self):
        return super().get_queryset().select_related(
            "sub_batch", "assignment__department", "worker"
        )


class StageHistoryEntryResource(resources.ModelResource):
    sub_batch = fields.Field(attribute="sub_batch__name", column_name="sub_batch")
    from_department = fields.Field(attribute="from_department__code", column_name="from_department_code")
    to_department = fields.Field(attribute="to_department__code", column_name="to_department_code")

    class Meta:
        model = StageHistoryEntry
        fields = (
            "id", "sub_batch", "assignment", "from_stage", "to_stage", "from_department", "to_department",
            "reason", "recorded_at",
        )
        export_order = (
            "id", "sub_batch", "assignment", "from_stage", "to_stage", "from_department", "to_department",
            "reason", "recorded_at",
        )
