# apps/masters/resources.py
from django.core.exceptions import ValidationError
from import_export import resources, fields
from import_export.widgets import ForeignKeyWidget

from .models import Department, Worker


class DepartmentResource(resources.ModelResource):
    class Meta:
        model = Department
        import_id_fields = ("code",)
        fields = ("code", "name", "active")
        export_order = ("code", "name", "active")


class WorkerResource(resources.ModelResource):
    department = fields.Field(attribute="department", column_name="department_code",
                              widget=ForeignKeyWidget(Department, "code"))

    class Meta:
        model = Worker
        import_id_fields = ("code",)
        fields = ("code", "name", "department", "active")
        export_order = ("code", "name", "department", "active")

    def before_import_row(self, row, row_number=None, **kwargs):
        dept_code = (row.get("department_code") or "").strip()
        if dept_code and not Department.objects.filter(code=dept_code).exists():
            raise ValidationError(f"Worker import row {row_number or 'unknown'}: department '{dept_code}' not found")
