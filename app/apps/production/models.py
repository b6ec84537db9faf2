# apps/production/models.py
from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Stage(models.TextChoices):
    NEW_ARRIVAL = "NEW_ARRIVAL", _("New Arrival")
    IN_PROGRESS = "IN_PROGRESS", _("In Progress")
    COMPLETED = "COMPLETED", _("Completed")


class LineageKind(models.TextChoices):
    MAIN = "Main", _("Main")
    ASSIGNED = "Assigned", _("Assigned")
    REJECTED = "Rejected", _("Rejected")
    ALTERED = "Altered", _("Altered")


# Cards that travel with the workflow cursor; REJECTED/ALTERED are branches.
MAIN_LINEAGE = (LineageKind.MAIN, LineageKind.ASSIGNED)
BRANCH_LINEAGE = (LineageKind.REJECTED, LineageKind.ALTERED)


class ActivityType(models.TextChoices):
    NORMAL = "NORMAL", _("Normal")
    REJECTED = "REJECTED", _("Rejected")
    ALTERED = "ALTERED", _("Altered")


class ExceptionKind(models.TextChoices):
    REJECTED = "REJECTED", _("Rejected")
    ALTERED = "ALTERED", _("Altered")


class SubBatch(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", _("Draft")
        IN_PRODUCTION = "IN_PRODUCTION", _("In Production")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")

    name = models.CharField(max_length=128)
    estimated_pieces = models.PositiveIntegerField()
    start_date = models.DateField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "id")
        verbose_name = "Sub-batch"
        verbose_name_plural = "Sub-batches"

    def __str__(self):
        return f"{self.name} ({self.estimated_pieces} pcs)"

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": _("Name is required.")})
        if not self.estimated_pieces or self.estimated_pieces <= 0:
            raise ValidationError({"estimated_pieces": _("Estimated pieces must be positive.")})
        if self.start_date and self.due_date and self.start_date > self.due_date:
            raise ValidationError({"due_date": _("Start date cannot be after due date.")})

    @property
    def is_frozen(self):
        return self.status == self.Status.COMPLETED


class Workflow(models.Model):
    """Ordered department plan for one sub-batch; only the cursor moves."""

    sub_batch = models.OneToOneField(SubBatch, on_delete=models.CASCADE, related_name="workflow")
    current_step_index = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Workflow for {self.sub_batch_id} @ step {self.current_step_index}"

    def ordered_steps(self):
        return list(self.steps.select_related("department").order_by("step_index"))

    def step_positions(self):
        """Map department id -> step index."""
        return dict(self.steps.values_list("department_id", "step_index"))

    @property
    def last_step_index(self):
        return self.steps.count() - 1


class WorkflowStep(models.Model):
    workflow = models.ForeignKey(Workflow, on_delete=models.CASCADE, related_name="steps")
    department = models.ForeignKey("masters.Department", on_delete=models.PROTECT, related_name="workflow_steps")
    step_index = models.PositiveIntegerField()

    class Meta:
        ordering = ("workflow", "step_index")
        constraints = [
            models.UniqueConstraint(fields=["workflow", "step_index"], name="production_step_workflow_index_uniq"),
            models.UniqueConstraint(fields=["workflow", "department"], name="production_step_workflow_dept_uniq"),
        ]

    def __str__(self):
        return f"#{self.step_index} {self.department}"


class WorkAssignment(models.Model):
    """
    One department's card for a sub-batch.

    ``quantity_remaining`` is a stored copy of the ledger value; it is written
    only by ``services.ledger.sync_remaining``. ``version`` is bumped on every
    write so that retiring a card can be done as a compare-and-set.
    """

    sub_batch = models.ForeignKey(SubBatch, on_delete=models.PROTECT, related_name="assignments")
    department = models.ForeignKey("masters.Department", on_delete=models.PROTECT, related_name="assignments")
    step_index = models.PositiveIntegerField(
        null=True, blank=True,
        help_text="Workflow position of this card; empty when sent outside the planned flow",
    )
    stage = models.CharField(max_length=16, choices=Stage.choices, default=Stage.NEW_ARRIVAL)
    lineage = models.CharField(max_length=16, choices=LineageKind.choices, default=LineageKind.MAIN)
    is_current = models.BooleanField(default=True)

    quantity_received = models.PositiveIntegerField(default=0)
    quantity_remaining = models.PositiveIntegerField(default=0)

    source_assignment = models.ForeignKey(
        "self", on_delete=models.PROTECT, null=True, blank=True, related_name="descendants",
        help_text="Card this one was forwarded or branched from",
    )
    sent_from_department = models.ForeignKey(
        "masters.Department", on_delete=models.PROTECT, null=True, blank=True, related_name="+",
    )
    reason = models.TextField(blank=True, default="")
    assigned_worker = models.ForeignKey(
        "masters.Worker", on_delete=models.SET_NULL, null=True, blank=True, related_name="assignments",
    )

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    retired_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("created_at", "id")
        verbose_name = "Work assignment"
        constraints = [
            models.UniqueConstraint(
                fields=["sub_batch", "department", "lineage"],
                condition=Q(is_current=True) & ~Q(lineage="Assigned"),
                name="production_assignment_single_current_head",
            ),
            # Assigned shares are carved per worker, one current share each.
            models.UniqueConstraint(
                fields=["sub_batch", "department", "assigned_worker"],
                condition=Q(is_current=True, lineage="Assigned"),
                name="production_assignment_single_current_share",
            ),
        ]
        indexes = [
            models.Index(fields=["department", "is_current", "stage"], name="production_wa_board_idx"),
        ]

    def __str__(self):
        return f"{self.sub_batch_id}@{self.department_id} [{self.lineage}/{self.stage}]"

    @property
    def activity_type(self):
        if self.lineage == LineageKind.REJECTED:
            return ActivityType.REJECTED
        if self.lineage == LineageKind.ALTERED:
            return ActivityType.ALTERED
        return ActivityType.NORMAL


class WorkLogEntry(models.Model):
    assignment = models.ForeignKey(WorkAssignment, on_delete=models.PROTECT, related_name="work_logs")
    sub_batch = models.ForeignKey(SubBatch, on_delete=models.PROTECT, related_name="work_logs")
    worker = models.ForeignKey("masters.Worker", on_delete=models.PROTECT, related_name="work_logs")
    work_date = models.DateField(default=timezone.localdate)
    size_category = models.CharField(max_length=32, blank=True, default="")
    particulars = models.CharField(max_length=255, blank=True, default="")
    quantity_received = models.PositiveIntegerField(default=0)
    quantity_worked = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    activity_type = models.CharField(max_length=16, choices=ActivityType.choices, default=ActivityType.NORMAL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("work_date", "id")
        verbose_name = "Work log entry"
        verbose_name_plural = "Work log entries"

    def __str__(self):
        return f"{self.worker} x {self.quantity_worked} on {self.work_date}"


class ExceptionEntry(models.Model):
    kind = models.CharField(max_length=16, choices=ExceptionKind.choices)
    sub_batch = models.ForeignKey(SubBatch, on_delete=models.PROTECT, related_name="exception_entries")
    work_log = models.ForeignKey(WorkLogEntry, on_delete=models.PROTECT, related_name="exceptions")
    source_assignment = models.ForeignKey(WorkAssignment, on_delete=models.PROTECT, related_name="exceptions_raised")
    created_assignment = models.ForeignKey(WorkAssignment, on_delete=models.PROTECT, related_name="exceptions_received")
    source_department = models.ForeignKey("masters.Department", on_delete=models.PROTECT, related_name="+")
    target_department = models.ForeignKey("masters.Department", on_delete=models.PROTECT, related_name="+")
    quantity = models.PositiveIntegerField()
    reason = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("created_at", "id")
        verbose_name = "Rejection / alteration"
        verbose_name_plural = "Rejections / alterations"

    def __str__(self):
        return f"{self.get_kind_display()} {self.quantity} -> {self.target_department_id}"


class StageHistoryEntry(models.Model):
    assignment = models.ForeignKey(WorkAssignment, on_delete=models.PROTECT, related_name="stage_history")
    sub_batch = models.ForeignKey(SubBatch, on_delete=models.PROTECT, related_name="stage_history")
    from_stage = models.CharField(max_length=16, choices=Stage.choices, null=True, blank=True)
    to_stage = models.CharField(max_length=16, choices=Stage.choices)
    from_department = models.ForeignKey(
        "masters.Department", on_delete=models.PROTECT, null=True, blank=True, related_name="+",
    )
    to_department = models.ForeignKey(
        "masters.Department", on_delete=models.PROTECT, null=True, blank=True, related_name="+",
    )
    reason = models.CharField(max_length=255, blank=True, default="")
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("recorded_at", "id")
        verbose_name = "Stage history entry"
        verbose_name_plural = "Stage history"

    def __str__(self):
        return f"{self.assignment_id}: {self.from_stage or '-'} -> {self.to_stage}"
