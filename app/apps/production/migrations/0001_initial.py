import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("masters", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SubBatch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=128)),
                ("estimated_pieces", models.PositiveIntegerField()),
                ("start_date", models.DateField(blank=True, null=True)),
                ("due_date", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("IN_PRODUCTION", "In Production"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="DRAFT",
                        max_length=16,
                    ),
                ),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Sub-batch",
                "verbose_name_plural": "Sub-batches",
                "ordering": ("-created_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="Workflow",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("current_step_index", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "sub_batch",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="workflow",
                        to="production.subbatch",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="WorkflowStep",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("step_index", models.PositiveIntegerField()),
                (
                    "department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="workflow_steps",
                        to="masters.department",
                    ),
                ),
                (
                    "workflow",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="steps",
                        to="production.workflow",
                    ),
                ),
            ],
            options={
                "ordering": ("workflow", "step_index"),
            },
        ),
        migrations.AddConstraint(
            model_name="workflowstep",
            constraint=models.UniqueConstraint(
                fields=("workflow", "step_index"), name="production_step_workflow_index_uniq"
            ),
        ),
        migrations.AddConstraint(
            model_name="workflowstep",
            constraint=models.UniqueConstraint(
                fields=("workflow", "department"), name="production_step_workflow_dept_uniq"
            ),
        ),
        migrations.CreateModel(
            name="WorkAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "step_index",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Workflow position of this card; empty when sent outside the planned flow",
                        null=True,
                    ),
                ),
                (
                    "stage",
                    models.CharField(
                        choices=[
                            ("NEW_ARRIVAL", "New Arrival"),
                            ("IN_PROGRESS", "In Progress"),
                            ("COMPLETED", "Completed"),
                        ],
                        default="NEW_ARRIVAL",
                        max_length=16,
                    ),
                ),
                (
                    "lineage",
                    models.CharField(
                        choices=[
                            ("Main", "Main"),
                            ("Assigned", "Assigned"),
                            ("Rejected", "Rejected"),
                            ("Altered", "Altered"),
                        ],
                        default="Main",
                        max_length=16,
                    ),
                ),
                ("is_current", models.BooleanField(default=True)),
                ("quantity_received", models.PositiveIntegerField(default=0)),
                ("quantity_remaining", models.PositiveIntegerField(default=0)),
                ("reason", models.TextField(blank=True, default="")),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("retired_at", models.DateTimeField(blank=True, null=True)),
                (
                    "assigned_worker",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assignments",
                        to="masters.worker",
                    ),
                ),
                (
                    "department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="masters.department",
                    ),
                ),
                (
                    "sent_from_department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="masters.department",
                    ),
                ),
                (
                    "source_assignment",
                    models.ForeignKey(
                        blank=True,
                        help_text="Card this one was forwarded or branched from",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="descendants",
                        to="production.workassignment",
                    ),
                ),
                (
                    "sub_batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assignments",
                        to="production.subbatch",
                    ),
                ),
            ],
            options={
                "verbose_name": "Work assignment",
                "ordering": ("created_at", "id"),
            },
        ),
        migrations.AddConstraint(
            model_name="workassignment",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_current", True)),
                fields=("sub_batch", "department", "lineage"),
                name="production_assignment_single_current_head",
            ),
        ),
        migrations.AddIndex(
            model_name="workassignment",
            index=models.Index(fields=["department", "is_current", "stage"], name="production_wa_board_idx"),
        ),
        migrations.CreateModel(
            name="WorkLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("work_date", models.DateField(default=django.utils.timezone.localdate)),
                ("size_category", models.CharField(blank=True, default="", max_length=32)),
                ("particulars", models.CharField(blank=True, default="", max_length=255)),
                ("quantity_received", models.PositiveIntegerField(default=0)),
                ("quantity_worked", models.PositiveIntegerField()),
                ("unit_price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                (
                    "activity_type",
                    models.CharField(
                        choices=[("NORMAL", "Normal"), ("REJECTED", "Rejected"), ("ALTERED", "Altered")],
                        default="NORMAL",
                        max_length=16,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "assignment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_logs",
                        to="production.workassignment",
                    ),
                ),
                (
                    "sub_batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_logs",
                        to="production.subbatch",
                    ),
                ),
                (
                    "worker",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="work_logs",
                        to="masters.worker",
                    ),
                ),
            ],
            options={
                "verbose_name": "Work log entry",
                "verbose_name_plural": "Work log entries",
                "ordering": ("work_date", "id"),
            },
        ),
        migrations.CreateModel(
            name="ExceptionEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(choices=[("REJECTED", "Rejected"), ("ALTERED", "Altered")], max_length=16),
                ),
                ("quantity", models.PositiveIntegerField()),
                ("reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "created_assignment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="exceptions_received",
                        to="production.workassignment",
                    ),
                ),
                (
                    "source_assignment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="exceptions_raised",
                        to="production.workassignment",
                    ),
                ),
                (
                    "source_department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="+", to="masters.department"
                    ),
                ),
                (
                    "sub_batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="exception_entries",
                        to="production.subbatch",
                    ),
                ),
                (
                    "target_department",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="+", to="masters.department"
                    ),
                ),
                (
                    "work_log",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="exceptions",
                        to="production.worklogentry",
                    ),
                ),
            ],
            options={
                "verbose_name": "Rejection / alteration",
                "verbose_name_plural": "Rejections / alterations",
                "ordering": ("created_at", "id"),
            },
        ),
        migrations.CreateModel(
            name="StageHistoryEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "from_stage",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("NEW_ARRIVAL", "New Arrival"),
                            ("IN_PROGRESS", "In Progress"),
                            ("COMPLETED", "Completed"),
                        ],
                        max_length=16,
                        null=True,
                    ),
                ),
                (
                    "to_stage",
                    models.CharField(
                        choices=[
                            ("NEW_ARRIVAL", "New Arrival"),
                            ("IN_PROGRESS", "In Progress"),
                            ("COMPLETED", "Completed"),
                        ],
                        max_length=16,
                    ),
                ),
                ("reason", models.CharField(blank=True, default="", max_length=255)),
                ("recorded_at", models.DateTimeField(auto_now_add=True)),
                (
                    "assignment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stage_history",
                        to="production.workassignment",
                    ),
                ),
                (
                    "from_department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="masters.department",
                    ),
                ),
                (
                    "sub_batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stage_history",
                        to="production.subbatch",
                    ),
                ),
                (
                    "to_department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to="masters.department",
                    ),
                ),
            ],
            options={
                "verbose_name": "Stage history entry",
                "verbose_name_plural": "Stage history",
                "ordering": ("recorded_at", "id"),
            },
        ),
    ]
