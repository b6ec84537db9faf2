from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("production", "0001_initial"),
    ]

    operations = [
        migrations.RemoveConstraint(
            model_name="workassignment",
            name="production_assignment_single_current_head",
        ),
        migrations.AddConstraint(
            model_name="workassignment",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_current", True), models.Q(("lineage", "Assigned"), _negated=True)),
                fields=("sub_batch", "department", "lineage"),
                name="production_assignment_single_current_head",
            ),
        ),
        migrations.AddConstraint(
            model_name="workassignment",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_current", True), ("lineage", "Assigned")),
                fields=("sub_batch", "department", "assigned_worker"),
                name="production_assignment_single_current_share",
            ),
        ),
    ]
