# apps/masters/models.py
"""
Reference data read by the production flow: departments a sub-batch can be
routed through and the workers who log work against it.

Both tables are maintained through the admin (with CSV import/export); the
production services only look rows up by primary key.
"""
from django.db import models


class Department(models.Model):
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=128)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("code",)
        verbose_name = "Department"
        verbose_name_plural = "Departments"

    def __str__(self):
        return f"{self.code} - {self.name}"


class Worker(models.Model):
    department = models.ForeignKey(
        Department, on_delete=models.SET_NULL, related_name="workers", null=True, blank=True,
        help_text="Home department; workers may still log work anywhere",
    )
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=128)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ("code",)
        verbose_name = "Worker"

    def __str__(self):
        return f"{self.code} - {self.name}"
