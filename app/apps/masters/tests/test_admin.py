# apps/masters/tests/test_admin.py
from django.contrib import admin
from django.test import TestCase
from django.urls import reverse
from django.contrib.auth import get_user_model

from apps.masters.models import Department, Worker


class MastersAdminTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.superuser = User.objects.create_superuser(username="testsu", email="ts@example.com", password="pass")
        self.client.force_login(self.superuser)
        self.dept = Department.objects.create(code="FIN", name="Finishing")
        Worker.objects.create(code="W1", name="Asha", department=self.dept)

    def test_models_registered_with_import_export(self):
        for model in (Department, Worker):
            ma = admin.site._registry.get(model)
            self.assertIsNotNone(ma, f"{model.__name__} must be registered in admin")
            self.assertTrue(hasattr(ma, "resource_class"))
            self.assertEqual(ma.list_per_page, 20)

    def test_changelists_render(self):
        for name in ("admin:masters_department_changelist", "admin:masters_worker_changelist"):
            response = self.client.get(reverse(name))
            self.assertEqual(response.status_code, 200)
            self.assertContains(response, "Finishing")
