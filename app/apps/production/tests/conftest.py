import pytest

from apps.masters.models import Department, Worker
from apps.production.models import LineageKind, SubBatch, WorkAssignment


@pytest.fixture
def departments(db):
    return [Department.objects.create(code=f"D{i}", name=f"Dept {i}") for i in (1, 2, 3)]


@pytest.fixture
def worker(departments):
    return Worker.objects.create(code="W1", name="Asha", department=departments[0])


@pytest.fixture
def sub_batch(db):
    return SubBatch.objects.create(name="SB-100", estimated_pieces=100)


def main_card(sub_batch, department):
    """Current Main card of ``sub_batch`` at ``department``."""
    return WorkAssignment.objects.get(
        sub_batch=sub_batch, department=department, lineage=LineageKind.MAIN, is_current=True,
    )
