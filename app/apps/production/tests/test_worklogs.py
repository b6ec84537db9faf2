import datetime
from decimal import Decimal

import pytest

from apps.production import services
from apps.production.exceptions import InvalidQuantity, InvalidRequest, NotFound
from apps.production.models import ActivityType, Stage, WorkLogEntry
from apps.production.services import worklogs

from .conftest import main_card


@pytest.fixture
def card(sub_batch, departments):
    services.dispatch(sub_batch.pk, [departments[0].pk, departments[1].pk])
    return main_card(sub_batch, departments[0])


@pytest.mark.django_db
def test_log_work_records_entry_and_updates_remaining(card, worker):
    entry = services.log_work(
        card.pk, worker.pk, 40, unit_price="2.50", work_date="2026-03-02", size_category="M",
        particulars="collar",
    )

    assert entry.quantity_worked == 40
    assert entry.quantity_received == 40
    assert entry.unit_price == Decimal("2.50")
    assert entry.work_date == datetime.date(2026, 3, 2)
    assert entry.activity_type == ActivityType.NORMAL
    assert entry.sub_batch_id == card.sub_batch_id
    card.refresh_from_db()
    assert card.quantity_remaining == 60


@pytest.mark.django_db
def test_logs_on_branch_cards_carry_their_activity_type(card, departments, worker):
    log = services.log_work(card.pk, worker.pk, 30)
    branch = services.reject(card.pk, log.pk, 5, departments[0].pk).created_assignment

    entry = services.log_work(branch.pk, worker.pk, 5)

    assert entry.activity_type == ActivityType.REJECTED


@pytest.mark.django_db
def test_log_work_refusals(card, worker):
    with pytest.raises(InvalidQuantity):
        services.log_work(card.pk, worker.pk, 101)
    with pytest.raises(InvalidQuantity):
        services.log_work(card.pk, worker.pk, -1)
    with pytest.raises(NotFound):
        services.log_work(card.pk, 9999, 1)
    with pytest.raises(NotFound):
        services.log_work(9999, worker.pk, 1)
    with pytest.raises(InvalidRequest):
        services.log_work(card.pk, worker.pk, 1, work_date="yesterday")

    services.move_stage(card.pk, Stage.COMPLETED)
    with pytest.raises(InvalidRequest):
        services.log_work(card.pk, worker.pk, 1)


@pytest.mark.django_db
def test_delete_work_log_restores_remaining(card, worker):
    entry = services.log_work(card.pk, worker.pk, 25)
    services.delete_work_log(entry.pk)

    card.refresh_from_db()
    assert card.quantity_remaining == 100
    assert not services.get_work_logs(assignment_id=card.pk).exists()
    with pytest.raises(NotFound):
        services.delete_work_log(entry.pk)


@pytest.mark.django_db
def test_delete_refuses_logs_with_branches(card, departments, worker):
    entry = services.log_work(card.pk, worker.pk, 25)
    services.reject(card.pk, entry.pk, 5, departments[1].pk)
    with pytest.raises(InvalidRequest):
        services.delete_work_log(entry.pk)


@pytest.mark.django_db
def test_get_work_logs_filters(card, sub_batch, worker):
    services.log_work(card.pk, worker.pk, 10)
    services.log_work(card.pk, worker.pk, 15)

    by_card = services.get_work_logs(assignment_id=card.pk)
    by_batch = services.get_work_logs(sub_batch_id=sub_batch.pk)

    assert [e.quantity_worked for e in by_card] == [10, 15]
    assert by_batch.count() == 2
    assert services.get_work_logs(sub_batch_id=9999).count() == 0


@pytest.mark.django_db
def test_first_log_starts_work_on_the_card(card, worker):
    services.log_work(card.pk, worker.pk, 10)

    card.refresh_from_db()
    assert card.stage == Stage.IN_PROGRESS
    started = card.stage_history.latest("id")
    assert (started.from_stage, started.to_stage, started.reason) == ("NEW_ARRIVAL", "IN_PROGRESS", "Work started")

    services.log_work(card.pk, worker.pk, 10)
    assert card.stage_history.filter(to_stage=Stage.IN_PROGRESS).count() == 1


@pytest.mark.django_db
def test_delete_reports_not_found_when_log_vanishes_before_lock(card, worker, monkeypatch):
    entry = services.log_work(card.pk, worker.pk, 25)
    real_lock = worklogs.lock_sub_batch

    def lock_after_concurrent_delete(sub_batch_id):
        locked = real_lock(sub_batch_id)
        WorkLogEntry.objects.filter(pk=entry.pk).delete()
        return locked

    monkeypatch.setattr(worklogs, "lock_sub_batch", lock_after_concurrent_delete)
    with pytest.raises(NotFound):
        services.delete_work_log(entry.pk)
