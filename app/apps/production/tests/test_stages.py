import pytest
from django.db import transaction

from apps.production import services
from apps.production.exceptions import ConcurrentModification, InvalidRequest, NotFound
from apps.production.models import Stage, StageHistoryEntry, WorkAssignment
from apps.production.services.guards import retire

from .conftest import main_card


@pytest.fixture
def card(sub_batch, departments):
    services.dispatch(sub_batch.pk, [departments[0].pk, departments[1].pk])
    return main_card(sub_batch, departments[0])


@pytest.mark.django_db
def test_move_stage_records_history_and_bumps_version(card):
    moved = services.move_stage(card.pk, Stage.IN_PROGRESS, reason="picked up")

    assert moved.stage == Stage.IN_PROGRESS
    assert moved.version == card.version + 1
    last = StageHistoryEntry.objects.filter(assignment=card).latest("id")
    assert (last.from_stage, last.to_stage, last.reason) == ("NEW_ARRIVAL", "IN_PROGRESS", "picked up")
    assert last.to_department_id == card.department_id


@pytest.mark.django_db
def test_move_to_same_stage_is_a_noop(card):
    before = StageHistoryEntry.objects.count()
    same = services.move_stage(card.pk, "NEW_ARRIVAL")
    assert same.version == card.version
    assert StageHistoryEntry.objects.count() == before


@pytest.mark.django_db
def test_backward_moves_are_allowed_and_recorded(card):
    services.move_stage(card.pk, Stage.COMPLETED)
    services.move_stage(card.pk, Stage.IN_PROGRESS, reason="recount")

    card.refresh_from_db()
    assert card.stage == Stage.IN_PROGRESS
    trail = list(StageHistoryEntry.objects.filter(assignment=card).values_list("from_stage", "to_stage"))
    assert trail == [(None, "NEW_ARRIVAL"), ("NEW_ARRIVAL", "COMPLETED"), ("COMPLETED", "IN_PROGRESS")]


@pytest.mark.django_db
def test_move_stage_has_no_quantity_side_effects(card):
    services.move_stage(card.pk, Stage.COMPLETED)
    card.refresh_from_db()
    assert card.quantity_received == 100
    assert card.quantity_remaining == 100
    assert card.is_current


@pytest.mark.django_db
def test_move_stage_refuses_unknown_input(card):
    with pytest.raises(InvalidRequest):
        services.move_stage(card.pk, "SHIPPED")
    with pytest.raises(NotFound):
        services.move_stage(9999, Stage.IN_PROGRESS)


@pytest.mark.django_db
def test_stale_version_loses_the_race(card):
    stale = WorkAssignment.objects.get(pk=card.pk)
    with transaction.atomic():
        retire(card)
    with pytest.raises(ConcurrentModification):
        with transaction.atomic():
            retire(stale)
    assert WorkAssignment.objects.get(pk=card.pk).version == stale.version + 1
