import pytest

from apps.masters.models import Department, Worker
from apps.production import services
from apps.production.exceptions import AlreadyDispatched, IncompleteWork, InvalidQuantity, InvalidRequest, NotFound
from apps.production.models import LineageKind, Stage, StageHistoryEntry, SubBatch, WorkAssignment, Workflow

from .conftest import main_card


@pytest.mark.django_db
def test_dispatch_creates_workflow_and_first_card(sub_batch, departments):
    d1, d2, d3 = departments
    workflow = services.dispatch(sub_batch.pk, [d1.pk, d3.pk, d2.pk])

    assert workflow.current_step_index == 0
    assert [s.department_id for s in workflow.ordered_steps()] == [d1.pk, d3.pk, d2.pk]
    sub_batch.refresh_from_db()
    assert sub_batch.status == SubBatch.Status.IN_PRODUCTION

    card = main_card(sub_batch, d1)
    assert card.stage == Stage.NEW_ARRIVAL
    assert card.lineage == LineageKind.MAIN
    assert card.quantity_received == 100
    assert card.quantity_remaining == 100
    assert card.step_index == 0
    arrival = StageHistoryEntry.objects.get(assignment=card)
    assert arrival.from_stage is None
    assert arrival.to_stage == Stage.NEW_ARRIVAL


@pytest.mark.django_db
def test_dispatch_refuses_bad_input(sub_batch, departments):
    d1, d2, _ = departments
    with pytest.raises(InvalidRequest):
        services.dispatch(sub_batch.pk, [])
    with pytest.raises(InvalidRequest):
        services.dispatch(sub_batch.pk, [d1.pk, d2.pk, d1.pk])
    with pytest.raises(NotFound):
        services.dispatch(sub_batch.pk, [d1.pk, 9999])
    with pytest.raises(NotFound):
        services.dispatch(9999, [d1.pk])
    assert not Workflow.objects.exists()

    services.dispatch(sub_batch.pk, [d1.pk])
    with pytest.raises(AlreadyDispatched):
        services.dispatch(sub_batch.pk, [d2.pk])


@pytest.mark.django_db
def test_dispatch_refuses_inactive_department(sub_batch, departments):
    d1 = departments[0]
    closed = Department.objects.create(code="OLD", name="Closed line", active=False)
    with pytest.raises(InvalidRequest):
        services.dispatch(sub_batch.pk, [d1.pk, closed.pk])


@pytest.mark.django_db
def test_advance_moves_full_lot_and_stops_at_last_department(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    first = main_card(sub_batch, d1)
    services.log_work(first.pk, worker.pk, 100)

    second = services.advance(sub_batch.pk)

    assert second.department_id == d2.pk
    assert second.quantity_received == 100
    assert second.stage == Stage.NEW_ARRIVAL
    assert second.source_assignment_id == first.pk
    assert second.sent_from_department_id == d1.pk
    first.refresh_from_db()
    assert first.is_current is False
    assert first.retired_at is not None
    assert Workflow.objects.get(sub_batch=sub_batch).current_step_index == 1

    assert services.advance(sub_batch.pk) is None
    assert Workflow.objects.get(sub_batch=sub_batch).current_step_index == 1


@pytest.mark.django_db
def test_advance_refuses_unaccounted_pieces(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)
    services.log_work(card.pk, worker.pk, 60)

    with pytest.raises(IncompleteWork) as excinfo:
        services.advance(sub_batch.pk)
    assert excinfo.value.context["remaining"] == 40
    assert main_card(sub_batch, d1).pk == card.pk
    assert not WorkAssignment.objects.filter(department=d2).exists()


@pytest.mark.django_db
def test_advance_without_workflow_is_not_found(sub_batch):
    with pytest.raises(NotFound):
        services.advance(sub_batch.pk)


@pytest.mark.django_db
def test_only_worked_pieces_travel_forward(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)
    log = services.log_work(card.pk, worker.pk, 90)
    services.reject(card.pk, log.pk, 10, d1.pk, reason="shade mismatch")

    forwarded = services.advance(sub_batch.pk)

    assert forwarded.quantity_received == 90


@pytest.mark.django_db
def test_cursor_is_monotonic_and_bounded(sub_batch, departments, worker):
    services.dispatch(sub_batch.pk, [d.pk for d in departments])
    seen = [Workflow.objects.get(sub_batch=sub_batch).current_step_index]
    for department in departments:
        card = main_card(sub_batch, department)
        services.log_work(card.pk, worker.pk, card.quantity_remaining)
        services.advance(sub_batch.pk)
        seen.append(Workflow.objects.get(sub_batch=sub_batch).current_step_index)

    assert seen == [0, 1, 2, 2]
    assert seen == sorted(seen)


@pytest.mark.django_db
def test_branch_card_advances_under_its_own_lineage_and_closes(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)
    log = services.log_work(card.pk, worker.pk, 50)
    branch = services.reject(card.pk, log.pk, 10, d1.pk, reason="needle marks").created_assignment

    with pytest.raises(IncompleteWork):
        services.advance_branch(branch.pk)
    services.log_work(branch.pk, worker.pk, 10)
    moved = services.advance_branch(branch.pk)

    assert moved.department_id == d2.pk
    assert moved.lineage == LineageKind.REJECTED
    assert moved.step_index == 1
    assert moved.quantity_received == 10
    branch.refresh_from_db()
    assert branch.is_current is False
    assert services.advance_branch(moved.pk) is None

    services.log_work(moved.pk, worker.pk, 10)
    closed = services.close_branch(moved.pk)
    assert closed.is_current is False
    assert closed.stage == Stage.COMPLETED
    assert closed.stage_history.filter(to_stage=Stage.COMPLETED).exists()


@pytest.mark.django_db
def test_branch_operations_refuse_main_cards(sub_batch, departments):
    services.dispatch(sub_batch.pk, [departments[0].pk])
    card = main_card(sub_batch, departments[0])
    with pytest.raises(InvalidRequest):
        services.advance_branch(card.pk)
    with pytest.raises(InvalidRequest):
        services.close_branch(card.pk)




@pytest.mark.django_db
def test_assign_worker_records_worker_without_splitting(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)

    card = services.assign_worker(card.pk, worker.pk)
    assert card.lineage == LineageKind.MAIN
    assert card.assigned_worker_id == worker.pk
    assert card.quantity_remaining == 100

    card = services.assign_worker(card.pk, None)
    assert card.assigned_worker_id is None
    with pytest.raises(NotFound):
        services.assign_worker(card.pk, 9999)


@pytest.mark.django_db
def test_split_to_worker_carves_a_share(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)

    share = services.split_to_worker(card.pk, worker.pk, 30)

    assert share.lineage == LineageKind.ASSIGNED
    assert share.assigned_worker_id == worker.pk
    assert (share.department_id, share.step_index) == (d1.pk, 0)
    assert share.source_assignment_id == card.pk
    assert share.quantity_received == 30
    assert share.stage_history.get().reason == "Assigned to Asha"
    card.refresh_from_db()
    assert card.quantity_remaining == 70
    assert services.compute_progress(card).assigned == 30

    # same worker again tops up the current share
    again = services.split_to_worker(card.pk, worker.pk, 20)
    assert again.pk == share.pk
    assert again.quantity_received == 50
    card.refresh_from_db()
    assert card.quantity_remaining == 50


@pytest.mark.django_db
def test_split_shares_travel_with_the_main_card(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)
    other = Worker.objects.create(code="W2", name="Ravi", department=d1)

    first = services.split_to_worker(card.pk, worker.pk, 40)
    second = services.split_to_worker(card.pk, other.pk, 35)
    services.log_work(card.pk, worker.pk, 25)
    services.log_work(first.pk, worker.pk, 40)

    with pytest.raises(IncompleteWork) as excinfo:
        services.advance(sub_batch.pk)
    assert excinfo.value.context["assignment_id"] == second.pk

    services.log_work(second.pk, other.pk, 30)
    services.reject(second.pk, second.work_logs.get().pk, 5, d1.pk)
    nxt = services.advance(sub_batch.pk)

    assert nxt.lineage == LineageKind.MAIN
    assert nxt.quantity_received == 95
    assert nxt.source_assignment_id == card.pk
    assert not WorkAssignment.objects.filter(
        pk__in=[card.pk, first.pk, second.pk], is_current=True
    ).exists()


@pytest.mark.django_db
def test_split_to_worker_refusals(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)

    with pytest.raises(InvalidQuantity):
        services.split_to_worker(card.pk, worker.pk, 101)
    with pytest.raises(InvalidQuantity):
        services.split_to_worker(card.pk, worker.pk, 0)
    with pytest.raises(NotFound):
        services.split_to_worker(card.pk, 9999, 10)

    share = services.split_to_worker(card.pk, worker.pk, 10)
    with pytest.raises(InvalidRequest):
        services.split_to_worker(share.pk, worker.pk, 5)
    with pytest.raises(InvalidRequest):
        services.assign_worker(share.pk, None)

    services.move_stage(card.pk, Stage.COMPLETED)
    with pytest.raises(InvalidRequest):
        services.split_to_worker(card.pk, worker.pk, 5)
