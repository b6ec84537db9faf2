import pytest

from apps.production import services
from apps.production.exceptions import ConservationViolation
from apps.production.services.ledger import tally

from .conftest import main_card


def test_tally_derives_remaining():
    progress = tally(100, worked=60, rejected=10, altered=5)
    assert progress.remaining == 25
    assert not progress.is_settled
    assert tally(10, worked=10).is_settled


def test_tally_never_clamps_negative_remaining():
    with pytest.raises(ConservationViolation) as excinfo:
        tally(10, worked=8, rejected=3, assignment_id=7)
    payload = excinfo.value.as_dict()
    assert payload["kind"] == "ConservationViolation"
    assert payload["assignment_id"] == 7
    assert payload["received"] == 10


@pytest.mark.django_db
def test_conservation_holds_after_every_mutation(sub_batch, departments, worker):
    d1, d2, _ = departments
    services.dispatch(sub_batch.pk, [d1.pk, d2.pk])
    card = main_card(sub_batch, d1)

    def check():
        card.refresh_from_db()
        p = services.compute_progress(card)
        assert p.received == p.worked + p.rejected + p.altered + p.assigned + p.remaining
        assert p.remaining >= 0
        assert card.quantity_remaining == p.remaining
        return p

    assert check().remaining == 100
    log = services.log_work(card.pk, worker.pk, 60)
    assert check().remaining == 40
    services.reject(card.pk, log.pk, 10, d2.pk, reason="torn seam")
    assert check() == (100, 60, 10, 0, 0, 30)
    services.log_work(card.pk, worker.pk, 30)
    assert check().is_settled
