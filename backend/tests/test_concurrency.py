"""
Retry helper tests.

Verifies:
- a unit of work that hits a version conflict is rolled back and re-run
- retries stop after the configured number of attempts
- other errors roll back and propagate without a retry
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from shipdesk.models import StockMovement
from shipdesk.services import concurrency, stock_service


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)


def test_stale_data_is_retried_then_succeeds(db_session, admin_user, red_m, no_sleep):
    attempts = []

    def work():
        attempts.append(1)
        movement = stock_service.apply_movement(red_m, "inward", 4, actor_user_id=admin_user.id)
        if len(attempts) == 1:
            raise StaleDataError("version mismatch on product_variants")
        db_session.commit()
        return movement

    movement = concurrency.run_with_retry(work)

    assert len(attempts) == 2
    assert movement.previous_quantity == 5
    assert movement.new_quantity == 9
    assert red_m.stock_quantity == 9
    assert db_session.query(StockMovement).count() == 1


def test_gives_up_after_last_attempt(db_session, no_sleep):
    attempts = []

    def work():
        attempts.append(1)
        raise StaleDataError("still stale")

    with pytest.raises(StaleDataError):
        concurrency.run_with_retry(work, attempts=3)

    assert len(attempts) == 3


def test_other_errors_roll_back_without_retry(db_session, admin_user, red_m):
    attempts = []

    def work():
        attempts.append(1)
        stock_service.apply_movement(red_m, "outward", 2, actor_user_id=admin_user.id)
        raise ValueError("boom")

    with pytest.raises(ValueError):
        concurrency.run_with_retry(work)

    assert len(attempts) == 1
    assert red_m.stock_quantity == 5
    assert db_session.query(StockMovement).count() == 0
