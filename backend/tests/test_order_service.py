"""
Order workflow tests.

Verifies:
- the status transition table, including same-status re-application
- dispatch persists courier fields and opens an in-house delivery without touching stock
- replacement dispatch is all-or-nothing and reports every stock problem at once
- bulk courier updates isolate failures per row
- order creation allocates ORD-<year>-<seq> numbers and the initial history row
"""

import pytest
from sqlalchemy import text
from sqlalchemy.orm.attributes import set_committed_value

from shipdesk.errors import InvalidStateError, NotFoundError, StockCheckError
from shipdesk.models import InternalDelivery, Order, OrderStatusHistory, StockMovement
from shipdesk.services import concurrency, order_service
from shipdesk.services.order_lifecycle import TRANSITIONS, can_transition, is_terminal
from shipdesk.time_utils import utcnow
from shipdesk.validation import ValidationError


def _history(db_session, order_id):
    return (
        db_session.query(OrderStatusHistory)
        .filter_by(order_id=order_id)
        .order_by(OrderStatusHistory.id)
        .all()
    )


def _outward_movements(db_session, order_id):
    return db_session.query(StockMovement).filter_by(order_id=order_id, type="outward").all()


# =============================================================================
# TRANSITION TABLE
# =============================================================================


class TestTransitionTable:

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            ("pending", "dispatched"),
            ("pending", "cancelled"),
            ("dispatched", "delivered"),
            ("dispatched", "rto"),
            ("delivered", "dispatched"),
            ("delivered", "returned"),
            ("rto", "dispatched"),
            ("returned", "refunded"),
        ],
    )
    def test_allowed(self, from_status, to_status):
        assert can_transition(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            ("pending", "delivered"),
            ("pending", "rto"),
            ("dispatched", "pending"),
            ("delivered", "cancelled"),
            ("returned", "dispatched"),
            ("refunded", "pending"),
            ("cancelled", "dispatched"),
        ],
    )
    def test_rejected(self, from_status, to_status):
        assert not can_transition(from_status, to_status)

    @pytest.mark.parametrize("status", sorted(TRANSITIONS))
    def test_same_status_is_allowed(self, status):
        assert can_transition(status, status)

    def test_terminal_states(self):
        assert is_terminal("refunded")
        assert is_terminal("cancelled")
        assert not is_terminal("delivered")

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            can_transition("pending", "lost")


# =============================================================================
# SET STATUS
# =============================================================================


class TestSetStatus:

    def test_appends_history_row(self, db_session, admin_user, make_order):
        order = make_order("dispatched")

        order_service.set_status(order.id, "delivered", "Signed by customer", actor_user_id=admin_user.id)

        assert order.status == "delivered"
        last = _history(db_session, order.id)[-1]
        assert (last.status, last.comment, last.changed_by) == ("delivered", "Signed by customer", admin_user.id)

    def test_same_status_twice_appends_two_rows(self, db_session, admin_user, make_order):
        order = make_order("dispatched")
        before = len(_history(db_session, order.id))

        order_service.set_status(order.id, "dispatched", "In transit", actor_user_id=admin_user.id)
        order_service.set_status(order.id, "dispatched", "Reached hub", actor_user_id=admin_user.id)

        assert len(_history(db_session, order.id)) == before + 2
        assert order.status == "dispatched"

    def test_invalid_transition_writes_nothing(self, db_session, admin_user, make_order):
        order = make_order("pending")
        before = len(_history(db_session, order.id))

        with pytest.raises(InvalidStateError):
            order_service.set_status(order.id, "delivered", None, actor_user_id=admin_user.id)

        assert order.status == "pending"
        assert len(_history(db_session, order.id)) == before

    def test_version_increments_on_each_change(self, db_session, admin_user, make_order):
        order = make_order("dispatched")
        before = order.version_id

        order_service.set_status(order.id, "delivered", None, actor_user_id=admin_user.id)

        assert order.version_id == before + 1

    def test_stale_order_is_reread_before_transition(self, db_session, admin_user, make_order, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
        order = make_order("dispatched")
        before = len(_history(db_session, order.id))

        # Another writer cancels the order after this session loaded it.
        db_session.execute(
            text("UPDATE orders SET status = 'cancelled', version_id = version_id + 1 WHERE id = :id"),
            {"id": order.id},
        )
        db_session.commit()
        assert order.status == "cancelled"
        set_committed_value(order, "status", "dispatched")
        set_committed_value(order, "version_id", order.version_id - 1)

        with pytest.raises(InvalidStateError):
            order_service.set_status(order.id, "delivered", None, actor_user_id=admin_user.id)

        assert order.status == "cancelled"
        assert len(_history(db_session, order.id)) == before

    def test_missing_order(self, db_session, admin_user):
        with pytest.raises(NotFoundError) as exc:
            order_service.set_status(999999, "cancelled", None, actor_user_id=admin_user.id)
        assert exc.value.message == "Order not found"

    def test_history_is_newest_first(self, db_session, admin_user, make_order):
        order = make_order("pending")
        order_service.set_status(order.id, "cancelled", "Customer changed mind", actor_user_id=admin_user.id)

        history = order_service.get_status_history(order.id)
        assert [h.status for h in history] == ["cancelled", "pending"]


# =============================================================================
# DISPATCH
# =============================================================================


class TestDispatch:

    def test_third_party_dispatch(self, db_session, admin_user, make_order, delhivery, red_m):
        order = make_order("pending")

        order_service.dispatch(
            order.id,
            courier_partner_id=delhivery.id,
            courier_type="third_party",
            awb_number="AWB123",
            actor_user_id=admin_user.id,
        )

        assert order.status == "dispatched"
        assert order.courier_partner_id == delhivery.id
        assert order.awb_number == "AWB123"
        assert order.dispatch_date is not None
        assert _history(db_session, order.id)[-1].comment == "Order dispatched"
        assert db_session.query(InternalDelivery).filter_by(order_id=order.id).count() == 0
        # First dispatch never touches stock
        assert red_m.stock_quantity == 5
        assert db_session.query(StockMovement).count() == 0

    def test_in_house_dispatch_opens_delivery(self, db_session, admin_user, rider, make_order, own_riders):
        order = make_order("pending")

        order_service.dispatch(
            order.id,
            courier_partner_id=own_riders.id,
            courier_type="in_house",
            assigned_to=rider.id,
            actor_user_id=admin_user.id,
        )

        delivery = db_session.query(InternalDelivery).filter_by(order_id=order.id).one()
        assert delivery.status == "assigned"
        assert delivery.assigned_to == rider.id
        assert [e.event for e in delivery.events] == ["Assigned"]
        assert order.assigned_to == rider.id

    def test_redispatch_after_rto(self, db_session, admin_user, make_order, delhivery):
        order = make_order("rto")

        order_service.dispatch(
            order.id,
            courier_partner_id=delhivery.id,
            courier_type="third_party",
            awb_number="AWB-RETRY",
            actor_user_id=admin_user.id,
        )
        assert order.status == "dispatched"

    @pytest.mark.parametrize("status", ["dispatched", "delivered", "cancelled"])
    def test_cannot_dispatch_from(self, db_session, admin_user, make_order, delhivery, status):
        order = make_order(status)

        with pytest.raises(InvalidStateError):
            order_service.dispatch(
                order.id,
                courier_partner_id=delhivery.id,
                courier_type="third_party",
                actor_user_id=admin_user.id,
            )
        assert order.status == status

    def test_invalid_courier_type(self, db_session, admin_user, make_order):
        order = make_order("pending")
        with pytest.raises(ValidationError):
            order_service.dispatch(
                order.id, courier_partner_id=None, courier_type="drone", actor_user_id=admin_user.id
            )

    def test_unknown_courier_partner(self, db_session, admin_user, make_order):
        order = make_order("pending")
        with pytest.raises(NotFoundError):
            order_service.dispatch(
                order.id, courier_partner_id=999999, courier_type="third_party", actor_user_id=admin_user.id
            )


# =============================================================================
# REPLACEMENT DISPATCH
# =============================================================================


class TestReplacement:

    def test_successful_replacement(self, db_session, admin_user, make_order, delhivery, red_m):
        order = make_order("delivered", items=[("TS-RED-M", 2)], order_number="ORD-2025-00001")
        history_before = len(_history(db_session, order.id))

        order_service.dispatch_replacement(
            order.id,
            courier_partner_id=delhivery.id,
            courier_type="third_party",
            awb_number="AWB1",
            actor_user_id=admin_user.id,
        )

        assert red_m.stock_quantity == 3
        movements = _outward_movements(db_session, order.id)
        assert len(movements) == 1
        assert movements[0].quantity == 2
        assert "Replacement for order ORD-2025-00001" in movements[0].reason
        assert order.status == "dispatched"
        assert order.awb_number == "AWB1"

        history = _history(db_session, order.id)
        assert len(history) == history_before + 1
        assert history[-1].comment == "Replacement dispatched via Delhivery"

    def test_insufficient_stock_changes_nothing(self, db_session, admin_user, make_order, delhivery, red_m):
        order = make_order("delivered", items=[("TS-RED-M", 6)])

        with pytest.raises(StockCheckError) as exc:
            order_service.dispatch_replacement(
                order.id,
                courier_partner_id=delhivery.id,
                courier_type="third_party",
                awb_number="AWB2",
                actor_user_id=admin_user.id,
            )

        assert exc.value.insufficient == [{"sku": "TS-RED-M", "requested": 6, "available": 5}]
        assert exc.value.details == ["Insufficient stock for SKU TS-RED-M: requested 6, available 5"]
        assert red_m.stock_quantity == 5
        assert order.status == "delivered"
        assert order.awb_number is None
        assert _outward_movements(db_session, order.id) == []

    def test_failure_midway_through_deductions_rolls_back(
        self, db_session, admin_user, make_order, delhivery, red_m, blue_l, monkeypatch
    ):
        order = make_order("delivered", items=[("TS-RED-M", 2), ("TS-BLU-L", 3)])
        history_before = len(_history(db_session, order.id))
        real_apply = order_service.apply_movement
        calls = []

        def fail_on_second(*args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return real_apply(*args, **kwargs)

        monkeypatch.setattr(order_service, "apply_movement", fail_on_second)

        with pytest.raises(RuntimeError):
            order_service.dispatch_replacement(
                order.id,
                courier_partner_id=delhivery.id,
                courier_type="third_party",
                awb_number="AWB7",
                actor_user_id=admin_user.id,
            )

        assert len(calls) == 2
        assert red_m.stock_quantity == 5
        assert blue_l.stock_quantity == 20
        assert order.status == "delivered"
        assert order.awb_number is None
        assert db_session.query(StockMovement).count() == 0
        assert len(_history(db_session, order.id)) == history_before

    def test_missing_sku_blocks_valid_items(self, db_session, admin_user, make_order, delhivery, blue_l):
        order = make_order("delivered", items=[("TS-GHOST-XL", 1), ("TS-BLU-L", 2)])

        with pytest.raises(StockCheckError) as exc:
            order_service.dispatch_replacement(
                order.id,
                courier_partner_id=delhivery.id,
                courier_type="third_party",
                actor_user_id=admin_user.id,
            )

        assert exc.value.missing_skus == ["TS-GHOST-XL"]
        assert "Product variant not found for SKU TS-GHOST-XL" in exc.value.details
        assert blue_l.stock_quantity == 20
        assert _outward_movements(db_session, order.id) == []

    def test_all_problems_reported_together(self, db_session, admin_user, make_order, delhivery, red_m, blue_l):
        order = make_order("delivered", items=[("TS-GHOST-XL", 1), ("TS-RED-M", 9), ("TS-BLU-L", 25)])

        with pytest.raises(StockCheckError) as exc:
            order_service.dispatch_replacement(
                order.id,
                courier_partner_id=delhivery.id,
                courier_type="third_party",
                actor_user_id=admin_user.id,
            )

        assert len(exc.value.details) == 3
        assert {line["sku"] for line in exc.value.insufficient} == {"TS-RED-M", "TS-BLU-L"}

    def test_quantities_for_repeated_sku_are_combined(self, db_session, admin_user, make_order, delhivery, red_m):
        order = make_order("delivered", items=[("TS-RED-M", 3), ("TS-RED-M", 3)])

        with pytest.raises(StockCheckError) as exc:
            order_service.dispatch_replacement(
                order.id, courier_partner_id=delhivery.id, courier_type="third_party",
                actor_user_id=admin_user.id,
            )
        assert exc.value.insufficient == [{"sku": "TS-RED-M", "requested": 6, "available": 5}]

    def test_in_house_replacement_opens_second_delivery(self, db_session, admin_user, rider, make_order, red_m):
        order = make_order("delivered", items=[("TS-RED-M", 1)])
        db_session.add(InternalDelivery(order_id=order.id, assigned_to=rider.id, status="delivered"))
        db_session.commit()

        order_service.dispatch_replacement(
            order.id,
            courier_partner_id=None,
            courier_type="in_house",
            assigned_to=rider.id,
            actor_user_id=admin_user.id,
        )

        assert db_session.query(InternalDelivery).filter_by(order_id=order.id).count() == 2
        assert _history(db_session, order.id)[-1].comment == "Replacement dispatched via in-house courier"
        assert red_m.stock_quantity == 4

    @pytest.mark.parametrize("status", ["pending", "dispatched", "rto", "returned"])
    def test_requires_delivered_order(self, db_session, admin_user, make_order, delhivery, red_m, status):
        order = make_order(status)

        with pytest.raises(InvalidStateError):
            order_service.dispatch_replacement(
                order.id, courier_partner_id=delhivery.id, courier_type="third_party",
                actor_user_id=admin_user.id,
            )
        assert red_m.stock_quantity == 5

    def test_requires_items(self, db_session, admin_user, make_order, delhivery):
        order = make_order("delivered", items=[])

        with pytest.raises(InvalidStateError):
            order_service.dispatch_replacement(
                order.id, courier_partner_id=delhivery.id, courier_type="third_party",
                actor_user_id=admin_user.id,
            )


# =============================================================================
# BULK STATUS UPDATES
# =============================================================================


class TestBulkUpdate:

    def test_unknown_order_number_fails_only_that_row(self, db_session, admin_user, make_order):
        orders = [make_order("dispatched") for _ in range(3)]
        updates = [{"orderNumber": o.order_number, "newStatus": "delivered"} for o in orders]
        updates.insert(1, {"orderNumber": "ORD-1999-99999", "newStatus": "delivered"})

        result = order_service.bulk_update_statuses(updates, actor_user_id=admin_user.id)

        assert result["successful"] == 3
        assert result["failed"] == 1
        assert result["errors"] == [{"orderNumber": "ORD-1999-99999", "error": "Order not found"}]
        assert [u["orderNumber"] for u in result["updatedOrders"]] == [o.order_number for o in orders]
        assert all(o.status == "delivered" for o in orders)

    def test_default_comment_and_awb(self, db_session, admin_user, make_order):
        order = make_order("dispatched")

        order_service.bulk_update_statuses(
            [{"orderNumber": order.order_number, "newStatus": "rto", "awbNumber": "AWB-NEW"}],
            actor_user_id=admin_user.id,
        )

        assert order.awb_number == "AWB-NEW"
        assert _history(db_session, order.id)[-1].comment == "Status updated via bulk import"

    def test_invalid_rows_are_isolated(self, db_session, admin_user, make_order):
        good = make_order("dispatched")
        terminal = make_order("cancelled")
        updates = [
            {"orderNumber": terminal.order_number, "newStatus": "dispatched"},
            {"orderNumber": good.order_number, "newStatus": "teleported"},
            {"newStatus": "delivered"},
            "not-a-row",
            {"orderNumber": good.order_number, "newStatus": "delivered", "comment": "POD received"},
        ]

        result = order_service.bulk_update_statuses(updates, actor_user_id=admin_user.id)

        assert result["successful"] + result["failed"] == len(updates)
        assert result["successful"] == 1
        assert terminal.status == "cancelled"
        assert good.status == "delivered"
        assert _history(db_session, good.id)[-1].comment == "POD received"


# =============================================================================
# CREATION AND READS
# =============================================================================


def _order_payload(**overrides):
    payload = {
        "customerName": "Neha Kapoor",
        "customerPhone": "9811111111",
        "shippingAddress": "4 Park Street",
        "shippingCity": "Kolkata",
        "paymentMethod": "cod",
        "totalAmount": "798.00",
        "items": [{"sku": "TS-RED-M", "quantity": 2, "price": "399.00"}],
    }
    payload.update(overrides)
    return payload


class TestCreateOrder:

    def test_creates_pending_order_with_number_and_history(self, db_session, admin_user, red_m):
        order = order_service.create_order(_order_payload(), actor_user_id=admin_user.id)

        year = utcnow().year
        assert order.order_number == f"ORD-{year}-00001"
        assert order.status == "pending"
        assert order.payment_status == "pending"
        history = _history(db_session, order.id)
        assert [(h.status, h.comment) for h in history] == [("pending", "Order created")]

        item = order.items[0]
        assert item.product_variant_id == red_m.id
        assert item.product_name == "Classic Tee"

    def test_numbers_are_sequential(self, db_session, admin_user, red_m):
        first = order_service.create_order(_order_payload(), actor_user_id=admin_user.id)
        second = order_service.create_order(_order_payload(), actor_user_id=admin_user.id)

        assert first.order_number.endswith("-00001")
        assert second.order_number.endswith("-00002")

    def test_collects_all_validation_errors(self, db_session, admin_user):
        payload = _order_payload(paymentMethod="barter", items=[])
        del payload["customerName"]

        with pytest.raises(ValidationError) as exc:
            order_service.create_order(payload, actor_user_id=admin_user.id)

        details = exc.value.details
        assert "customerName is required" in details
        assert any(d.startswith("paymentMethod must be one of") for d in details)
        assert "items must contain at least one item" in details
        assert db_session.query(Order).count() == 0

    def test_unknown_sku_needs_product_name(self, db_session, admin_user):
        payload = _order_payload(items=[{"sku": "NEW-SKU", "quantity": 1, "price": "10.00"}])
        with pytest.raises(ValidationError):
            order_service.create_order(payload, actor_user_id=admin_user.id)

        payload["items"][0]["productName"] = "Gift Card"
        order = order_service.create_order(payload, actor_user_id=admin_user.id)
        assert order.items[0].product_variant_id is None

    def test_list_orders_filters(self, db_session, admin_user, make_order):
        pending = make_order("pending")
        dispatched = make_order("dispatched")

        assert [o.id for o in order_service.list_orders(status="dispatched")] == [dispatched.id]
        assert [o.id for o in order_service.list_orders(search=pending.order_number)] == [pending.id]
        assert {o.id for o in order_service.list_orders(search="asha")} == {pending.id, dispatched.id}
