"""
Audit trail tests.

Verifies:
- workflow operations append audit rows inside their own transaction
- a rolled-back operation leaves no audit row behind
"""

import pytest

from shipdesk.errors import StockCheckError
from shipdesk.services import delivery_service, order_service, stock_service
from shipdesk.services.audit_service import list_audit_logs
from shipdesk.models import InternalDelivery


def test_stock_movement_is_audited(db_session, admin_user, red_m):
    stock_service.record_movement(red_m.id, "inward", 4, actor_user_id=admin_user.id)

    (entry,) = list_audit_logs(module="inventory", entity_type="product_variant", entity_id=red_m.id)
    assert entry.action == "stock_inward"
    assert entry.user_id == admin_user.id
    assert entry.old_data == {"stockQuantity": 5}
    assert entry.new_data == {"stockQuantity": 9}


def test_status_change_is_audited(db_session, admin_user, make_order):
    order = make_order("dispatched")
    order_service.set_status(order.id, "delivered", "POD", actor_user_id=admin_user.id)

    entries = list_audit_logs(module="orders", entity_type="order", entity_id=order.id)
    assert [e.action for e in entries] == ["status_change"]
    assert entries[0].old_data == {"status": "dispatched"}


def test_failed_replacement_leaves_no_audit_rows(db_session, admin_user, make_order, delhivery, red_m):
    order = make_order("delivered", items=[("TS-RED-M", 50)])

    with pytest.raises(StockCheckError):
        order_service.dispatch_replacement(
            order.id, courier_partner_id=delhivery.id, courier_type="third_party",
            actor_user_id=admin_user.id,
        )

    assert list_audit_logs(module="orders") == []
    assert list_audit_logs(module="inventory") == []


def test_bulk_update_writes_summary_row(db_session, admin_user, make_order):
    order = make_order("dispatched")
    order_service.bulk_update_statuses(
        [{"orderNumber": order.order_number, "newStatus": "delivered"}, {"orderNumber": "missing", "newStatus": "rto"}],
        actor_user_id=admin_user.id,
    )

    (summary,) = [e for e in list_audit_logs(module="orders") if e.action == "bulk_update"]
    assert summary.new_data == {"successful": 1, "failed": 1, "updatedOrders": [order.order_number]}


def test_payment_collection_is_audited(db_session, rider, make_order):
    order = make_order("dispatched")
    delivery = InternalDelivery(order_id=order.id, assigned_to=rider.id, status="delivered")
    db_session.add(delivery)
    db_session.commit()

    delivery_service.collect_payment(delivery.id, "750.00", "qr", actor_user_id=rider.id)

    (entry,) = list_audit_logs(module="deliveries")
    assert entry.action == "collect_payment"
    assert entry.new_data["paymentMode"] == "qr"
    assert entry.old_data == {"paymentStatus": "pending"}
