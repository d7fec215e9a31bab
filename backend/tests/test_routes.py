"""
Route tests: status codes and JSON shapes of the workflow and ledger endpoints.
"""

import pytest

from shipdesk.models import InternalDelivery, StockMovement
from shipdesk.time_utils import utcnow


class TestOrderRoutes:

    def test_create_and_fetch_order(self, client, admin_headers, red_m):
        resp = client.post(
            "/api/orders",
            json={
                "customerName": "Neha Kapoor",
                "shippingAddress": "4 Park Street",
                "paymentMethod": "prepaid",
                "totalAmount": 798,
                "items": [{"sku": "TS-RED-M", "quantity": 2, "price": 399}],
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        body = resp.json
        assert body["status"] == "pending"
        assert body["totalAmount"] == "798.00"
        assert body["items"][0]["productVariantId"] == red_m.id

        fetched = client.get(f"/api/orders/{body['id']}", headers=admin_headers)
        assert fetched.status_code == 200
        assert fetched.json["orderNumber"] == body["orderNumber"]

        history = client.get(f"/api/orders/{body['id']}/history", headers=admin_headers)
        assert [h["comment"] for h in history.json["items"]] == ["Order created"]

    def test_create_order_validation_error(self, client, admin_headers):
        resp = client.post("/api/orders", json={"customerName": "X"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid payload"
        assert "shippingAddress is required" in resp.json["details"]

    def test_unknown_order_is_404(self, client, admin_headers):
        resp = client.get("/api/orders/999999", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json == {"error": "Order not found"}

    def test_set_status(self, client, warehouse_headers, make_order):
        order = make_order("dispatched")
        resp = client.post(
            f"/api/orders/{order.id}/status",
            json={"status": "delivered", "comment": "POD uploaded"},
            headers=warehouse_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "delivered"

    def test_set_status_invalid_transition(self, client, warehouse_headers, make_order):
        order = make_order("cancelled")
        resp = client.post(
            f"/api/orders/{order.id}/status",
            json={"status": "dispatched"},
            headers=warehouse_headers,
        )
        assert resp.status_code == 400
        assert "Cannot change order status" in resp.json["error"]

    def test_set_status_requires_status(self, client, warehouse_headers, make_order):
        order = make_order("pending")
        resp = client.post(f"/api/orders/{order.id}/status", json={}, headers=warehouse_headers)
        assert resp.status_code == 400

    def test_dispatch_in_house(self, client, db_session, warehouse_headers, rider, make_order, own_riders):
        order = make_order("pending")
        resp = client.post(
            f"/api/orders/{order.id}/dispatch",
            json={"courierPartnerId": own_riders.id, "courierType": "in_house", "assignedTo": str(rider.id)},
            headers=warehouse_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "dispatched"
        assert resp.json["courierType"] == "in_house"
        assert db_session.query(InternalDelivery).filter_by(order_id=order.id).count() == 1

    def test_replacement_stock_failure_lists_details(self, client, warehouse_headers, make_order, delhivery, red_m):
        order = make_order("delivered", items=[("TS-RED-M", 9), ("TS-NOPE-S", 1)])
        resp = client.post(
            f"/api/orders/{order.id}/replacement",
            json={"courierPartnerId": delhivery.id, "courierType": "third_party", "awbNumber": "AWB9"},
            headers=warehouse_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"] == [
            "Product variant not found for SKU TS-NOPE-S",
            "Insufficient stock for SKU TS-RED-M: requested 9, available 5",
        ]
        assert red_m.stock_quantity == 5

    def test_replacement_success(self, client, warehouse_headers, make_order, delhivery, red_m):
        order = make_order("delivered", items=[("TS-RED-M", 2)])
        resp = client.post(
            f"/api/orders/{order.id}/replacement",
            json={"courierPartnerId": delhivery.id, "courierType": "third_party", "awbNumber": "AWB1"},
            headers=warehouse_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "dispatched"
        assert resp.json["awbNumber"] == "AWB1"
        assert red_m.stock_quantity == 3

    def test_bulk_status(self, client, warehouse_headers, make_order):
        order = make_order("dispatched")
        resp = client.post(
            "/api/orders/bulk-status",
            json={"updates": [
                {"orderNumber": order.order_number, "newStatus": "delivered"},
                {"orderNumber": "ORD-1999-00001", "newStatus": "delivered"},
            ]},
            headers=warehouse_headers,
        )
        assert resp.status_code == 200
        assert resp.json["successful"] == 1
        assert resp.json["failed"] == 1
        assert resp.json["updatedOrders"] == [
            {"orderNumber": order.order_number, "orderId": order.id, "status": "delivered"}
        ]

    def test_bulk_status_requires_updates(self, client, warehouse_headers):
        resp = client.post("/api/orders/bulk-status", json={"updates": []}, headers=warehouse_headers)
        assert resp.status_code == 400
        assert resp.json == {"error": "Updates array required"}

    def test_list_orders_bad_date(self, client, admin_headers):
        resp = client.get("/api/orders?fromDate=yesterday", headers=admin_headers)
        assert resp.status_code == 400


class TestStockRoutes:

    def test_record_movement(self, client, warehouse_headers, red_m):
        resp = client.post(
            "/api/stock-movements",
            json={"productVariantId": red_m.id, "type": "outward", "quantity": 2, "reason": "Damaged"},
            headers=warehouse_headers,
        )
        assert resp.status_code == 201
        assert resp.json["previousQuantity"] == 5
        assert resp.json["newQuantity"] == 3
        assert resp.json["reason"] == "Damaged"

    def test_record_movement_bad_type(self, client, warehouse_headers, red_m):
        resp = client.post(
            "/api/stock-movements",
            json={"productVariantId": red_m.id, "type": "teleport", "quantity": 2},
            headers=warehouse_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"]

    def test_record_movement_unknown_variant(self, client, warehouse_headers, db_session):
        resp = client.post(
            "/api/stock-movements",
            json={"productVariantId": 999999, "type": "inward", "quantity": 2},
            headers=warehouse_headers,
        )
        assert resp.status_code == 404
        assert resp.json == {"error": "Product variant not found"}

    def test_batch_receive(self, client, db_session, warehouse_headers, supplier, tshirt, red_m, blue_l):
        resp = client.post(
            "/api/stock-movements/batch-receive",
            json={
                "supplierId": supplier.id,
                "invoiceNumber": "INV-55",
                "invoiceDate": "2025-03-01",
                "products": [{
                    "productId": tshirt.id,
                    "variants": {
                        str(red_m.id): {"quantity": 10, "costPrice": "150.00"},
                        str(blue_l.id): {"quantity": 0, "costPrice": "150.00"},
                        "999999": {"quantity": 4, "costPrice": "150.00"},
                    },
                }],
            },
            headers=warehouse_headers,
        )
        assert resp.status_code == 201
        assert resp.json["success"] is True
        assert resp.json["summary"] == {"totalMovements": 1, "totalUnits": 10, "totalValue": "1500.00"}
        movement = resp.json["movements"][0]
        assert movement["invoiceDate"] == "2025-03-01T00:00:00Z"
        assert movement["reason"] == "Stock received via invoice INV-55"
        assert db_session.query(StockMovement).count() == 1

    def test_batch_receive_requires_supplier_and_products(self, client, warehouse_headers):
        resp = client.post("/api/stock-movements/batch-receive", json={"products": []}, headers=warehouse_headers)
        assert resp.status_code == 400
        assert resp.json == {"error": "Supplier and products are required"}

    def test_low_stock(self, client, warehouse_headers, red_m, blue_l):
        resp = client.get("/api/inventory/low-stock", headers=warehouse_headers)
        assert resp.status_code == 200
        assert [v["sku"] for v in resp.json["items"]] == ["TS-RED-M"]

    def test_list_movements(self, client, warehouse_headers, red_m):
        client.post(
            "/api/stock-movements",
            json={"productVariantId": red_m.id, "type": "inward", "quantity": 1},
            headers=warehouse_headers,
        )
        resp = client.get(f"/api/stock-movements?variantId={red_m.id}&type=inward", headers=warehouse_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_date_only_to_date_covers_whole_day(self, client, warehouse_headers, red_m):
        client.post(
            "/api/stock-movements",
            json={"productVariantId": red_m.id, "type": "inward", "quantity": 1},
            headers=warehouse_headers,
        )
        today = utcnow().date().isoformat()

        resp = client.get(f"/api/stock-movements?fromDate={today}&toDate={today}", headers=warehouse_headers)
        assert resp.json["count"] == 1

        resp = client.get(f"/api/stock-movements?toDate={today}T00:00:00Z", headers=warehouse_headers)
        assert resp.json["count"] == 0


class TestProductRoutes:

    def test_create_product_with_variants(self, client, admin_headers):
        resp = client.post(
            "/api/products",
            json={
                "name": "Hoodie",
                "category": "Winter",
                "variants": [
                    {"sku": "HD-BLK-M", "color": "Black", "size": "M", "sellingPrice": "999"},
                    {"sku": "HD-BLK-L", "color": "Black", "size": "L"},
                ],
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert [v["sku"] for v in resp.json["variants"]] == ["HD-BLK-M", "HD-BLK-L"]
        assert resp.json["variants"][0]["sellingPrice"] == "999.00"
        assert resp.json["variants"][1]["lowStockThreshold"] == 10

        fetched = client.get(f"/api/products/{resp.json['id']}", headers=admin_headers)
        assert fetched.status_code == 200

    def test_duplicate_sku_rejected(self, client, admin_headers, red_m):
        resp = client.post(
            "/api/products",
            json={"name": "Copy", "variants": [{"sku": "TS-RED-M"}]},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"] == ["variants[0]: SKU TS-RED-M already exists"]


class TestDeliveryRoutes:

    def test_collect_payment(self, client, db_session, rider, rider_headers, make_order):
        order = make_order("dispatched", total_amount="750.00")
        delivery = InternalDelivery(order_id=order.id, assigned_to=rider.id, status="delivered")
        db_session.add(delivery)
        db_session.commit()

        resp = client.post(
            f"/api/deliveries/{delivery.id}/collect-payment",
            json={"amountCollected": 500, "paymentMode": "cash"},
            headers=rider_headers,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "payment_collected"
        assert resp.json["amountCollected"] == "500.00"
        assert resp.json["order"]["paymentStatus"] == "paid"

    def test_collect_payment_unknown_delivery(self, client, rider_headers):
        resp = client.post(
            "/api/deliveries/999999/collect-payment",
            json={"amountCollected": 500, "paymentMode": "cash"},
            headers=rider_headers,
        )
        assert resp.status_code == 404
        assert resp.json == {"error": "Delivery not found"}

    def test_delivery_status_and_listing(self, client, db_session, rider, rider_headers, make_order):
        order = make_order("dispatched")
        delivery = InternalDelivery(order_id=order.id, assigned_to=rider.id, status="assigned")
        db_session.add(delivery)
        db_session.commit()

        resp = client.post(
            f"/api/deliveries/{delivery.id}/status",
            json={"status": "delivered", "comment": "Handed over"},
            headers=rider_headers,
        )
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "delivered"
        assert resp.json["events"][-1]["event"] == "Delivered"

        listing = client.get(f"/api/deliveries?assignedTo={rider.id}", headers=rider_headers)
        assert listing.json["count"] == 1


class TestJsonBody:

    @pytest.mark.parametrize(
        "path",
        [
            "/api/orders",
            "/api/orders/{order_id}/status",
            "/api/orders/{order_id}/dispatch",
            "/api/orders/{order_id}/replacement",
            "/api/orders/bulk-status",
            "/api/stock-movements",
            "/api/stock-movements/batch-receive",
            "/api/products",
        ],
    )
    def test_array_body_is_rejected(self, client, admin_headers, make_order, path):
        order = make_order("pending")
        resp = client.post(path.format(order_id=order.id), json=[{"status": "cancelled"}], headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"
        assert order.status == "pending"

    def test_array_body_on_login(self, client):
        resp = client.post("/api/auth/login", json=["admin@shipdesk.local", "Password123"])
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid JSON payload"
