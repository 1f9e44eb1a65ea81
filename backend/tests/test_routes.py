# Overview: HTTP-level tests: caller headers, error bodies and the order-to-stock flow.

from conftest import caller_headers


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checked_at"].endswith("Z")


def test_missing_or_bad_caller_headers(client, db_session, depot):
    assert client.get('/api/orders').status_code == 401

    response = client.get('/api/orders', headers={'X-Caller-Id': str(depot.id), 'X-Caller-Role': 'emperor'})
    assert response.status_code == 401
    assert response.get_json()["error"] == "authentication_required"

    response = client.get('/api/orders', headers={'X-Caller-Id': 'abc', 'X-Caller-Role': 'depot'})
    assert response.status_code == 401


def test_capability_rejected_before_body_parsing(client, db_session, buyer):
    response = client.post('/api/products', json={}, headers=caller_headers(buyer))
    assert response.status_code == 403
    body = response.get_json()
    assert body["error"] == "authorization_error"
    assert body["details"] == {"required_capability": "MANAGE_CATALOG"}


def test_domain_errors_keep_their_status(client, db_session, depot, widget):
    response = client.post('/api/products', json={"barcode": "W-001", "name": "Again"}, headers=caller_headers(depot))
    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"

    response = client.post(
        f'/api/products/{widget.id}/stock',
        json={"direction": "out", "quantity": 99},
        headers=caller_headers(depot),
    )
    assert response.status_code == 409
    assert response.get_json()["error"] == "insufficient_stock"

    response = client.get('/api/orders/424242', headers=caller_headers(depot))
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_cors_headers_for_configured_origin(client, db_session):
    response = client.get('/health', headers={'Origin': 'http://localhost:5173'})
    assert response.headers.get('Access-Control-Allow-Origin') == 'http://localhost:5173'
    assert 'X-Caller-Id' in response.headers.get('Access-Control-Allow-Headers', '')

    response = client.get('/health', headers={'Origin': 'http://evil.test'})
    assert 'Access-Control-Allow-Origin' not in response.headers


def test_order_to_stock_flow(client, db_session, buyer, depot, carrier, widget, gadget, notifier):
    as_buyer = caller_headers(buyer)
    as_depot = caller_headers(depot)
    as_carrier = caller_headers(carrier)

    # Buyer browses and scans
    response = client.get(f'/api/products?depot_id={depot.id}', headers=as_buyer)
    assert response.get_json()["count"] == 2
    response = client.get(f'/api/products/resolve/w-001?depot_id={depot.id}', headers=as_buyer)
    assert response.get_json()["product"]["id"] == widget.id

    response = client.post('/api/orders', json={
        "depot_id": depot.id,
        "address": "9 Elm St",
        "lines": [
            {"product_id": widget.id, "quantity": 2},
            {"product_id": gadget.id, "quantity": 1},
        ],
    }, headers=as_buyer)
    assert response.status_code == 201
    order = response.get_json()["order"]
    assert order["total_cents"] == 250
    assert len(order["lines"]) == 2

    for state in ("preparing", "ready"):
        response = client.post(f'/api/orders/{order["id"]}/state', json={"state": state}, headers=as_depot)
        assert response.status_code == 200

    response = client.post('/api/shipments', json={"order_id": order["id"], "carrier_id": carrier.id}, headers=as_depot)
    assert response.status_code == 201
    shipment = response.get_json()["shipment"]

    response = client.get('/api/shipments/active', headers=as_carrier)
    assert [s["id"] for s in response.get_json()["items"]] == [shipment["id"]]

    response = client.post(f'/api/shipments/{shipment["id"]}/state', json={"state": "in_transit"}, headers=as_carrier)
    assert response.status_code == 200
    response = client.post(
        f'/api/shipments/{shipment["id"]}/location',
        json={"lat": 51.5, "lng": -0.12},
        headers=as_carrier,
    )
    assert response.get_json()["shipment"]["current_location"]["lat"] == 51.5

    response = client.post('/api/receipts', json={"order_id": order["id"]}, headers=as_depot)
    assert response.status_code == 201
    code = response.get_json()["receipt"]["code"]

    response = client.get('/api/receipts/pending', headers=as_buyer)
    assert [r["code"] for r in response.get_json()["items"]] == [code]

    response = client.post(f'/api/receipts/{code}/confirm', headers=as_buyer)
    assert response.status_code == 200
    assert response.get_json()["receipt"]["confirmed"] is True

    response = client.post(f'/api/receipts/{code}/confirm', headers=as_buyer)
    assert response.status_code == 409

    response = client.get(f'/api/orders/{order["id"]}', headers=as_buyer)
    detail = response.get_json()["order"]
    assert detail["state"] == "delivered"
    assert detail["shipment"]["state"] == "delivered"

    response = client.get('/api/stock', headers=as_buyer)
    assert {e["name"]: e["quantity"] for e in response.get_json()["items"]} == {"Widget": 2, "Gadget": 1}

    response = client.post('/api/stock/deplete', json={"name": "Widget", "quantity": 1}, headers=as_buyer)
    assert response.status_code == 200
    assert response.get_json()["amount_cents"] == 100

    response = client.post(f'/api/orders/{order["id"]}/ledger', headers=as_buyer)
    assert response.status_code == 201

    response = client.get('/api/ledger/totals', headers=as_buyer)
    totals = response.get_json()
    assert totals["credits_cents"] == 100
    assert totals["debits_cents"] == 250

    assert "stock.delivered" in notifier.events_for(buyer.id)


def test_linkage_routes(client, db_session, depot, widget, gadget):
    as_depot = caller_headers(depot)
    response = client.post('/api/linkages', json={"product_a": "W-001", "product_b": gadget.id}, headers=as_depot)
    assert response.status_code == 201

    response = client.get(f'/api/linkages/products/{widget.id}', headers=as_depot)
    assert response.get_json()["consolidated_quantity"] == 15

    response = client.post('/api/linkages/merge', json={"product_id": widget.id}, headers=as_depot)
    assert response.status_code == 200
    assert response.get_json()["new_quantity"] == 15
    assert response.get_json()["absorbed"][0]["quantity_on_hand"] == 0


def test_personal_stock_code_routes(client, db_session, buyer):
    as_buyer = caller_headers(buyer)
    response = client.post('/api/stock', json={"name": "Tea", "quantity": 2, "unit_price_cents": 300}, headers=as_buyer)
    internal_code = response.get_json()["entry"]["internal_code"]
    assert internal_code.startswith("STK")

    response = client.post('/api/stock/alternate-codes', json={"name": "Tea", "code": "TEA-ALT", "quantity": 1}, headers=as_buyer)
    assert response.status_code == 201
    assert response.get_json()["available"] == 3

    response = client.post('/api/stock/alternate-codes', json={"name": "Tea", "code": internal_code}, headers=as_buyer)
    assert response.status_code == 409

    response = client.get('/api/stock/by-code/tea-alt', headers=as_buyer)
    assert response.status_code == 200
    assert response.get_json()["via_alternate"] is True

    response = client.post(f'/api/stock/by-code/{internal_code}/add', json={"quantity": 4}, headers=as_buyer)
    assert response.status_code == 200
    assert response.get_json()["quantity"] == 7

    response = client.get('/api/stock/alternate-codes', headers=as_buyer)
    code_id = response.get_json()["items"][0]["id"]
    assert client.delete(f'/api/stock/alternate-codes/{code_id}', headers=as_buyer).status_code == 200
    assert client.get('/api/stock/by-code/TEA-ALT', headers=as_buyer).status_code == 404
