"""
HTTP API tests.

Verifies:
- Unknown / inactive establishments return 404 / 403 on every scoped route
- Order placement and status updates map errors to 400 / 404 / 503
- Status update responses report the reconciliation outcome
- Sales read, backfill and audit endpoints return the documented shapes
"""

import pytest
from sqlalchemy.exc import OperationalError

from hospitality.extensions import db
from hospitality.models import AuditEvent
from hospitality.services import reconciliation_service


ITEMS = [{"name": "Brochette", "price": 5000, "quantity": 3}]


def _orders_url(establishment_id, suffix=""):
    return f"/api/establishments/{establishment_id}/orders{suffix}"


def _place(client, establishment_id, items=ITEMS):
    resp = client.post(
        _orders_url(establishment_id),
        json={"customer_name": "Alice", "phone": "0780000000", "items": items},
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["order"]


# =============================================================================
# TENANT CONTEXT
# =============================================================================


class TestEstablishmentContext:

    @pytest.mark.parametrize(
        "method,suffix",
        [
            ("GET", ""),
            ("GET", "/orders"),
            ("POST", "/orders"),
            ("GET", "/orders/1"),
            ("PUT", "/orders/1/status"),
            ("GET", "/sales"),
            ("GET", "/sales/summary"),
            ("POST", "/sales/backfill"),
            ("GET", "/sales/audit"),
            ("GET", "/sales/order-counts"),
            ("GET", "/orders/1/sales-status"),
        ],
    )
    def test_unknown_establishment_is_404(self, client, db_session, method, suffix):
        resp = getattr(client, method.lower())(f"/api/establishments/999{suffix}", json={})
        assert resp.status_code == 404, f"{method} {suffix} returned {resp.status_code}"

    def test_inactive_establishment_is_403(self, client, db_session, establishment_a):
        establishment_a.is_active = False
        db_session.commit()

        resp = client.get(_orders_url(establishment_a.id))
        assert resp.status_code == 403

    def test_create_and_get_establishment(self, client, db_session):
        resp = client.post(
            "/api/establishments",
            json={"name": "Kigali Bakery", "establishment_type": "bakery", "timezone": "Africa/Kigali"},
        )
        assert resp.status_code == 201
        created = resp.get_json()["establishment"]
        assert created["sales"] == {"total_revenue": 0, "total_orders": 0, "last_updated": None}

        resp = client.get(f"/api/establishments/{created['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["establishment"]["timezone"] == "Africa/Kigali"

    def test_create_establishment_rejects_unknown_type(self, client, db_session):
        resp = client.post("/api/establishments", json={"name": "X", "establishment_type": "casino"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("timezone", ["Africa", "Mars/Olympus_Mons", "../etc", 5])
    def test_create_establishment_rejects_bad_timezone(self, client, db_session, timezone):
        resp = client.post("/api/establishments", json={"name": "X", "timezone": timezone})
        assert resp.status_code == 400

    def test_create_establishment_rejects_non_object_body(self, client, db_session):
        resp = client.post("/api/establishments", json=[{"name": "X"}])
        assert resp.status_code == 400


# =============================================================================
# ORDERS
# =============================================================================


class TestOrderRoutes:

    def test_place_order(self, client, db_session, establishment_a):
        order = _place(client, establishment_a.id)

        assert order["total"] == 15000
        assert order["status"] == "pending"
        assert order["payment_status"] == "pending"
        assert order["items"][0]["line_total"] == 15000

    @pytest.mark.parametrize(
        "body",
        [
            {"phone": "078", "items": ITEMS},
            {"customer_name": "Alice", "phone": "078", "items": []},
            {"customer_name": "Alice", "phone": "078", "items": [{"name": "Tea", "price": -1}]},
            {"customer_name": "Alice", "phone": "078", "items": [{"name": "Tea", "price": 10.5}]},
        ],
    )
    def test_place_order_validation(self, client, db_session, establishment_a, body):
        resp = client.post(_orders_url(establishment_a.id), json=body)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_list_and_get(self, client, db_session, establishment_a, establishment_b):
        order = _place(client, establishment_a.id)
        _place(client, establishment_b.id)

        listed = client.get(_orders_url(establishment_a.id)).get_json()["orders"]
        assert [o["id"] for o in listed] == [order["id"]]

        assert client.get(_orders_url(establishment_a.id, f"/{order['id']}")).status_code == 200
        assert client.get(_orders_url(establishment_b.id, f"/{order['id']}")).status_code == 404

    def test_status_update_reports_reconciliation(self, client, db_session, establishment_a):
        order = _place(client, establishment_a.id)

        resp = client.put(
            _orders_url(establishment_a.id, f"/{order['id']}/status"),
            json={"payment_status": "paid", "payment_method": "card"},
            headers={"X-Actor": "payments-webhook"},
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["order"]["payment_status"] == "paid"
        assert body["reconciliation"] == {"attempted": True, "outcome": "posted"}

        resp = client.put(
            _orders_url(establishment_a.id, f"/{order['id']}/status"),
            json={"status": "served"},
        )
        assert resp.get_json()["reconciliation"] == {"attempted": True, "outcome": "already_posted"}

    def test_status_update_without_qualification(self, client, db_session, establishment_a):
        order = _place(client, establishment_a.id)
        resp = client.put(
            _orders_url(establishment_a.id, f"/{order['id']}/status"),
            json={"status": "cancelled"},
        )
        assert resp.status_code == 200
        assert resp.get_json()["reconciliation"] == {"attempted": False, "outcome": "not_qualified"}

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"status": "eaten"},
            {"payment_status": "refunded"},
            {"payment_method": "bitcoin"},
            {"status": "served", "total": 1},
        ],
    )
    def test_status_update_validation(self, client, db_session, establishment_a, body):
        order = _place(client, establishment_a.id)
        resp = client.put(_orders_url(establishment_a.id, f"/{order['id']}/status"), json=body)
        assert resp.status_code == 400

    def test_status_update_unknown_order(self, client, db_session, establishment_a):
        resp = client.put(_orders_url(establishment_a.id, "/4242/status"), json={"status": "served"})
        assert resp.status_code == 404

    def test_status_update_survives_reconciliation_failure(self, client, db_session, establishment_a, monkeypatch):
        order = _place(client, establishment_a.id)

        def _boom(*args, **kwargs):
            raise OperationalError("UPDATE establishments", {}, Exception("database is locked"))

        monkeypatch.setattr(reconciliation_service, "increment_sales_counters", _boom)

        resp = client.put(
            _orders_url(establishment_a.id, f"/{order['id']}/status"),
            json={"status": "served"},
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["order"]["status"] == "served"
        assert body["reconciliation"] == {"attempted": True, "outcome": "failed"}

    def test_status_update_storage_failure_is_503(self, client, db_session, establishment_a, monkeypatch):
        order = _place(client, establishment_a.id)

        def _locked():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(db.session, "commit", _locked)

        resp = client.put(
            _orders_url(establishment_a.id, f"/{order['id']}/status"),
            json={"status": "served"},
        )
        assert resp.status_code == 503


# =============================================================================
# SALES
# =============================================================================


class TestSalesRoutes:

    def _post_one(self, client, establishment_id):
        order = _place(client, establishment_id)
        client.put(_orders_url(establishment_id, f"/{order['id']}/status"), json={"status": "served"})
        return order

    def test_ledger_and_summary(self, client, db_session, establishment_a):
        order = self._post_one(client, establishment_a.id)

        resp = client.get(f"/api/establishments/{establishment_a.id}/sales")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 1
        assert body["total"] == 15000
        assert body["items"][0]["order_id"] == order["id"]
        assert body["items"][0]["status"] == "completed"

        summary = client.get(f"/api/establishments/{establishment_a.id}/sales/summary").get_json()["sales"]
        assert summary["total_revenue"] == 15000
        assert summary["total_orders"] == 1

    def test_ledger_date_filters(self, client, db_session, establishment_a):
        self._post_one(client, establishment_a.id)
        base = f"/api/establishments/{establishment_a.id}/sales"

        assert client.get(f"{base}?start_date=2000-01-01&end_date=2000-01-02").get_json()["count"] == 0
        assert client.get(f"{base}?start_date=not-a-date").status_code == 400
        assert client.get(f"{base}?start_date=2000-01-02&end_date=2000-01-01").status_code == 400

    def test_backfill(self, client, db_session, establishment_a):
        url = f"/api/establishments/{establishment_a.id}/sales/backfill"

        resp = client.post(url, json={"by": "served"})
        assert resp.status_code == 200
        assert resp.get_json()["newlyPosted"] == 0

        assert client.post(url, json={"by": "everything"}).status_code == 400
        assert client.post(url, json=["paid"]).status_code == 400
        assert client.post(url).status_code == 200

    def test_audit(self, client, db_session, establishment_a):
        self._post_one(client, establishment_a.id)
        base = f"/api/establishments/{establishment_a.id}/sales/audit"

        audit = client.get(base).get_json()["audit"]
        assert audit["all_time"]["consistent"] is True
        assert audit["ledger"]["total"] == 15000

        assert client.get(f"{base}?date=19-10-2026").status_code == 400

    def test_order_counts_and_sales_status(self, client, db_session, establishment_a):
        order = self._post_one(client, establishment_a.id)
        base = f"/api/establishments/{establishment_a.id}"

        counts = client.get(f"{base}/sales/order-counts").get_json()
        assert counts["by_status"] == {"served": 1}
        assert counts["ledger_entries"] == 1

        status = client.get(f"{base}/orders/{order['id']}/sales-status").get_json()
        assert status["qualifies"] is True
        assert status["daily_sale"]["amount"] == 15000

        assert client.get(f"{base}/orders/4242/sales-status").status_code == 404


class TestHealth:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestActorHeader:

    def test_long_actor_header_is_truncated(self, client, db_session, establishment_a):
        order = _place(client, establishment_a.id)
        resp = client.put(
            _orders_url(establishment_a.id, f"/{order['id']}/status"),
            json={"status": "served"},
            headers={"X-Actor": "pos-terminal-" + "x" * 200},
        )
        assert resp.status_code == 200

        events = db_session.query(AuditEvent).filter(
            AuditEvent.event_type.in_(["order.updated", "sales.posted"])
        ).all()
        assert len(events) == 2
        assert all(e.actor == ("pos-terminal-" + "x" * 200)[:64] for e in events)
