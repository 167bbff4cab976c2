"""End-to-end tests through the HTTP API."""

import csv
import io
from datetime import date, timedelta

import pytest


@pytest.fixture
def catalog(api, auth_headers):
    """A worker with a project rate, a client and a service for the signed-in owner."""
    worker = api.post("/api/workers", json={"name": "Kofi Mensah"}, headers=auth_headers).json()
    project = api.post("/api/projects", json={"name": "Tiling", "base_price": 150}, headers=auth_headers).json()
    rate = api.post(f"/api/workers/{worker['id']}/rates", json={"project_id": project["id"]},
                    headers=auth_headers).json()
    client = api.post("/api/clients", json={"name": "Akosua Boateng"}, headers=auth_headers).json()
    service = api.post("/api/services", json={"name": "Floor installation", "cost": 100},
                       headers=auth_headers).json()
    return {"worker": worker, "project": project, "rate": rate, "client": client, "service": service}


def create_order(api, headers, catalog, **extra):
    payload = {
        "client_id": catalog["client"]["id"],
        "services": [{"service_id": catalog["service"]["id"], "quantity": 2}],
        "workers": [{"worker_id": catalog["worker"]["id"], "project_id": catalog["project"]["id"]}],
        **extra,
    }
    return api.post("/api/orders", json=payload, headers=headers)


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_register_creates_organization(api, auth_headers):
    me = api.get("/api/auth/me", headers=auth_headers).json()
    assert me["email"] == "owner@example.com"
    assert me["organization_id"]
    assert me["currency"] == "GHS"


def test_duplicate_email_rejected(api, auth_headers):
    response = api.post("/api/auth/register", json={
        "email": "owner@example.com", "password": "x", "full_name": "Again"
    })
    assert response.status_code == 400


def test_bad_login(api, auth_headers):
    response = api.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong"})
    assert response.status_code == 401


def test_requests_without_token_are_unauthorized(api):
    assert api.get("/api/workers").status_code == 401


def test_tenant_isolation(api, signup, auth_headers, catalog):
    rival = signup("rival@example.com")
    worker_id = catalog["worker"]["id"]

    assert api.get("/api/workers", headers=rival).json() == []
    assert api.get("/api/clients", headers=rival).json() == []

    response = api.get(f"/api/workers/{worker_id}", headers=rival)
    assert response.status_code == 404
    assert response.json() == {"detail": "Worker not found"}

    response = api.post("/api/tasks", json={
        "worker_id": worker_id, "project_id": catalog["project"]["id"], "date": date.today().isoformat()
    }, headers=rival)
    assert response.status_code == 404


def test_rate_defaults_to_base_price(api, auth_headers, catalog):
    assert catalog["rate"]["rate"] == 150
    duplicate = api.post(f"/api/workers/{catalog['worker']['id']}/rates",
                         json={"project_id": catalog["project"]["id"], "rate": 90}, headers=auth_headers)
    assert duplicate.status_code == 400


def test_task_flow(api, auth_headers, catalog):
    response = api.post("/api/tasks", json={
        "worker_id": catalog["worker"]["id"],
        "project_id": catalog["project"]["id"],
        "date": date.today().isoformat(),
        "description": "Bathroom walls",
    }, headers=auth_headers)
    assert response.status_code == 200, response.text
    task = response.json()
    assert task["amount"] == 150
    assert task["status"] == "pending"

    task = api.post(f"/api/tasks/{task['id']}/deductions", json={"amount": 30, "reason": "Broken tiles"},
                    headers=auth_headers).json()
    assert task["net_amount"] == 120

    delayed = api.post(f"/api/tasks/{task['id']}/status", json={"status": "delayed"}, headers=auth_headers)
    assert delayed.status_code == 422

    done = api.post(f"/api/tasks/{task['id']}/status", json={"status": "completed"}, headers=auth_headers)
    assert done.json()["completed_at"] is not None

    reopened = api.post(f"/api/tasks/{task['id']}/status", json={"status": "pending"}, headers=auth_headers)
    assert reopened.status_code == 409
    assert reopened.json()["detail"] == "Cannot change status from completed to pending"

    workers = api.get("/api/workers", headers=auth_headers).json()
    assert workers[0]["stats"]["all_time_tasks"] == 1


def test_late_task_needs_reason(api, auth_headers, catalog):
    payload = {
        "worker_id": catalog["worker"]["id"],
        "project_id": catalog["project"]["id"],
        "date": (date.today() - timedelta(days=3)).isoformat(),
    }
    response = api.post("/api/tasks", json=payload, headers=auth_headers)
    assert response.status_code == 422
    assert "late reason" in response.json()["detail"]

    payload["late_reason"] = "Phone was off"
    response = api.post("/api/tasks", json=payload, headers=auth_headers)
    assert response.json()["late_reason"] == "Phone was off"


def test_order_payment_flow(api, auth_headers, catalog):
    response = create_order(api, auth_headers, catalog, initial_payment=50, payment_method="cash")
    assert response.status_code == 200, response.text
    order = response.json()
    assert order["order_number"].startswith("ORD-")
    assert order["outstanding_balance"] == 150
    assert order["payment_status"] == "partially_paid"

    over = api.post(f"/api/orders/{order['id']}/payments",
                    json={"amount": 200, "payment_method": "cash"}, headers=auth_headers)
    assert over.status_code == 422
    assert api.get(f"/api/orders/{order['id']}", headers=auth_headers).json()["outstanding_balance"] == 150

    stale = api.post(f"/api/orders/{order['id']}/payments",
                     json={"amount": 10, "payment_method": "cash", "expected_revision": order["revision"] + 5},
                     headers=auth_headers)
    assert stale.status_code == 409

    paid = api.post(f"/api/orders/{order['id']}/payments",
                    json={"amount": 150, "payment_method": "mobile_money", "expected_revision": order["revision"]},
                    headers=auth_headers).json()
    assert paid["payment_status"] == "paid"
    assert paid["amount_paid"] == 200
    assert len(api.get(f"/api/orders/{order['id']}/payments", headers=auth_headers).json()) == 2

    client = api.get(f"/api/clients/{catalog['client']['id']}", headers=auth_headers).json()
    assert client["total_balance"] == 0


def test_order_validation_message(api, auth_headers, catalog):
    response = create_order(api, auth_headers, catalog, workers=[{"worker_id": catalog["worker"]["id"]}])
    assert response.status_code == 422
    assert response.json()["detail"].startswith("Please select a client")


def test_order_created_after_same_day_delete(api, auth_headers, catalog):
    first = create_order(api, auth_headers, catalog).json()
    second = create_order(api, auth_headers, catalog).json()
    assert api.delete(f"/api/orders/{first['id']}", headers=auth_headers).status_code == 200

    third = create_order(api, auth_headers, catalog)
    assert third.status_code == 200, third.text
    assert third.json()["order_number"] != second["order_number"]


def test_order_status_endpoint(api, auth_headers, catalog):
    order = create_order(api, auth_headers, catalog).json()
    cancelled = api.post(f"/api/orders/{order['id']}/status", json={"status": "cancelled"}, headers=auth_headers)
    assert cancelled.json()["status"] == "cancelled"
    again = api.post(f"/api/orders/{order['id']}/status", json={"status": "in_progress"}, headers=auth_headers)
    assert again.status_code == 409

    assignment = order["workers"][0]
    updated = api.post(f"/api/orders/{order['id']}/workers/{assignment['id']}/status",
                       json={"status": "completed"}, headers=auth_headers).json()
    assert updated["workers"][0]["status"] == "completed"


def test_sales_order_flow(api, auth_headers, catalog):
    product = api.post("/api/products", json={
        "name": "Ceramic tile", "category": "finished_good", "unit_price": 25,
        "stock_quantity": 3, "reorder_point": 2,
    }, headers=auth_headers).json()

    too_many = api.post("/api/sales-orders", json={
        "client_id": catalog["client"]["id"], "items": [{"product_id": product["id"], "quantity": 4}],
    }, headers=auth_headers)
    assert too_many.status_code == 422

    sale = api.post("/api/sales-orders", json={
        "client_id": catalog["client"]["id"],
        "items": [{"product_id": product["id"], "quantity": 2},
                  {"name": "Delivery", "quantity": 1, "unit_price": 10}],
    }, headers=auth_headers).json()
    assert sale["total_amount"] == 60
    assert sale["order_number"].startswith("SO-")

    stocked = api.get(f"/api/products/{product['id']}", headers=auth_headers).json()
    assert stocked["stock_quantity"] == 1
    assert stocked["is_low_stock"] is True
    low = api.get("/api/products", params={"low_stock": "true"}, headers=auth_headers).json()
    assert [p["id"] for p in low] == [product["id"]]

    paid = api.post(f"/api/sales-orders/{sale['id']}/payments",
                    json={"amount": 20, "payment_method": "bank_transfer"}, headers=auth_headers).json()
    assert paid["outstanding_balance"] == 40
    assert paid["payment_status"] == "partially_paid"

    found = api.get("/api/sales-orders", params={"search": "Akosua"}, headers=auth_headers).json()
    assert [s["id"] for s in found] == [sale["id"]]

    client = api.get(f"/api/clients/{catalog['client']['id']}", headers=auth_headers).json()
    assert client["total_balance"] == 40


def test_negative_product_price_rejected(api, auth_headers):
    response = api.post("/api/products", json={"name": "Grout", "unit_price": -1}, headers=auth_headers)
    assert response.status_code == 422


def test_financial_report_and_export(api, auth_headers, catalog):
    today = date.today().isoformat()
    task = api.post("/api/tasks", json={
        "worker_id": catalog["worker"]["id"], "project_id": catalog["project"]["id"], "date": today,
    }, headers=auth_headers).json()
    api.post(f"/api/tasks/{task['id']}/deductions", json={"amount": 50, "reason": "Rework"}, headers=auth_headers)

    report = api.get("/api/reports/financial", params={"week_of": today}, headers=auth_headers).json()
    assert report["currency"] == "GHS"
    assert report["rows"] == [{
        "date": today, "total_tasks": 1, "total_amount": 150, "total_deductions": 50, "net_amount": 100,
    }]
    assert report["totals"]["net_amount"] == 100

    export = api.get("/api/reports/financial/export", params={"week_of": today}, headers=auth_headers)
    assert export.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(export.text)))
    assert rows[1][0] == today
    assert rows[-1][0] == "Total"

    worker_report = api.get(f"/api/reports/workers/{catalog['worker']['id']}",
                            params={"start": today, "end": today}, headers=auth_headers).json()
    assert worker_report["summary"]["total_tasks"] == 1
    assert "Kofi Mensah" in worker_report["share_message"]


def test_dashboard_stats(api, auth_headers, catalog):
    create_order(api, auth_headers, catalog)
    stats = api.get("/api/dashboard/stats", headers=auth_headers).json()
    assert stats["total_workers"] == 1
    assert stats["outstanding_receivables"] == 200
    assert stats["task_status_counts"]["pending"] == 0


def test_settings_currency(api, auth_headers):
    currencies = api.get("/api/settings/currencies").json()
    assert {c["code"] for c in currencies} >= {"GHS", "USD", "EUR", "GBP", "NGN"}

    bad = api.put("/api/settings/organization", json={"currency": "XYZ"}, headers=auth_headers)
    assert bad.status_code == 422

    updated = api.put("/api/settings/organization", json={"currency": "usd", "city": "Accra"},
                      headers=auth_headers).json()
    assert updated["currency"] == "USD"
    assert updated["city"] == "Accra"


def test_delete_account_removes_everything(api, auth_headers, catalog):
    create_order(api, auth_headers, catalog, initial_payment=20, payment_method="cash")
    assert api.delete("/api/settings/account", headers=auth_headers).json() == {"ok": True}
    assert api.get("/api/workers", headers=auth_headers).status_code == 401
