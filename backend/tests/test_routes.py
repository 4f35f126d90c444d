# Tradehouse API Tests
#
# Exercises the HTTP surface end to end: status codes and error bodies.

import pytest

from conftest import line


def create_item(client, **body):
    response = client.post("/api/items", json={"name": "Mango", **body})
    assert response.status_code == 201, response.get_json()
    return response.get_json()


class TestSystem:
    def test_health(self, client, db_session):
        response = client.get("/api/health")
        data = response.get_json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["scheduler"]["status"] == "disabled"


class TestItemRoutes:
    def test_create_and_list(self, client, db_session):
        item = create_item(client, shop_quantity=10, shop_net_weight=100)
        assert item["item_code"] == 10000
        assert item["shop_quantity"] == 10

        listing = client.get("/api/items").get_json()
        assert listing["count"] == 1

    def test_duplicate_name_is_409(self, client, db_session):
        create_item(client)
        response = client.post("/api/items", json={"name": "Mango"})
        assert response.status_code == 409

    def test_transfer(self, client, db_session):
        item = create_item(client, shop_quantity=10, shop_net_weight=100)
        response = client.post(f"/api/items/{item['id']}/transfer", json={
            "from": "shop", "to": "cold", "quantity": 4, "net_weight": 40,
        })
        data = response.get_json()

        assert response.status_code == 200
        assert (data["shop_quantity"], data["cold_quantity"]) == (6, 4)

    def test_missing_item_is_404(self, client, db_session):
        assert client.get("/api/items/4040").status_code == 404


@pytest.mark.invoices
class TestInvoiceRoutes:
    def test_create_list_delete(self, client, db_session):
        item = create_item(client, shop_quantity=10, shop_net_weight=100)
        response = client.post("/api/invoices/customer", json={
            "customer_name": "Walk-in",
            "lines": [{"item_id": item["id"], "quantity": 2, "net_weight": 20, "selling_price": 50}],
            "payments": [{"amount": 400}],
        })
        invoice = response.get_json()

        assert response.status_code == 201
        assert invoice["invoice_number"] == "CIN0001"
        assert invoice["total"] == 1000
        assert invoice["status"] == "partial"
        assert invoice["lines"][0]["selling_price"] == 50
        assert client.get(f"/api/items/{item['id']}").get_json()["shop_quantity"] == 8

        listing = client.get("/api/invoices/customer?status=partial").get_json()
        assert listing["count"] == 1

        response = client.delete(f"/api/invoices/customer/{invoice['id']}")
        assert response.get_json() == {"deleted": True, "id": invoice["id"]}
        assert client.get(f"/api/invoices/customer/{invoice['id']}").status_code == 404
        assert client.get(f"/api/items/{item['id']}").get_json()["shop_quantity"] == 10

    def test_insufficient_stock_body(self, client, db_session):
        item = create_item(client, shop_quantity=1, shop_net_weight=10)
        response = client.post("/api/invoices/customer", json={
            "customer_name": "Walk-in",
            "lines": [{"item_id": item["id"], "quantity": 3, "net_weight": 5}],
        })
        data = response.get_json()

        assert response.status_code == 400
        assert "Insufficient shop quantity" in data["error"]
        assert data["details"]["item_name"] == "Mango"
        assert data["details"]["required"] == 3

    def test_validation_errors(self, client, db_session):
        response = client.post("/api/invoices/customer", json={"customer_name": "A", "lines": []})
        assert response.status_code == 400
        assert response.get_json()["error"] == "At least one line item is required"

        response = client.post("/api/invoices/supplier", json={"lines": [line(quantity=1, net_weight=1)]})
        assert response.status_code == 400

    def test_duplicate_invoice_number_is_409(self, client, db_session):
        body = {"vendor_name": "Valley Farms", "invoice_number": "V-77",
                "lines": [line(quantity=1, net_weight=1, unit_price=1)]}
        assert client.post("/api/invoices/vendor", json=body).status_code == 201
        assert client.post("/api/invoices/vendor", json=body).status_code == 409

    def test_payment_and_due_date_endpoints(self, client, db_session):
        invoice = client.post("/api/invoices/vendor", json={
            "vendor_name": "Valley Farms",
            "lines": [line(quantity=10, net_weight=100, unit_price=10)],
        }).get_json()

        response = client.post(f"/api/invoices/vendor/{invoice['id']}/payments", json={"amount": 1000})
        assert response.status_code == 201
        assert response.get_json()["status"] == "paid"

        response = client.patch(f"/api/invoices/vendor/{invoice['id']}/due-date", json={"due_date": None})
        assert response.status_code == 200

        response = client.patch(f"/api/invoices/vendor/{invoice['id']}/due-date", json={})
        assert response.status_code == 400

    def test_commissioner_overpayment_body(self, client, db_session):
        invoice = client.post("/api/invoices/commissioner", json={
            "commissioner_name": "Kamal Agent",
            "commissioner_percentage": 10,
            "lines": [line(quantity=1, net_weight=100, unit_price=10)],
        }).get_json()
        assert invoice["commissioner_amount"] == 100

        response = client.post(f"/api/invoices/commissioner/{invoice['id']}/payments", json={"amount": 150})
        assert response.status_code == 400
        assert response.get_json()["details"]["overpayment"] == 50


@pytest.mark.parties
class TestPartyRoutes:
    def test_create_and_pay_broker(self, client, db_session):
        broker = client.post("/api/parties/broker", json={"name": "Rashid Broker"}).get_json()
        assert broker["total_commission"] == 0

        client.post("/api/invoices/customer", json={
            "customer_name": "Walk-in",
            "broker_id": broker["id"],
            "broker_commission_percentage": 5,
            "lines": [line(quantity=1, net_weight=1000, unit_price=2)],
        })

        response = client.post(f"/api/parties/broker/{broker['id']}/payments", json={"amount": 40})
        data = response.get_json()
        assert response.status_code == 201
        assert (data["total_commission"], data["total_paid"], data["total_remaining"]) == (100, 40, 60)

    def test_party_overpayment_and_fractional_amounts(self, client, db_session):
        broker = client.post("/api/parties/broker", json={"name": "Rashid Broker"}).get_json()

        response = client.post(f"/api/parties/broker/{broker['id']}/payments", json={"amount": 2.5})
        assert response.status_code == 400

        response = client.post(f"/api/parties/broker/{broker['id']}/payments", json={"amount": 50})
        assert response.status_code == 400
        assert response.get_json()["details"]["overpayment"] == 50

    def test_unknown_party_is_404(self, client, db_session):
        assert client.get("/api/parties/commissioner/77").status_code == 404
        assert client.post("/api/parties/commissioner/77/recalculate").status_code == 404


@pytest.mark.jobs
class TestJobRoutes:
    def test_list_and_run(self, client, db_session):
        listing = client.get("/api/jobs").get_json()
        assert listing["jobs"][0]["name"] == "invoice-status-updates"

        response = client.post("/api/jobs/run/invoice-status-updates")
        assert response.status_code == 200
        assert response.get_json()["result"]["customer"] == 0

    def test_unknown_job_is_404(self, client, db_session):
        assert client.post("/api/jobs/run/nightly-backup").status_code == 404


class TestCli:
    def test_items_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["items", "create", "--name", "Mango", "--shop-quantity", "5"])
        assert "PASS Created item Mango (code 10000" in result.output

        result = runner.invoke(args=["items", "list"])
        assert "Mango" in result.output

    def test_recalculate_all(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["parties", "recalculate-all"])
        assert "PASS Recalculated 0 broker(s) and 0 commissioner(s)" in result.output

    def test_unknown_job(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["jobs", "run", "nightly-backup"])
        assert result.exit_code != 0
        assert "Unknown job" in result.output
