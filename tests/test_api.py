"""
HTTP tests: camelCase payloads, status codes and the error envelope.
"""

from collections import deque
from threading import Lock

from models import Product


class RecordingLock:
    def __init__(self):
        self.entered = 0
        self._lock = Lock()

    def __enter__(self):
        self._lock.acquire()
        self.entered += 1
        return self

    def __exit__(self, *exc):
        self._lock.release()
        return False


PHONE = {
    "name": "Redmi Note 13",
    "brand": "Xiaomi",
    "category": "Phones",
    "buyingPrice": 380000,
    "sellingPrice": 450000,
    "pieces": 3,
    "lowStockAlert": 1,
}


def create_product(client, **overrides):
    res = client.post("/products", json={**PHONE, **overrides})
    assert res.status_code == 201, res.text
    return res.json()


def create_customer(client, name="Baraka Said"):
    res = client.post("/customers", json={"name": name, "phone": "+255712345678"})
    assert res.status_code == 201, res.text
    return res.json()


class TestProductsApi:
    def test_create_and_fetch(self, client):
        product = create_product(client)
        assert product["buyingPrice"] == 380000
        assert product["lowStockAlert"] == 1
        assert "id" in product

        res = client.get(f"/products/{product['id']}")
        assert res.status_code == 200
        assert res.json()["name"] == "Redmi Note 13"

    def test_search(self, client):
        create_product(client)
        create_product(client, name="iPhone 15", brand="Apple")

        res = client.get("/products", params={"q": "apple"})
        assert [p["name"] for p in res.json()] == ["iPhone 15"]

    def test_update_and_stock(self, client):
        product = create_product(client)
        res = client.put(f"/products/{product['id']}", json={**PHONE, "sellingPrice": 430000})
        assert res.json()["sellingPrice"] == 430000

        res = client.patch(f"/products/{product['id']}/stock", json={"pieces": 9})
        assert res.json()["pieces"] == 9

    def test_delete(self, client):
        product = create_product(client)
        assert client.delete(f"/products/{product['id']}").status_code == 204
        assert client.get(f"/products/{product['id']}").status_code == 404

    def test_unknown_product_is_404(self, client):
        res = client.get("/products/nope")
        assert res.status_code == 404
        assert res.json() == {"detail": "Product not found"}

    def test_invalid_body_is_422(self, client):
        res = client.post("/products", json={**PHONE, "sellingPrice": -1})
        assert res.status_code == 422


class TestCustomersApi:
    def test_loan_and_payment(self, client):
        customer = create_customer(client)

        res = client.post(f"/customers/{customer['id']}/loans", json={"amount": 20000, "description": "Earphones"})
        assert res.status_code == 200
        assert res.json()["customer"]["loanBalance"] == 20000
        assert res.json()["transaction"]["type"] == "loan"

        res = client.post(f"/customers/{customer['id']}/payments", json={"amount": 5000})
        assert res.json()["customer"]["loanBalance"] == 15000

        history = client.get(f"/customers/{customer['id']}/loan-history").json()
        assert [t["type"] for t in history] == ["payment", "loan"]

    def test_payment_above_balance_rejected(self, client):
        customer = create_customer(client)
        client.post(f"/customers/{customer['id']}/loans", json={"amount": 1000})

        res = client.post(f"/customers/{customer['id']}/payments", json={"amount": 1500})
        assert res.status_code == 400
        assert "exceeds loan balance" in res.json()["detail"]
        assert client.get(f"/customers/{customer['id']}").json()["loanBalance"] == 1000

    def test_non_positive_loan_is_422(self, client):
        customer = create_customer(client)
        res = client.post(f"/customers/{customer['id']}/loans", json={"amount": 0})
        assert res.status_code == 422

    def test_loyalty_points(self, client):
        customer = create_customer(client)
        res = client.post(f"/customers/{customer['id']}/loyalty-points", json={"points": 3})
        assert res.json()["loyaltyPoints"] == 3

    def test_partial_update(self, client):
        customer = create_customer(client)
        res = client.put(f"/customers/{customer['id']}", json={"address": "Mwenge"})
        assert res.json()["address"] == "Mwenge"
        assert res.json()["name"] == "Baraka Said"


class TestCartApi:
    def test_add_discount_and_checkout(self, client):
        product = create_product(client, sellingPrice=10000, pieces=5)
        pid = product["id"]

        client.post(f"/cart/lines/{pid}")
        cart = client.post(f"/cart/lines/{pid}").json()
        assert cart["itemCount"] == 2

        cart = client.patch(f"/cart/lines/{pid}", json={"discount": 10}).json()
        assert cart["total"] == 18000
        assert cart["lines"][0]["finalPrice"] == 9000

        res = client.post("/cart/checkout", json={"cashReceived": 20000, "customerName": "Walk-in"})
        assert res.status_code == 201, res.text
        sale = res.json()
        assert sale["total"] == 18000
        assert sale["change"] == 2000
        assert sale["items"][0]["price"] == 9000

        assert client.get(f"/products/{pid}").json()["pieces"] == 3
        assert client.get("/cart").json()["lines"] == []

    def test_adding_beyond_stock_is_400(self, client):
        pid = create_product(client, pieces=1)["id"]
        client.post(f"/cart/lines/{pid}")
        res = client.post(f"/cart/lines/{pid}")
        assert res.status_code == 400
        assert res.json()["detail"] == "Not enough stock available"

    def test_short_cash_is_400(self, client):
        pid = create_product(client)["id"]
        client.post(f"/cart/lines/{pid}")
        res = client.post("/cart/checkout", json={"cashReceived": 100})
        assert res.status_code == 400
        assert res.json()["detail"].startswith("Insufficient cash received")

    def test_loan_line_posts_to_customer(self, client):
        customer = create_customer(client)
        pid = create_product(client, sellingPrice=100000)["id"]
        client.post(f"/cart/lines/{pid}")
        client.patch(f"/cart/lines/{pid}", json={"discount": 10, "useLoan": True})

        res = client.post("/cart/checkout", json={"cashReceived": 90000, "customerId": customer["id"]})
        assert res.status_code == 201
        assert res.json()["customerName"] == "Baraka Said"
        assert client.get(f"/customers/{customer['id']}").json()["loanBalance"] == 10000

    def test_remove_and_clear(self, client):
        pid = create_product(client)["id"]
        client.post(f"/cart/lines/{pid}")
        assert client.delete(f"/cart/lines/{pid}").json()["lines"] == []
        assert client.delete(f"/cart/lines/{pid}").status_code == 400

        client.post(f"/cart/lines/{pid}")
        assert client.delete("/cart").json()["total"] == 0


class TestSalesApi:
    def checkout_one(self, client, **product):
        pid = create_product(client, **product)["id"]
        client.post(f"/cart/lines/{pid}")
        return client.post("/cart/checkout", json={"cashReceived": 1000000}).json()

    def test_receipt_uses_profile(self, client):
        client.put("/profiles/mama", json={"shopName": "Mama Simu Shop", "shopLogo": "logo.png"})
        sale = self.checkout_one(client)

        res = client.get(f"/sales/{sale['id']}/receipt", params={"username": "mama"})
        assert res.status_code == 200
        body = res.json()
        assert body["shopName"] == "Mama Simu Shop"
        assert body["lines"][0]["productName"] == "Redmi Note 13"
        assert body["lines"][0]["lineTotal"] == 450000

    def test_list_and_update(self, client):
        sale = self.checkout_one(client)
        assert [s["id"] for s in client.get("/sales").json()] == [sale["id"]]

        res = client.patch(f"/sales/{sale['id']}", json={"signature": "BS"})
        assert res.json()["signature"] == "BS"

    def test_search_by_id_and_total(self, client):
        first = self.checkout_one(client)
        self.checkout_one(client, name="Itel A70", sellingPrice=230000)

        by_id = client.get("/sales", params={"q": first["id"][:8]}).json()
        assert [s["id"] for s in by_id] == [first["id"]]

        by_total = client.get("/sales", params={"q": "230,000"}).json()
        assert [s["total"] for s in by_total] == [230000]

    def test_missing_profile_is_404(self, client):
        assert client.get("/profiles/nobody").status_code == 404


class TestLossesApi:
    def test_record_and_filter(self, client):
        pid = create_product(client)["id"]
        for reason in ("damaged", "stolen"):
            res = client.post("/losses", json={"productId": pid, "quantity": 1, "reason": reason, "lossValue": 380000})
            assert res.status_code == 201

        damaged = client.get("/losses", params={"reason": "damaged"}).json()
        assert len(damaged) == 1
        assert damaged[0]["product"]["name"] == "Redmi Note 13"
        # stock is not adjusted by a loss
        assert client.get(f"/products/{pid}").json()["pieces"] == 3

        assert client.delete(f"/losses/{damaged[0]['id']}").status_code == 204
        assert len(client.get("/losses").json()) == 1

    def test_loss_for_unknown_product_is_404(self, client):
        res = client.post("/losses", json={"productId": "nope", "quantity": 1, "reason": "damaged"})
        assert res.status_code == 404


class TestReportsApi:
    def test_report_and_dashboard(self, client):
        pid = create_product(client, pieces=1)["id"]
        client.post(f"/cart/lines/{pid}")
        client.post("/cart/checkout", json={"cashReceived": 450000})

        report = client.get("/reports", params={"period": "today"}).json()
        assert report["salesCount"] == 1
        assert report["revenue"] == 450000
        assert report["profit"] == 70000
        assert report["customersWithLoans"] == 0
        assert report["averageLoan"] == 0
        assert [p["id"] for p in report["lowStock"]] == [pid]

        board = client.get("/reports/dashboard").json()
        assert board["todaySales"] == 450000
        assert board["lowStockCount"] == 1

    def test_invalid_period_is_400(self, client):
        res = client.get("/reports", params={"period": "decade"})
        assert res.status_code == 400
        assert res.json()["detail"].startswith("Invalid period")


class TestChangesApi:
    def test_changes_and_snapshot(self, client):
        product = create_product(client)

        batch = client.get("/changes", params={"table": "products"}).json()
        assert batch["gap"] is False
        assert batch["lastSeq"] == 1
        events = batch["events"]
        assert events[-1]["type"] == "INSERT"
        assert events[-1]["new"]["id"] == product["id"]

        last = events[-1]["seq"]
        client.patch(f"/products/{product['id']}/stock", json={"pieces": 7})
        newer = client.get("/changes", params={"since": last}).json()["events"]
        assert [e["type"] for e in newer] == ["UPDATE"]

        rows = client.get("/snapshot/products").json()
        assert [(r["id"], r["pieces"]) for r in rows] == [(product["id"], 7)]

    def test_unknown_snapshot_table(self, client):
        assert client.get("/snapshot/secrets").status_code == 404

    def test_gap_flagged_when_history_rolled_over(self, client):
        feed = client.app.state.pos.feed
        # shrink the kept history so the first events are dropped
        feed._history = deque(maxlen=1)
        create_product(client)
        create_product(client, name="iPhone 15")

        batch = client.get("/changes", params={"since": 0}).json()
        assert batch["gap"] is True
        assert batch["oldestSeq"] == 2
        assert [e["seq"] for e in batch["events"]] == [2]


class TestCartLocking:
    def test_cart_read_takes_the_lock(self, client):
        pos = client.app.state.pos
        lock = RecordingLock()
        pos.cart_lock = lock

        assert client.get("/cart").status_code == 200
        assert lock.entered == 1


class TestStoreErrorsApi:
    def test_store_failure_returns_502_envelope(self, client, engine):
        Product.__table__.drop(engine)

        res = client.get("/products/any-id")
        assert res.status_code == 502
        assert res.json() == {"detail": "Could not read from the store"}
