"""HTTP surface tests using FastAPI's TestClient with dependency overrides."""

import pytest
from fastapi.testclient import TestClient

from omnisale.app import app
from omnisale.deps import get_catalog, get_customer_from_token, get_llm, get_orchestrator, get_session_store

from conftest import DownLLM, FakeCatalog, FakeSessionStore, build_orchestrator


class ExplodingOrchestrator:
    async def handle_turn(self, utterance, customer_id, channel="web"):
        raise RuntimeError("database exploded")


@pytest.fixture
def fake_store():
    store = FakeSessionStore()
    store.add_customer("C1", tier="gold")
    return store


@pytest.fixture
def client(fake_store):
    catalog = FakeCatalog()
    app.dependency_overrides[get_customer_from_token] = lambda: "C1"
    app.dependency_overrides[get_session_store] = lambda: fake_store
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_llm] = lambda: DownLLM()
    app.dependency_overrides[get_orchestrator] = lambda: build_orchestrator(fake_store, catalog=catalog)
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestOrchestratorEndpoint:
    def test_turn(self, client):
        r = client.post("/orchestrator", json={"user_query": "show me shirts", "channel": "web"})
        assert r.status_code == 200
        body = r.json()
        assert body["reply"]
        assert set(body["structured"]) == {"plan", "workerResult", "sessionContext", "channelSwitched"}
        assert body["structured"]["channelSwitched"] is False

    @pytest.mark.parametrize("payload", [{}, {"user_query": ""}, {"user_query": "   "}])
    def test_empty_query_is_400(self, client, payload):
        assert client.post("/orchestrator", json=payload).status_code == 400

    def test_unknown_customer_is_404(self, client):
        app.dependency_overrides[get_customer_from_token] = lambda: "GHOST"
        r = client.post("/orchestrator", json={"user_query": "hello"})
        assert r.status_code == 404
        assert "couldn't find your profile" in r.json()["reply"]

    def test_internal_failure_is_generic_500(self, client):
        app.dependency_overrides[get_orchestrator] = lambda: ExplodingOrchestrator()
        r = client.post("/orchestrator", json={"user_query": "hello"})
        assert r.status_code == 500
        body = r.json()
        assert body["reply"].startswith("Sorry")
        assert "database exploded" not in r.text or "trace" in body

    def test_missing_token_is_401(self, fake_store):
        app.dependency_overrides[get_orchestrator] = lambda: build_orchestrator(fake_store)
        try:
            r = TestClient(app).post("/orchestrator", json={"user_query": "hello"})
        finally:
            app.dependency_overrides.clear()
        assert r.status_code == 401


class TestCart:
    def test_add_twice_merges(self, client, fake_store):
        client.post("/cart", json={"sku": "SH-101"})
        r = client.post("/cart", json={"sku": "SH-101"})
        assert r.status_code == 200
        cart = r.json()["cart"]
        assert len(cart["items"]) == 1
        assert cart["items"][0]["qty"] == 2
        assert cart["subtotal"] == 2998.0
        assert len(fake_store.customers["C1"].snapshot.cart) == 1

    def test_get_cart(self, client):
        client.post("/cart", json={"sku": "FW-201", "qty": 2})
        body = client.get("/cart").json()
        assert body["count"] == 2
        assert body["items"][0]["name"] == "White Canvas Sneakers"

    def test_unknown_sku_is_404(self, client):
        assert client.post("/cart", json={"sku": "NOPE"}).status_code == 404

    def test_remove(self, client):
        client.post("/cart", json={"sku": "SH-101"})
        r = client.delete("/cart/SH-101")
        assert r.status_code == 200
        assert r.json()["cart"]["items"] == []
        assert client.delete("/cart/SH-101").status_code == 404

    def test_cart_edit_keeps_last_channel(self, client, fake_store):
        fake_store.customers["C1"].last_channel = "whatsapp"
        client.post("/cart", json={"sku": "SH-101"})
        assert fake_store.customers["C1"].last_channel == "whatsapp"


class TestCatalogEndpoints:
    def test_products_by_occasion(self, client):
        r = client.get("/api/products", params={"occasion": "wedding"})
        assert [p["sku"] for p in r.json()] == ["ET-301"]

    def test_products_by_category(self, client):
        r = client.get("/api/products", params={"category": "shirts"})
        assert {p["sku"] for p in r.json()} == {"SH-101", "SH-102"}

    def test_product_not_found(self, client):
        assert client.get("/api/products/NOPE").status_code == 404

    def test_inventory(self, client):
        rows = client.get("/api/inventory/SH-102").json()
        by_location = {r["location"]: r for r in rows}
        assert by_location["online_warehouse"]["fulfillmentOptions"] == ["ship_to_home"]
        assert by_location["Mumbai-Andheri"]["fulfillmentOptions"] == ["click_and_collect", "reserve_in_store"]

    def test_inventory_not_found(self, client):
        assert client.get("/api/inventory/NOPE").status_code == 404


class TestHealth:
    def test_reports_components_independently(self, client):
        body = client.get("/health").json()
        assert body == {"status": "ok", "database": "ok", "llm": "not_configured"}

    def test_database_down_is_still_200(self, client, fake_store):
        fake_store.healthy = False
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["database"] == "unreachable"
        assert r.json()["status"] == "degraded"


class TestMessagingWebhook:
    def test_first_contact_creates_bronze_customer(self, client, fake_store):
        r = client.post("/messaging-webhook", data={
            "Body": "hello", "From": "whatsapp:+919812345678", "ProfileName": "Ravi",
        })
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("application/xml")
        assert "<Response><Message>" in r.text
        customer = fake_store.customers["wa-919812345678"]
        assert customer.loyalty_tier.value == "bronze"
        assert customer.phone_number == "+919812345678"
        assert customer.name == "Ravi"
        assert customer.last_channel == "whatsapp"

    def test_known_phone_reuses_customer(self, client, fake_store):
        fake_store.add_customer("C2", phone_number="+919800000000")
        client.post("/messaging-webhook", data={"Body": "hi", "From": "whatsapp:+919800000000"})
        assert "wa-919800000000" not in fake_store.customers
        assert fake_store.customers["C2"].last_channel == "whatsapp"

    def test_reply_is_escaped(self, client, fake_store):
        fake_store.add_customer("C3", phone_number="+919811111111", name="A&B")
        r = client.post("/messaging-webhook", data={"Body": "show me <b>shirts</b>", "From": "+919811111111"})
        assert r.status_code == 200
        assert "<b>" not in r.text

    def test_failure_still_replies(self, client):
        app.dependency_overrides[get_orchestrator] = lambda: ExplodingOrchestrator()
        r = client.post("/messaging-webhook", data={"Body": "hello", "From": "+919822222222"})
        assert r.status_code == 200
        assert "Sorry" in r.text
