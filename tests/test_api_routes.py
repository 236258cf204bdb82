import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import settings
from main import app
from routers.dependencies import get_shopify_client
from schemas import OrderCreateResult
from services.errors import ShopifyApiError

VARIANT_CSV = (
    "order_key,email,variant_id,quantity\n"
    "1001,jane@example.com,44712345678901,2\n"
    "1001,jane@example.com,44712345678902,1\n"
    "1002,john@example.com,44712345678903,0\n"
).encode("utf-8")


class FakeShopifyClient:
    shop_domain = "test-shop.myshopify.com"

    def __init__(self, nodes=None, error=None):
        self.nodes = nodes or []
        self.error = error
        self.created = []

    async def create_order(self, order_input):
        self.created.append(order_input)
        return OrderCreateResult.success(f"gid://shopify/Order/{len(self.created)}", f"#{1000 + len(self.created)}")

    async def find_or_create_customer(self, email, first_name=None, last_name=None):
        return "gid://shopify/Customer/1"

    async def iter_order_nodes(self, query, variables=None, page_size=250, max_pages=10, on_truncated=None):
        if self.error:
            raise self.error
        for node in self.nodes:
            yield node


REPORT_NODES = [
    {
        "id": "gid://shopify/Order/1",
        "name": "#1001",
        "customer": {"displayName": "Jane Doe"},
        "fulfillments": [{"trackingInfo": [{"number": "1Z999", "company": "UPS", "url": "https://ups.example"}]}],
    },
    {"id": "gid://shopify/Order/2", "name": "#1002", "customer": {"displayName": "John Roe"}, "fulfillments": []},
]


@pytest.fixture
def fake_shopify():
    fake = FakeShopifyClient(nodes=REPORT_NODES)
    app.dependency_overrides[get_shopify_client] = lambda: fake
    yield fake
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def _upload(content=VARIANT_CSV, filename="orders.csv"):
    return {"file": (filename, content, "text/csv")}


def test_health_endpoints(client):
    assert client.get("/healthz").json() == {"ok": True}
    assert client.get("/").json()["service"] == "csv-order-importer"

    health = client.get("/api/health").json()
    assert health["profiles"] == ["variant", "gift"]
    assert "configured" in health["shopify"]


def test_responses_carry_request_id(client):
    response = client.get("/healthz", headers={"X-Request-Id": "abc-123"})

    assert response.headers["X-Request-Id"] == "abc-123"


def test_template_download(client):
    response = client.get("/api/orders/template", params={"profile": "gift"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "orders-template-gift.csv" in response.headers["content-disposition"]
    assert response.text.startswith('"first_name","last_name"')


def test_unknown_profile_is_rejected(client):
    response = client.get("/api/orders/template", params={"profile": "bulk"})

    assert response.status_code == 400
    assert "Unknown import profile" in response.json()["error"]


def test_preview_reports_orders_and_invalid_rows(client):
    response = client.post("/api/orders/preview", files=_upload(), data={"profile": "variant"})

    assert response.status_code == 200
    body = response.json()
    assert body["rowCount"] == 3
    assert body["validRowCount"] == 2
    assert len(body["orders"]) == 1
    assert body["orders"][0]["rowNumbers"] == [2, 3]
    assert body["invalidRows"][0]["rowNumber"] == 4
    assert body["invalidRows"][0]["errorMessage"] == "Row 4: quantity must be a positive integer."
    assert body["notice"] == "Loaded with 1 validation issue(s). 1 order(s) are still ready."


def test_preview_upload_rules(client, monkeypatch):
    not_csv = client.post("/api/orders/preview", files=_upload(filename="orders.xlsx"))
    empty = client.post("/api/orders/preview", files=_upload(content=b""))
    monkeypatch.setattr(settings, "MAX_CSV_SIZE_MB", 0.00001)
    too_big = client.post("/api/orders/preview", files=_upload())

    assert not_csv.status_code == 400
    assert not_csv.json()["error"] == "Please upload a .csv file."
    assert empty.status_code == 400
    assert too_big.status_code == 413


def test_preview_then_import_round_trip(client, fake_shopify):
    preview = client.post("/api/orders/preview", files=_upload()).json()
    payload = {
        "rowCount": preview["rowCount"],
        "orders": preview["orders"],
        "previewRows": preview["previewRows"],
        "invalidRows": preview["invalidRows"],
        "tags": "batch-1, batch-1",
    }

    response = client.post("/api/orders/import", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {
        "total": 3,
        "success": 2,
        "failed": 1,
        "ordersCreated": 1,
        "message": "Processed 3 rows: 2 succeeded, 1 failed.",
    }
    assert [row["status"] for row in body["results"]] == ["success", "success", "failed"]
    assert body["results"][0]["orderName"] == "#1001"
    assert body["results"][0]["orderKey"] == "1001"
    assert fake_shopify.created[0]["tags"] == ["batch-1"]


def test_import_rejects_drafts_without_line_items(client, fake_shopify):
    payload = {"orders": [{"orderKey": "1", "rowNumbers": [2], "input": {"lineItems": []}}]}

    response = client.post("/api/orders/import", json=payload)

    assert response.status_code == 422
    assert response.json()["error"] == "Validation failed"
    assert fake_shopify.created == []


def test_import_csv_in_one_call(client, fake_shopify):
    gift_csv = (
        "first_name,last_name,address,address2,city,state,zip_code\n"
        "Ada,Lovelace,1 Way,,Portland,OR,97201\n"
    ).encode("utf-8")

    response = client.post(
        "/api/orders/import-csv",
        files=_upload(content=gift_csv),
        data={"profile": "gift", "tags": "holiday|2024"},
    )

    assert response.status_code == 200
    assert response.json()["summary"]["ordersCreated"] == 1
    assert fake_shopify.created[0]["tags"] == ["holiday", "2024"]


def test_import_csv_with_structural_error(client, fake_shopify):
    response = client.post("/api/orders/import-csv", files=_upload(content=b"email\nx@y.z\n"))

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required columns: order_key, variant_id, quantity"
    assert fake_shopify.created == []


def test_missing_credentials_return_503(client, monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_SHOP_DOMAIN", "")
    monkeypatch.setattr(settings, "SHOPIFY_ACCESS_TOKEN", "")

    response = client.post("/api/report/shipping", json={"orderNumbers": "#1001"})

    assert response.status_code == 503


def test_shipping_report_with_table_filter(client, fake_shopify):
    response = client.post("/api/report/shipping", json={"orderNumbers": "#1001,#1002", "tableQuery": "roe"})

    assert response.status_code == 200
    orders = response.json()["reportOrders"]
    assert [order["name"] for order in orders] == ["#1002"]
    assert orders[0]["trackingNumbers"] == []


def test_shipping_report_remote_failure_is_502(client, fake_shopify):
    fake_shopify.error = ShopifyApiError("GraphQL request failed with status 401")

    response = client.post("/api/report/shipping", json={"searchTags": "vip"})

    assert response.status_code == 502
    assert response.json()["error"] == "GraphQL request failed with status 401"


def test_report_exports_are_csv_attachments(client, fake_shopify):
    shipping = client.post("/api/report/shipping/export", json={"orderNumbers": "#1001,#1002"})
    tracking = client.post("/api/report/tracking/export", json={"orderNumbers": "#1001,#1002"})

    assert shipping.status_code == 200
    assert "shipping-report-" in shipping.headers["content-disposition"]
    assert shipping.text.splitlines()[1] == '"#1001","Jane Doe","1Z999"'
    assert tracking.text.splitlines()[2] == '"#1002","John Roe","","",""'


def test_export_without_rows_is_404(client, fake_shopify):
    response = client.post("/api/report/tracking/export", json={"tableQuery": "nobody"})

    assert response.status_code == 404


def test_tag_suggestions(client, fake_shopify):
    fake_shopify.nodes = [{"tags": ["vip"]}, {"tags": ["vip", "gift"]}]

    response = client.get("/api/report/tag-suggestions")

    assert response.json() == {"tags": ["vip", "gift"], "warning": ""}


def test_profiles_listing(client):
    body = client.get("/api/orders/profiles").json()

    assert [profile["name"] for profile in body["profiles"]] == ["variant", "gift"]
    assert body["profiles"][1]["requiredColumns"][:3] == ["first_name", "last_name", "address"]
