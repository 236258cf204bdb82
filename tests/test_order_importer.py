import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from schemas import OrderCreateResult
from services.errors import ShopifyApiError
from services.import_profiles import get_import_profile
from services.order_importer import OrderImporter, parse_csv_to_orders

EXAMPLE_CSV = "\n".join([
    "order_key,email,variant_id,quantity,tags",
    "1001,jane@example.com,44712345678901,2,wholesale",
    "1001,jane@example.com,gid://shopify/ProductVariant/44712345678902,1,",
])


class FakeShopifyClient:
    """Records orderCreate inputs; ``failures`` maps call number -> error message."""

    shop_domain = "test-shop.myshopify.com"

    def __init__(self, failures=None, customer_error=None):
        self.failures = failures or {}
        self.customer_error = customer_error
        self.created = []
        self.customer_lookups = []

    async def create_order(self, order_input):
        self.created.append(order_input)
        call = len(self.created)
        if call in self.failures:
            return OrderCreateResult.failure(self.failures[call])
        return OrderCreateResult.success(f"gid://shopify/Order/{call}", f"#{1000 + call}")

    async def find_or_create_customer(self, email, first_name=None, last_name=None):
        self.customer_lookups.append((email, first_name, last_name))
        if self.customer_error:
            raise self.customer_error
        return "gid://shopify/Customer/77"


def test_two_row_example_becomes_one_order():
    parsed = parse_csv_to_orders(EXAMPLE_CSV, get_import_profile("variant"))

    assert len(parsed.orders) == 1
    assert parsed.orders[0].line_item_count == 2
    assert parsed.invalid_rows == []
    assert parsed.notice == ""
    assert parsed.orders[0].input["lineItems"][0]["variantId"] == "gid://shopify/ProductVariant/44712345678901"


def test_third_row_with_new_key_and_email_adds_second_order():
    csv_text = EXAMPLE_CSV + "\n1002,john@example.com,44712345678903,1,"

    parsed = parse_csv_to_orders(csv_text, get_import_profile("variant"))

    assert [draft.order_key for draft in parsed.orders] == ["1001", "1002"]
    assert parsed.orders[1].email == "john@example.com"


def test_invalid_and_conflicting_rows_are_merged_in_row_order():
    csv_text = "\n".join([
        "order_key,email,variant_id,quantity",
        "1001,jane@example.com,1,1",
        "1001,other@example.com,2,1",
        "1002,john@example.com,3,abc",
    ])

    parsed = parse_csv_to_orders(csv_text, get_import_profile("variant"))

    assert [row.row_number for row in parsed.invalid_rows] == [3, 4]
    assert parsed.valid_row_count == 1
    assert parsed.notice == "Loaded with 2 validation issue(s). 1 order(s) are still ready."


def test_fatal_upload_returns_only_the_error():
    parsed = parse_csv_to_orders("email\nx@y.z\n", get_import_profile("variant"))

    assert parsed.orders == []
    assert parsed.preview_rows == []
    assert parsed.notice == "Missing required columns: order_key, variant_id, quantity"


def test_submit_fans_results_out_to_every_row():
    csv_text = "\n".join([
        "order_key,email,variant_id,quantity",
        "2002,b@example.com,1,1",
        "1001,a@example.com,2,1",
        "2002,b@example.com,3,1",
        "3003,c@example.com,4,0",
    ])
    parsed = parse_csv_to_orders(csv_text, get_import_profile("variant"))
    client = FakeShopifyClient(failures={2: "Variant is out of stock"})

    outcome = asyncio.run(OrderImporter(client, "email").submit_parse_result(parsed))

    assert len(client.created) == 2
    assert [result.row_number for result in outcome.results] == [2, 3, 4, 5]
    statuses = {result.row_number: result.status for result in outcome.results}
    assert statuses == {2: "success", 3: "failed", 4: "success", 5: "failed"}
    assert outcome.results[0].order_name == "#1001"
    assert outcome.results[1].error_message == "Variant is out of stock"
    assert outcome.results[3].error_message == "Row 5: quantity must be a positive integer."

    summary = outcome.summary
    assert (summary.total, summary.success, summary.failed, summary.orders_created) == (4, 2, 2, 1)
    assert summary.message == "Processed 4 rows: 2 succeeded, 2 failed."


def test_form_tags_are_merged_after_csv_tags():
    parsed = parse_csv_to_orders(EXAMPLE_CSV, get_import_profile("variant"))
    client = FakeShopifyClient()

    outcome = asyncio.run(
        OrderImporter(client, "email").submit_parse_result(parsed, tags=["batch-7", "wholesale"])
    )

    assert client.created[0]["tags"] == ["wholesale", "batch-7"]
    assert "customer" not in client.created[0]
    assert outcome.summary.message == "Processed 2 rows and created 1 orders."


def test_customer_linkage_associates_customer():
    parsed = parse_csv_to_orders(EXAMPLE_CSV, get_import_profile("variant"))
    client = FakeShopifyClient()

    asyncio.run(OrderImporter(client, "customer").submit_parse_result(parsed))

    assert client.customer_lookups == [("jane@example.com", None, None)]
    assert client.created[0]["customer"] == {"toAssociate": {"id": "gid://shopify/Customer/77"}}


def test_customer_lookup_failure_fails_only_that_order():
    parsed = parse_csv_to_orders(EXAMPLE_CSV, get_import_profile("variant"))
    client = FakeShopifyClient(customer_error=ShopifyApiError("Access denied for customers"))

    outcome = asyncio.run(OrderImporter(client, "customer").submit_parse_result(parsed))

    assert client.created == []
    assert [result.status for result in outcome.results] == ["failed", "failed"]
    assert outcome.results[0].error_message == "Customer lookup failed: Access denied for customers"


def test_gift_import_creates_one_order_per_address():
    csv_text = "\n".join([
        "first_name,last_name,address,address2,city,state,zip_code",
        "Ada,Lovelace,1 Way,,Portland,OR,97201",
        "Alan,Turing,2 Way,Apt 9,Portland,OR,97201",
    ])
    parsed = parse_csv_to_orders(csv_text, get_import_profile("gift"))
    client = FakeShopifyClient()

    outcome = asyncio.run(OrderImporter(client, "email").submit_parse_result(parsed))

    assert outcome.summary.orders_created == 2
    assert "email" not in client.created[0]
    assert client.created[1]["shippingAddress"]["address2"] == "Apt 9"
    assert client.created[0]["lineItems"][0]["requiresShipping"] is True


def test_unknown_linkage_falls_back_to_a_known_mode():
    importer = OrderImporter(FakeShopifyClient(), "carrier-pigeon")

    assert importer.linkage in ("email", "customer")


def test_oversized_note_still_yields_an_order():
    csv_text = "order_key,email,variant_id,quantity,note\n1001,a@b.co,1,1," + "x" * 200_000

    parsed = parse_csv_to_orders(csv_text, get_import_profile("variant"))

    assert parsed.errors == []
    assert len(parsed.orders) == 1
    assert len(parsed.orders[0].input["note"]) == 200_000


def test_unexpected_customer_error_does_not_stop_later_drafts():
    csv_text = EXAMPLE_CSV + "\n1002,john@example.com,44712345678903,1,"
    parsed = parse_csv_to_orders(csv_text, get_import_profile("variant"))
    client = FakeShopifyClient(customer_error=RuntimeError("connection reset"))

    outcome = asyncio.run(OrderImporter(client, "customer").submit_parse_result(parsed))

    assert [lookup[0] for lookup in client.customer_lookups] == ["jane@example.com", "john@example.com"]
    assert [result.status for result in outcome.results] == ["failed", "failed", "failed"]
    assert outcome.results[2].error_message == "Customer lookup failed: connection reset"
