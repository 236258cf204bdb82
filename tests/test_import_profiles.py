import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.csv_tokenizer import parse_csv_rows
from services.errors import UnknownImportProfileError
from services.import_profiles import PROFILE_NAMES, get_import_profile, gift_profile
from services.row_validator import validate_rows


def test_known_profiles_resolve_case_insensitively():
    assert PROFILE_NAMES == ("variant", "gift")
    assert get_import_profile("Variant").name == "variant"
    assert get_import_profile(" gift ").name == "gift"


def test_unknown_profile_lists_choices():
    with pytest.raises(UnknownImportProfileError) as exc_info:
        get_import_profile("bulk")

    assert "variant, gift" in str(exc_info.value)


@pytest.mark.parametrize("name", PROFILE_NAMES)
def test_example_template_validates_cleanly(name):
    profile = get_import_profile(name)

    result = validate_rows(profile.example_csv(), profile)

    assert not result.fatal
    assert result.invalid_rows == []
    assert len(result.valid_rows) == len(profile.example_rows)


def test_template_header_lists_required_then_optional_columns():
    profile = get_import_profile("variant")

    header = parse_csv_rows(profile.example_csv())[0]

    assert header[:4] == ["order_key", "email", "variant_id", "quantity"]
    assert header == profile.template_columns


def test_gift_placeholder_line_uses_overrides():
    profile = gift_profile(
        country_code="ca",
        line_title="Holiday Box",
        line_price="12.50",
        line_currency="cad",
        line_quantity=2,
    )
    csv_text = (
        "first_name,last_name,address,address2,city,state,zip_code,email,tags\n"
        "Ada,Lovelace,12 Way,Unit 4,Toronto,ON,M5V 2T6,ada@example.com,vip|gift\n"
    )

    row = validate_rows(csv_text, profile).valid_rows[0]

    assert row.line_item == {
        "title": "Holiday Box",
        "quantity": 2,
        "requiresShipping": True,
        "priceSet": {"shopMoney": {"amount": "12.50", "currencyCode": "CAD"}},
    }
    assert row.shipping_address["countryCode"] == "CA"
    assert row.shipping_address["address2"] == "Unit 4"
    assert row.email == "ada@example.com"
    assert row.tags == ["vip", "gift"]


def test_gift_row_country_code_column_wins():
    csv_text = (
        "first_name,last_name,address,address2,city,state,zip_code,country_code\n"
        "Ada,Lovelace,12 Way,,London,LDN,N1 9GU,gb\n"
    )

    row = validate_rows(csv_text, gift_profile(country_code="US")).valid_rows[0]

    assert row.shipping_address["countryCode"] == "GB"
