import pytest

from billing import (
    build_bill_payload,
    calculate_bill,
    catalog_amounts,
    compose_product_name,
    default_configuration,
    item_shares,
    reconstruct_configuration,
    reconstruct_customer,
    reconstruct_selection,
)
from conftest import make_product, make_selection
from formatting import parse_decimal
from schemas import BillConfiguration, CustomerInfo
from settings import BillingDefaults


def inr(amount, making="12.0", gst="3.0"):
    return BillConfiguration(currency="INR", amount_inr=amount,
                             making_charges_percent=making, gst_percent=gst)


def bhd(amount, making="12.0", vat="10.0"):
    return BillConfiguration(currency="BHD", amount_bhd=amount,
                             making_charges_percent=making, vat_percent=vat)


def test_single_item_override():
    selection = make_selection((make_product(price_inr="1000.00"), 2))
    result = calculate_bill(inr("1500.00", making="10.0", gst="5.0"), selection)

    item = result.items[0]
    assert item.making_charges == "150.00"
    assert item.sgst == "41.25"
    assert item.cgst == "41.25"
    assert item.vat == "0"
    assert item.total == "1732.50"
    assert item.discount == "0"

    totals = result.totals
    assert totals.subtotal == "1500.00"
    assert totals.making_charges == "150.00"
    assert totals.gst == "82.50"
    assert totals.vat == "0.00"
    assert totals.total == "1732.50"


def test_override_is_split_by_catalog_share():
    a = make_product("a", price_inr="300")
    b = make_product("b", price_inr="100")
    result = calculate_bill(inr("800", making="0", gst="0"), make_selection((a, 1), (b, 1)))
    assert [i.total for i in result.items] == ["600.00", "200.00"]


def test_shares_partition_the_subtotal():
    selection = make_selection(
        (make_product("a", price_inr="333.33"), 3),
        (make_product("b", price_inr="123.45"), 2),
        (make_product("c", price_inr="10"), 7),
    )
    for subtotal in (0.0, 1000.0, 1234.567, 99999.99):
        assert sum(item_shares(selection, "INR", subtotal)) == pytest.approx(subtotal, abs=1e-9)


def test_zero_catalog_prices_give_zero_items():
    selection = make_selection((make_product("a", price_inr="0"), 2),
                               (make_product("b", price_inr="0.00"), 1))
    result = calculate_bill(inr("5000"), selection)
    assert [i.total for i in result.items] == ["0.00", "0.00"]
    assert [i.making_charges for i in result.items] == ["0.00", "0.00"]
    # bill totals still follow the override
    assert result.totals.subtotal == "5000.00"


def test_empty_selection():
    result = calculate_bill(inr("2500.00"), {})
    assert result.items == []
    assert result.totals.subtotal == "0.00"
    assert result.totals.total == "0.00"


def test_bhd_uses_vat_only():
    selection = make_selection((make_product(price_bhd="4.500"), 2))
    result = calculate_bill(bhd("9.000"), selection)

    item = result.items[0]
    assert item.sgst == "0"
    assert item.cgst == "0"
    # 9 + 1.08 making = 10.08, VAT 1.008
    assert item.making_charges == "1.08"
    assert item.vat == "1.01"
    assert item.total == "11.09"
    assert result.totals.gst == "0.00"
    assert result.totals.vat == "1.01"


def test_inr_never_has_vat():
    selection = make_selection((make_product("a", price_inr="1234.56"), 3),
                               (make_product("b", price_inr="99.99"), 1))
    result = calculate_bill(inr("4000", gst="3.0"), selection)
    assert all(i.vat == "0" for i in result.items)
    assert all(i.sgst == i.cgst for i in result.items)
    assert result.totals.vat == "0.00"


def test_unparsable_inputs_become_zero():
    selection = make_selection((make_product(price_inr="1000"), 1))
    result = calculate_bill(inr("not a number", making="", gst="abc"), selection)
    assert result.totals.total == "0.00"

    result = calculate_bill(inr("1000", making="", gst="abc"), selection)
    assert result.items[0].making_charges == "0.00"
    assert result.items[0].sgst == "0.00"
    assert result.totals.total == "1000.00"


def test_negative_percent_is_not_rejected():
    selection = make_selection((make_product(price_inr="1000"), 1))
    result = calculate_bill(inr("1000", making="-5", gst="0"), selection)
    assert result.totals.making_charges == "-50.00"
    assert result.totals.total == "950.00"


def test_huge_override_is_formatted_not_rejected():
    selection = make_selection((make_product(price_inr="1000"), 1))
    result = calculate_bill(inr("1e30"), selection)
    assert result.totals.subtotal == "1000000000000000019884624838656.00"
    assert float(result.totals.total) == pytest.approx(1e30 * 1.12 * 1.03)
    assert result.items[0].total == result.totals.total


def test_overflow_to_infinity_becomes_zero():
    selection = make_selection((make_product(price_inr="1000"), 1))
    result = calculate_bill(inr("1e307", making="1e5"), selection)
    assert result.totals.making_charges == "0.00"
    assert result.totals.total == "0.00"
    assert float(result.totals.subtotal) == 1e307

    # Catalog extensions that overflow leave nothing to weigh by
    selection = make_selection((make_product("a", price_inr="1e308"), 2),
                               (make_product("b", price_inr="1"), 1))
    result = calculate_bill(inr("1000"), selection)
    assert [i.total for i in result.items] == ["0.00", "0.00"]
    assert "NaN" not in result.model_dump_json()


def test_calculation_is_repeatable():
    selection = make_selection((make_product("a", price_inr="1111.11"), 3),
                               (make_product("b", price_inr="7.77"), 9))
    config = inr("3456.78", making="11.5", gst="3")
    first = calculate_bill(config, selection).model_dump_json()
    second = calculate_bill(config, selection).model_dump_json()
    assert first == second


def test_product_name_fallbacks():
    assert compose_product_name(make_product(name="Ring", product_code="R-1")) == "Ring (R-1)"
    assert compose_product_name(make_product(name="Ring", product_code=None, barcode="890")) == "Ring (890)"
    assert compose_product_name(make_product(name="Ring", product_code=None)) == "Ring (N/A)"


def test_line_item_copies_catalog_fields():
    product = make_product(price_inr="1000.00", price_bhd="4.500",
                           gross_weight="12.500", net_weight="11.800")
    item = calculate_bill(inr("1000"), make_selection((product, 1))).items[0]
    assert (item.price_inr, item.price_bhd) == ("1000.00", "4.500")
    assert (item.gross_weight, item.net_weight) == ("12.500", "11.800")
    assert item.product_id == product.id


def test_catalog_amounts_precision():
    selection = make_selection((make_product("a", price_inr="1000.5", price_bhd="4.125"), 2),
                               (make_product("b", price_inr="10", price_bhd="0.05"), 1))
    assert catalog_amounts(selection) == ("2011.00", "8.300")
    assert catalog_amounts({}) == ("0.00", "0.000")


def test_payload_mirrors_totals():
    selection = make_selection((make_product(price_inr="1000.00"), 2))
    customer = CustomerInfo(customer_name="Meena", customer_phone="9876543210")
    payload = build_bill_payload(customer, inr("1500.00", making="10.0", gst="5.0"), selection)

    assert payload.total == "1732.50"
    assert payload.paid_amount == payload.total
    assert payload.payment_method == "CASH"
    assert payload.discount == "0"
    doc = payload.model_dump(by_alias=True)
    assert doc["customerName"] == "Meena"
    assert doc["makingCharges"] == "150.00"
    assert doc["items"][0]["productName"] == "Temple Necklace (PJ-p1)"


def stored_bill(currency, subtotal, making, gst, vat, items=()):
    return {
        "id": "b1",
        "customerName": "Meena",
        "customerEmail": "meena@example.com",
        "currency": currency,
        "subtotal": subtotal,
        "makingCharges": making,
        "gst": gst,
        "vat": vat,
        "items": list(items),
    }


def test_reconstruct_percentages():
    config = reconstruct_configuration(stored_bill("INR", "1500.00", "150.00", "82.50", "0"))
    assert parse_decimal(config.making_charges_percent) == pytest.approx(10.0)
    assert parse_decimal(config.gst_percent) == pytest.approx(5.0)
    assert parse_decimal(config.vat_percent) == 0.0
    assert config.amount_inr == "1500.00"
    assert config.amount_bhd == "0.00"


def test_reconstruct_defaults_on_zero_subtotal():
    config = reconstruct_configuration(stored_bill("BHD", "0", "0", "0", "0"))
    assert config.currency == "BHD"
    assert parse_decimal(config.making_charges_percent) == 12.0
    assert parse_decimal(config.gst_percent) == 3.0
    assert parse_decimal(config.vat_percent) == 10.0


def test_reconstruct_falls_back_to_configured_rates():
    defaults = BillingDefaults(currency="BHD", making_charges_percent="15.0",
                               gst_percent="5.0", vat_percent="8.0")
    config = reconstruct_configuration(stored_bill("INR", "0", "0", "0", "0"), defaults=defaults)
    assert config.currency == "INR"
    assert parse_decimal(config.making_charges_percent) == 15.0
    assert parse_decimal(config.gst_percent) == 5.0
    assert parse_decimal(config.vat_percent) == 8.0


def test_default_configuration():
    assert default_configuration().making_charges_percent == "12.0"
    defaults = BillingDefaults(currency="BHD", vat_percent="7.5")
    config = default_configuration(defaults)
    assert config.currency == "BHD"
    assert config.vat_percent == "7.5"
    assert default_configuration(defaults, "INR").currency == "INR"


@pytest.mark.parametrize("making,gst", [("12.345", "3.0"), ("7.77", "2.9"), ("12.0", "3.0")])
def test_edit_round_trip_within_a_cent(making, gst):
    selection = make_selection((make_product("a", price_inr="456.78"), 2),
                               (make_product("b", price_inr="89.10"), 1))
    original = calculate_bill(inr("999.99", making=making, gst=gst), selection).totals
    stored = stored_bill("INR", original.subtotal, original.making_charges, original.gst, original.vat)

    again = calculate_bill(reconstruct_configuration(stored), selection).totals
    for field in ("making_charges", "gst", "vat", "total"):
        assert abs(parse_decimal(getattr(again, field)) - parse_decimal(getattr(original, field))) <= 0.01


def test_reconstruction_is_lossy():
    selection = make_selection((make_product(price_inr="999.99"), 1))
    original = calculate_bill(inr("999.99", making="12.345"), selection).totals
    stored = stored_bill("INR", original.subtotal, original.making_charges, original.gst, original.vat)
    assert parse_decimal(reconstruct_configuration(stored).making_charges_percent) != 12.345


def test_reconstruct_selection_drops_missing_products():
    catalog = [make_product("a"), make_product("b")]
    bill = stored_bill("INR", "1", "0", "0", "0", items=[
        {"productId": "a", "quantity": 3},
        {"productId": "gone", "quantity": 1},
        {"productId": "b", "quantity": 0},
    ])
    selection = reconstruct_selection(bill, catalog)
    assert list(selection) == ["a", "b"]
    assert selection["a"].quantity == 3
    assert selection["b"].quantity == 1


def test_reconstruct_customer():
    customer = reconstruct_customer(stored_bill("INR", "1", "0", "0", "0"))
    assert customer.customer_name == "Meena"
    assert customer.customer_email == "meena@example.com"
    assert customer.customer_phone == ""
