import pytest

from moneywise.intents import (
    Action,
    InvalidParameters,
    NewCreditEntry,
    NewProduct,
    parse_intent,
    parse_parameters,
)
from moneywise.models import TransactionType


@pytest.mark.parametrize("name", ["queryTotalRevenue", "QUERYTOTALREVENUE", " querytotalrevenue "])
def test_action_lookup_ignores_case(name):
    assert Action.lookup(name) is Action.QUERY_TOTAL_REVENUE


def test_action_lookup_unknown():
    assert Action.lookup("orderPizza") is None
    assert Action.lookup(None) is None


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_parameters_blank(raw):
    assert parse_parameters(raw) == {}


@pytest.mark.parametrize("raw", ["{", "[]", "42", '"x"'])
def test_parse_parameters_rejects_non_objects(raw):
    with pytest.raises(InvalidParameters):
        parse_parameters(raw)


def test_add_customer_accepts_name_alias():
    intent = parse_intent("initiateAddCustomer", {"name": " João ", "phone": 11912345678, "email": ""})
    assert intent.valid
    assert intent.params.customer_name == "João"
    assert intent.params.phone == "11912345678"
    assert intent.params.email is None


def test_credit_entry_amount_variants():
    assert parse_intent("initiateAddCreditEntry", {"customerName": "Ana", "amount": "50,90"}).params.amount == 50.9
    assert parse_intent("initiateAddCreditEntry", {"customerName": "Ana", "amount": "12.5"}).params.amount == 12.5
    for bad in (0, -3, "abc", None):
        intent = parse_intent("initiateAddCreditEntry", {"customerName": "Ana", "amount": bad})
        assert intent.missing == ["amount"]


def test_credit_entry_whatsapp_alias():
    intent = parse_intent("initiateAddCreditEntry", {"customerName": "Ana", "amount": 5, "whatsapp": "5521"})
    params: NewCreditEntry = intent.params
    assert params.whatsapp_number == "5521"
    assert params.due_date is None


def test_transaction_type_normalised():
    intent = parse_intent("initiateAddTransaction", {"description": "x", "amount": 1, "type": "EXPENSE"})
    assert intent.params.type is TransactionType.EXPENSE


def test_missing_fields_in_declaration_order():
    intent = parse_intent("initiateAddProduct", {"category": "Roupas"})
    assert intent.missing == ["productName", "productCode", "price"]
    assert not intent.valid


def test_product_aliases():
    intent = parse_intent("initiateAddProduct", {"name": "Camisa", "code": "C1", "productPrice": "0"})
    params: NewProduct = intent.params
    assert (params.product_name, params.product_code, params.price) == ("Camisa", "C1", 0)


def test_product_reference_needs_name_or_code():
    assert parse_intent("initiateDeleteProduct", {}).missing == ["productName"]
    assert parse_intent("initiateDeleteProduct", {"productCode": "C1"}).params.identifier == "C1"


def test_blank_required_string_is_missing():
    assert parse_intent("initiateEditCustomer", {"customerName": "   "}).missing == ["customerName"]


def test_actions_without_parameters():
    intent = parse_intent("navigateToDashboard", {"ignored": True})
    assert intent.action is Action.NAVIGATE_TO_DASHBOARD
    assert intent.params is None
    assert intent.valid


def test_unknown_action_not_recognized():
    intent = parse_intent("makeCoffee", {})
    assert not intent.recognized
    assert intent.raw_action == "makeCoffee"


def test_malformed_optional_fields_are_ignored():
    intent = parse_intent("initiateAddCustomer", {
        "customerName": "Ana", "phone": "1199", "email": ["ana@exemplo.com"], "address": {"rua": "A"}})
    assert intent.valid
    assert intent.params.email is None
    assert intent.params.address is None


def test_malformed_optional_credit_fields_keep_the_entry():
    intent = parse_intent("initiateAddCreditEntry", {
        "customerName": "Ana", "amount": 10, "dueDate": True, "notes": ["fiado"], "whatsapp": 5521912345678})
    assert intent.valid
    assert intent.params.due_date is None
    assert intent.params.notes is None
    assert intent.params.whatsapp_number == "5521912345678"


def test_non_finite_stock_is_ignored():
    intent = parse_intent("initiateAddProduct", {"productName": "Bolo", "productCode": "B1", "price": 5,
                                                 "stock": float("inf")})
    assert intent.valid
    assert intent.params.stock is None


def test_non_finite_amount_is_missing():
    assert parse_intent("initiateAddCreditEntry", {"customerName": "Ana", "amount": float("nan")}).missing == ["amount"]
