import json
from datetime import date, datetime, timedelta, timezone

from moneywise.models import CreditEntry, Customer, Product, Transaction, TransactionType

COMPANY = "Acme"


def at(day):
    return datetime(2025, 1, day, 12, 0, tzinfo=timezone.utc)


def test_customers_sorted_by_name_ignoring_case(stores):
    stores.customers.save(COMPANY, [
        Customer(id="1", name="carla", phone="1"),
        Customer(id="2", name="Ana", phone="1"),
        Customer(id="3", name="Bruno", phone="1"),
    ])
    assert [c.name for c in stores.customers.load(COMPANY)] == ["Ana", "Bruno", "carla"]


def test_equal_names_keep_their_order(stores):
    stores.customers.save(COMPANY, [
        Customer(id="first", name="Ana", phone="1"),
        Customer(id="second", name="ana", phone="2"),
    ])
    assert [c.id for c in stores.customers.load(COMPANY)] == ["first", "second"]


def test_transactions_newest_first_invalid_dates_last(stores, substrate):
    key = stores.transactions.key(COMPANY)
    substrate.set(key, json.dumps([
        {"id": "old", "description": "a", "amount": 1, "type": "income", "date": "2025-01-01T00:00:00+00:00"},
        {"id": "bad", "description": "b", "amount": 1, "type": "income", "date": "not a date"},
        {"id": "new", "description": "c", "amount": 1, "type": "expense", "date": "2025-03-01T00:00:00"},
    ]))
    transactions = stores.transactions.load(COMPANY)
    assert [t.id for t in transactions] == ["new", "old", "bad"]
    assert transactions[0].date.tzinfo is not None
    assert transactions[2].date is None


def test_saved_timestamps_are_canonical_utc(stores, substrate):
    local = timezone(timedelta(hours=-3))
    stores.transactions.append(COMPANY, Transaction(
        id="T1", description="Venda", amount=10, type=TransactionType.INCOME,
        date=datetime(2025, 1, 10, 9, 0, tzinfo=local)))
    raw = json.loads(substrate.get(stores.transactions.key(COMPANY)))
    assert raw[0]["date"] == "2025-01-10T12:00:00.000000+00:00"
    assert raw[0]["type"] == "income"


def test_credit_entries_newest_first(stores):
    stores.credit_entries.save(COMPANY, [
        CreditEntry(id="a", customer_name="Ana", amount=1, sale_date=at(2)),
        CreditEntry(id="b", customer_name="Bia", amount=1, sale_date=at(9)),
        CreditEntry(id="c", customer_name="Caio", amount=1, sale_date=at(5)),
    ])
    assert [e.id for e in stores.credit_entries.load(COMPANY)] == ["b", "c", "a"]


def test_credit_entry_persisted_with_camel_case_keys(stores, substrate):
    stores.credit_entries.append(COMPANY, CreditEntry(
        id="CF1", customer_name="Maria", amount=50, sale_date=at(3), whatsapp_number="5521900000000"))
    raw = json.loads(substrate.get(stores.credit_entries.key(COMPANY)))[0]
    assert raw["customerName"] == "Maria"
    assert raw["whatsappNumber"] == "5521900000000"
    assert raw["paid"] is False
    assert "dueDate" not in raw


def test_product_find_by_name_or_code(stores):
    stores.products.append(COMPANY, Product(id="P1", name="Camisa P", code="CP001", price=50))
    assert stores.products.find(COMPANY, "camisa p").id == "P1"
    assert stores.products.find(COMPANY, " CP001 ").id == "P1"
    assert stores.products.find(COMPANY, "Calça") is None


def test_non_numeric_fields_load_leniently(stores, substrate):
    substrate.set(stores.products.key(COMPANY), json.dumps([
        {"id": "P1", "name": "Bolo", "code": "B1", "price": "caro", "stock": 3},
    ]))
    product = stores.products.load(COMPANY)[0]
    assert product.price == 0.0
    assert product.stock == "3"
    assert product.stock_level() == 3


def test_new_ids_use_prefix(stores):
    assert stores.customers.new_id().startswith("CUST")
    assert stores.products.new_id().startswith("PROD")
    assert stores.credit_entries.new_id().startswith("CF")
    assert stores.transactions.new_id().startswith("T")
    assert len(stores.customers.new_id()) == len("CUST") + 6


def test_toggle_paid_books_income(stores):
    stores.credit_entries.append(COMPANY, CreditEntry(
        id="CF1", customer_name="Maria", amount=50, sale_date=at(7)))

    entry = stores.credit_entries.toggle_paid(COMPANY, "CF1", stores.transactions)
    assert entry.paid is True
    assert entry.payment_date is not None
    transactions = stores.transactions.load(COMPANY)
    assert len(transactions) == 1
    income = transactions[0]
    assert income.type is TransactionType.INCOME
    assert income.amount == 50
    assert income.description == "Recebimento Fiado - Maria (Ref Venda: 07/01/25)"
    assert income.id.startswith("T-FIADO-CF1-")

    entry = stores.credit_entries.toggle_paid(COMPANY, "CF1", stores.transactions)
    assert entry.paid is False
    assert entry.payment_date is None
    assert len(stores.transactions.load(COMPANY)) == 1
    assert stores.credit_entries.load(COMPANY)[0].paid is False


def test_toggle_paid_unknown_entry(stores):
    assert stores.credit_entries.toggle_paid(COMPANY, "nope", stores.transactions) is None
    assert stores.transactions.load(COMPANY) == []


def test_snapshot(stores):
    stores.customers.append(COMPANY, Customer(id="C1", name="Ana", phone="1"))
    snapshot = stores.snapshot(COMPANY)
    assert snapshot["customers"] == [{"id": "C1", "name": "Ana", "phone": "1"}]
    assert snapshot["products"] == []
    assert snapshot["creditEntries"] == []
    assert snapshot["transactions"] == []


def test_due_entries_today_or_overdue(stores):
    today = date(2025, 1, 10)
    stores.credit_entries.save(COMPANY, [
        CreditEntry(id="past", customer_name="Ana", amount=1, sale_date=at(1), due_date=at(5)),
        CreditEntry(id="today", customer_name="Bia", amount=1, sale_date=at(2), due_date=at(10)),
        CreditEntry(id="later", customer_name="Caio", amount=1, sale_date=at(3), due_date=at(20)),
        CreditEntry(id="paid", customer_name="Dora", amount=1, sale_date=at(4), due_date=at(5), paid=True),
        CreditEntry(id="no-due", customer_name="Edu", amount=1, sale_date=at(6)),
    ])
    assert sorted(e.id for e in stores.credit_entries.due_entries(COMPANY, today)) == ["past", "today"]


def test_due_reminder_posted_once_a_day(stores, substrate):
    stores.credit_entries.append(COMPANY, CreditEntry(
        id="CF1", customer_name="Ana", amount=20, sale_date=at(1), due_date=at(5)))

    assert len(stores.credit_entries.remind_due(COMPANY, date(2025, 1, 10))) == 1
    notices = stores.notifier.drain()
    assert [n.id for n in notices] == ["creditDueToast"]
    assert notices[0].title == "Lembretes de Fiado"
    assert "1 fiado(s)" in notices[0].description
    assert substrate.get("moneywise-credit-due-toast-date_Acme") == "2025-01-10"

    assert len(stores.credit_entries.remind_due(COMPANY, date(2025, 1, 10))) == 1
    assert stores.notifier.drain() == []

    stores.credit_entries.remind_due(COMPANY, date(2025, 1, 11))
    assert [n.id for n in stores.notifier.drain()] == ["creditDueToast"]


def test_no_reminder_without_due_entries(stores, substrate):
    stores.credit_entries.append(COMPANY, CreditEntry(id="CF1", customer_name="Ana", amount=20))
    assert stores.credit_entries.remind_due(COMPANY, date(2025, 1, 10)) == []
    assert stores.notifier.pending == []
    assert "moneywise-credit-due-toast-date_Acme" not in substrate


def test_get_credit_entry_by_id(stores):
    stores.credit_entries.append(COMPANY, CreditEntry(id="CF1", customer_name="Ana", amount=20))
    assert stores.credit_entries.get(COMPANY, "CF1").customer_name == "Ana"
    assert stores.credit_entries.get(COMPANY, "CF2") is None
