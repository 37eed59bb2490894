"""Per-entity accessors over :class:`~moneywise.storage.StoreAccessor`.

Each store loads the whole collection for a company, mutates it in memory,
re-sorts it and saves it back.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from moneywise.models import (
    CreditEntry,
    Customer,
    Product,
    Transaction,
    TransactionType,
    generate_id,
    utcnow,
)
from moneywise.storage import StorageError, StoreAccessor, company_key

log = logging.getLogger(__name__)

STORAGE_KEY_CUSTOMERS_BASE = "moneywise-customers"
STORAGE_KEY_PRODUCTS_BASE = "moneywise-products"
STORAGE_KEY_CREDIT_NOTEBOOK_BASE = "moneywise-creditEntries"
STORAGE_KEY_NOTEBOOK_BASE = "moneywise-transactions"
STORAGE_KEY_CREDIT_DUE_REMINDER_BASE = "moneywise-credit-due-toast-date"

T = TypeVar("T")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(get_date: Callable[[Any], Optional[datetime]]) -> Callable[[List[Any]], List[Any]]:
    # entries without a valid date go last
    return lambda items: sorted(items, key=lambda item: get_date(item) or _EPOCH, reverse=True)


def _by_name(items: List[Any]) -> List[Any]:
    return sorted(items, key=lambda item: item.name.casefold())


class EntityStore(Generic[T]):
    base_key: str
    entity: str
    label: str
    record: Type[T]
    id_prefix: str

    def __init__(self, accessor: StoreAccessor):
        self.accessor = accessor

    def sort(self, items: List[T]) -> List[T]:
        return list(items)

    def key(self, company: Optional[str]) -> Optional[str]:
        return company_key(self.base_key, company)

    def load(self, company: Optional[str]) -> List[T]:
        raw = self.accessor.load(self.key(company), [], self.entity, self.label)
        return self.sort([self.record.from_dict(item) for item in raw])  # type: ignore[attr-defined]

    def save(self, company: Optional[str], items: List[T]) -> bool:
        collection = [item.to_dict() for item in self.sort(items)]  # type: ignore[attr-defined]
        return self.accessor.save(self.key(company), collection, self.entity, self.label)

    def append(self, company: Optional[str], item: T) -> bool:
        items = self.load(company)
        items.append(item)
        return self.save(company, items)

    def new_id(self) -> str:
        return generate_id(self.id_prefix)


class CustomerStore(EntityStore[Customer]):
    base_key = STORAGE_KEY_CUSTOMERS_BASE
    entity = "customers"
    label = "Clientes"
    record = Customer
    id_prefix = "CUST"

    def sort(self, items: List[Customer]) -> List[Customer]:
        return _by_name(items)

    def find_by_name(self, company: Optional[str], name: str) -> Optional[Customer]:
        wanted = name.strip().casefold()
        return next((c for c in self.load(company) if c.name.casefold() == wanted), None)


class ProductStore(EntityStore[Product]):
    base_key = STORAGE_KEY_PRODUCTS_BASE
    entity = "products"
    label = "Produtos"
    record = Product
    id_prefix = "PROD"

    def sort(self, items: List[Product]) -> List[Product]:
        return _by_name(items)

    def find(self, company: Optional[str], identifier: str) -> Optional[Product]:
        """Match on name or code, ignoring case."""
        wanted = identifier.strip().casefold()
        for product in self.load(company):
            if product.name.casefold() == wanted or product.code.casefold() == wanted:
                return product
        return None


class TransactionStore(EntityStore[Transaction]):
    base_key = STORAGE_KEY_NOTEBOOK_BASE
    entity = "transactions"
    label = "Transações"
    record = Transaction
    id_prefix = "T"

    def sort(self, items: List[Transaction]) -> List[Transaction]:
        return _newest_first(lambda t: t.date)(items)

    def find_by_description(self, company: Optional[str], text: str) -> Optional[Transaction]:
        wanted = text.strip().casefold()
        return next((t for t in self.load(company) if wanted in t.description.casefold()), None)


class CreditEntryStore(EntityStore[CreditEntry]):
    base_key = STORAGE_KEY_CREDIT_NOTEBOOK_BASE
    entity = "creditEntries"
    label = "Fiados"
    record = CreditEntry
    id_prefix = "CF"

    def sort(self, items: List[CreditEntry]) -> List[CreditEntry]:
        return _newest_first(lambda e: e.sale_date)(items)

    def find_by_customer(self, company: Optional[str], name: str) -> Optional[CreditEntry]:
        wanted = name.strip().casefold()
        return next((e for e in self.load(company) if e.customer_name.casefold() == wanted), None)

    def get(self, company: Optional[str], entry_id: str) -> Optional[CreditEntry]:
        return next((e for e in self.load(company) if e.id == entry_id), None)

    def due_entries(self, company: Optional[str], today: Optional[date] = None) -> List[CreditEntry]:
        """Unpaid entries due today or already overdue."""
        today = today or utcnow().date()
        return [
            e for e in self.load(company)
            if not e.paid and e.due_date is not None
            and e.due_date.astimezone(timezone.utc).date() <= today
        ]

    def remind_due(self, company: Optional[str], today: Optional[date] = None) -> List[CreditEntry]:
        """Post the "Lembretes de Fiado" notice, at most once a day per company.

        Returns the due entries either way.
        """
        today = today or utcnow().date()
        due = self.due_entries(company, today)
        key = company_key(STORAGE_KEY_CREDIT_DUE_REMINDER_BASE, company)
        if not due or key is None:
            return due
        substrate = self.accessor.substrate
        if substrate.get(key) == today.isoformat():
            return due
        self.accessor.notifier.credit_due(len(due))
        try:
            substrate.set(key, today.isoformat())
        except StorageError as exc:
            log.warning("Could not record the reminder date for %r: %s", company, exc)
        return due

    def toggle_paid(self, company: Optional[str], entry_id: str,
                    transactions: TransactionStore) -> Optional[CreditEntry]:
        """Flip the paid flag of ``entry_id``.

        Marking an entry as paid also books its amount as income in the cash
        notebook. Marking it pending again leaves the notebook untouched.
        """
        entries = self.load(company)
        entry = next((e for e in entries if e.id == entry_id), None)
        if entry is None:
            return None
        entry.paid = not entry.paid
        entry.payment_date = utcnow() if entry.paid else None
        if not self.save(company, entries):
            return None
        if entry.paid:
            ref = entry.sale_date.strftime("%d/%m/%y") if entry.sale_date else "Inválida"
            income = Transaction(
                id=f"T-FIADO-{entry.id}-{transactions.new_id()[-4:]}",
                description=f"Recebimento Fiado - {entry.customer_name} (Ref Venda: {ref})",
                amount=entry.amount,
                type=TransactionType.INCOME,
            )
            if not transactions.append(company, income):
                log.warning("Entry %s marked as paid but the income was not booked", entry.id)
        return entry


class Stores:
    """The four entity stores of one persistence substrate."""

    def __init__(self, accessor: StoreAccessor):
        self.accessor = accessor
        self.customers = CustomerStore(accessor)
        self.products = ProductStore(accessor)
        self.credit_entries = CreditEntryStore(accessor)
        self.transactions = TransactionStore(accessor)

    @property
    def notifier(self):
        return self.accessor.notifier

    def snapshot(self, company: Optional[str]) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "customers": [c.to_dict() for c in self.customers.load(company)],
            "products": [p.to_dict() for p in self.products.load(company)],
            "creditEntries": [e.to_dict() for e in self.credit_entries.load(company)],
            "transactions": [t.to_dict() for t in self.transactions.load(company)],
        }
