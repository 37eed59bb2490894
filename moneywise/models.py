"""Domain records for the MoneyWise stores.

Every record converts to and from the plain ``dict`` shape that is persisted
(camelCase keys, timestamps as canonical ISO-8601 UTC strings).
"""

from __future__ import annotations

import itertools
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

_message_seq = itertools.count()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """Build an id from the last six digits of the millisecond clock."""
    return f"{prefix}{str(int(time.time() * 1000))[-6:]}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; ``None`` means missing or invalid.

    Naive values are taken as UTC so that every loaded instant is comparable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _as_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        log.warning("Discarding non-numeric amount %r", value)
        return 0.0
    if not math.isfinite(number):
        log.warning("Discarding non-finite amount %r", value)
        return 0.0
    return number


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class Customer:
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Customer":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            phone=str(data.get("phone", "")),
            email=_opt_str(data.get("email")),
            address=_opt_str(data.get("address")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
        })


@dataclass
class Product:
    id: str
    name: str
    code: str
    price: float
    category: Optional[str] = None
    stock: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            code=str(data.get("code", "")),
            price=_as_float(data.get("price", 0)),
            category=_opt_str(data.get("category")),
            stock=_opt_str(data.get("stock")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "price": self.price,
            "category": self.category,
            "stock": self.stock,
        })

    def stock_level(self) -> Optional[int]:
        """Integer stock, or ``None`` when missing or non-numeric."""
        if self.stock is None:
            return None
        try:
            return int(str(self.stock).strip())
        except ValueError:
            return None


@dataclass
class CreditEntry:
    id: str
    customer_name: str
    amount: float
    sale_date: Optional[datetime] = field(default_factory=utcnow)
    due_date: Optional[datetime] = None
    whatsapp_number: Optional[str] = None
    notes: Optional[str] = None
    paid: bool = False
    payment_date: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreditEntry":
        return cls(
            id=str(data.get("id", "")),
            customer_name=str(data.get("customerName", "")),
            amount=_as_float(data.get("amount", 0)),
            sale_date=parse_timestamp(data.get("saleDate")),
            due_date=parse_timestamp(data.get("dueDate")),
            whatsapp_number=_opt_str(data.get("whatsappNumber")),
            notes=_opt_str(data.get("notes")),
            paid=bool(data.get("paid", False)),
            payment_date=parse_timestamp(data.get("paymentDate")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "customerName": self.customer_name,
            "amount": self.amount,
            # an unreadable sale date is rewritten as "now", as the ledger page does
            "saleDate": format_timestamp(self.sale_date or utcnow()),
            "dueDate": format_timestamp(self.due_date),
            "whatsappNumber": self.whatsapp_number,
            "notes": self.notes,
            "paid": self.paid,
            "paymentDate": format_timestamp(self.payment_date),
        })


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass
class Transaction:
    id: str
    description: str
    amount: float
    type: TransactionType
    date: Optional[datetime] = field(default_factory=utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        raw_type = str(data.get("type", "")).strip().lower()
        try:
            tx_type = TransactionType(raw_type)
        except ValueError:
            log.warning("Unknown transaction type %r, reading as expense", raw_type)
            tx_type = TransactionType.EXPENSE
        return cls(
            id=str(data.get("id", "")),
            description=str(data.get("description", "")),
            amount=_as_float(data.get("amount", 0)),
            type=tx_type,
            date=parse_timestamp(data.get("date")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "type": self.type.value,
            "date": format_timestamp(self.date or utcnow()),
        }


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    sender: Sender
    text: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: f"{time.time_ns()}-{next(_message_seq)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender.value,
            "text": self.text,
            "timestamp": format_timestamp(self.timestamp),
        }
