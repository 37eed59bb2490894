"""WhatsApp payment reminders and receipts for credit entries.

Messages are sent by opening a ``wa.me`` link, so building the link is all
there is to it.
"""

import re
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from moneywise.models import CreditEntry, utcnow

WA_ME = "https://wa.me/"
INVALID_DATE = "Data Inválida"


def _day(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else INVALID_DATE


def whatsapp_url(number: str, message: str) -> str:
    digits = re.sub(r"\D", "", number)
    # same escaping as encodeURIComponent, which wa.me expects
    text = quote(message, safe="-_.!~*'()")
    return f"{WA_ME}{digits}?text={text}"


def reminder_message(entry: CreditEntry, company_name: Optional[str] = None) -> str:
    due = f" O vencimento é/foi em {_day(entry.due_date)}." if entry.due_date else ""
    return (
        f"Olá {entry.customer_name}, gostaríamos de lembrar sobre o valor de "
        f"R${entry.amount:.2f} pendente com {company_name or 'seu estabelecimento'}, "
        f"referente à sua compra em {_day(entry.sale_date)}.{due} "
        "Por favor, entre em contato para regularizar. Obrigado!"
    )


def receipt_message(entry: CreditEntry, company_name: Optional[str] = None) -> str:
    paid_at = (entry.payment_date or utcnow()).strftime("%d/%m/%Y às %H:%M")
    notes = f"Obs. da Venda: {entry.notes}\n\n" if entry.notes else ""
    return (
        f"🧾 *Comprovante de Pagamento - {company_name or 'Sua Empresa'}*\n\n"
        f"Olá {entry.customer_name},\n"
        f"Confirmamos o recebimento de *R${entry.amount:.2f}* referente à sua compra "
        f"de {_day(entry.sale_date)}.\n\n"
        f"Pagamento confirmado em: {paid_at}\n\n"
        f"{notes}Obrigado!"
    )


def whatsapp_reminder(entry: CreditEntry, company_name: Optional[str] = None) -> Optional[str]:
    """Link that opens a payment reminder, or ``None`` without a number."""
    if not entry.whatsapp_number:
        return None
    return whatsapp_url(entry.whatsapp_number, reminder_message(entry, company_name))


def whatsapp_receipt(entry: CreditEntry, company_name: Optional[str] = None) -> Optional[str]:
    """Link that opens a payment receipt, or ``None`` without a number."""
    if not entry.whatsapp_number:
        return None
    return whatsapp_url(entry.whatsapp_number, receipt_message(entry, company_name))
