"""User-facing notifications about the data stores.

The host shows these as transient toasts. Each notification carries an id
derived from the entity name (``customersLoadError``, ``productsSaveError``...)
so repeated failures of the same kind collapse into a single pending notice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    id: str
    title: str
    description: str
    variant: str = "destructive"

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "variant": self.variant,
        }


class Notifier:
    """Collects notifications until the host drains them.

    ``on_notify`` lets a host push notices out immediately as well.
    """

    def __init__(self, on_notify: Optional[Callable[[Notification], None]] = None):
        self._pending: Dict[str, Notification] = {}
        self.on_notify = on_notify

    def notify(self, notification: Notification) -> None:
        log.warning("%s: %s", notification.title, notification.description)
        if notification.id in self._pending:
            return
        self._pending[notification.id] = notification
        if self.on_notify:
            self.on_notify(notification)

    def load_error(self, entity: str, label: str) -> None:
        self.notify(Notification(
            id=f"{entity}LoadError",
            title=f"Erro ao Carregar {label}",
            description=(
                f"Não foi possível carregar os dados de {label.lower()}. "
                "Os dados podem ter sido redefinidos."
            ),
        ))

    def save_error(self, entity: str, label: str) -> None:
        self.notify(Notification(
            id=f"{entity}SaveError",
            title=f"Erro ao Salvar {label}",
            description=(
                f"Não foi possível salvar os dados de {label.lower()}. "
                "O armazenamento pode estar cheio."
            ),
        ))

    def credit_due(self, count: int) -> None:
        self.notify(Notification(
            id="creditDueToast",
            title="Lembretes de Fiado",
            description=(
                f"Você tem {count} fiado(s) vencendo hoje ou já vencido(s). "
                "Considere enviar lembretes."
            ),
            variant="default",
        ))

    @property
    def pending(self) -> List[Notification]:
        return list(self._pending.values())

    def drain(self) -> List[Notification]:
        """Return and clear the pending notifications."""
        notices = list(self._pending.values())
        self._pending.clear()
        return notices
