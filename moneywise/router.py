"""Command router for the MoneyWise assistant.

Maps intent actions (as extracted by the language model) to handler
callables. Handlers return a :class:`CommandResult`: the text that is shown in
the chat (and spoken back to the user) plus an optional page the host should
navigate to.

Removal and editing are never carried out from a voice or text command. The
router only confirms whether the record exists and sends the user to the page
where the change can be completed by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from moneywise.config import LOW_STOCK_THRESHOLD
from moneywise.intents import (
    Action,
    CustomerRef,
    Intent,
    InvalidParameters,
    NewCreditEntry,
    NewCustomer,
    NewProduct,
    NewTransaction,
    ProductRef,
    ReportRequest,
    TransactionRef,
    parse_intent,
    parse_parameters,
)
from moneywise.models import (
    CreditEntry,
    Customer,
    Product,
    Transaction,
    TransactionType,
    parse_timestamp,
)
from moneywise.stores import Stores

log = logging.getLogger(__name__)

Handler = Callable[[str, Intent], "CommandResult"]


@dataclass
class CommandResult:
    message: str
    navigate_to: Optional[str] = None


@dataclass(frozen=True)
class Page:
    path: str
    name: str


DASHBOARD = Page("/dashboard", "Painel Central")
NOTEBOOK = Page("/dashboard/notebook", "Caderneta Digital")
CUSTOMERS = Page("/dashboard/customers", "Contas de Clientes")
SALES = Page("/dashboard/sales", "Vendas")
PRODUCTS = Page("/dashboard/products", "Produtos")
CREDIT_NOTEBOOK = Page("/dashboard/credit-notebook", "Caderneta de Fiados")
SALES_RECORD = Page("/dashboard/sales-record", "Registro de Vendas")
MONTHLY_REPORT = Page("/dashboard/monthly-report", "Relatório Mensal")
SETTINGS = Page("/dashboard/settings", "Configurações")

NOT_LOGGED_IN = "Por favor, faça login para que eu possa acessar os dados da sua empresa."
BAD_PARAMETERS = (
    "Desculpe, não consegui entender os detalhes do seu comando. "
    "Pode repetir de outra forma?"
)
CLARIFICATION = (
    "Desculpe, não entendi o seu comando. Você pode tentar, por exemplo: "
    "'Qual minha receita total?', 'Abrir caderneta de fiados', "
    "'Adicionar cliente João Silva telefone (11) 91234-5678' ou "
    "'Registrar fiado para Maria de 50 reais'."
)
GENERIC_ERROR = "Desculpe, ocorreu um erro ao processar o seu comando. Tente novamente."

FIELD_LABELS = {
    "customerName": "o nome do cliente",
    "phone": "o telefone",
    "amount": "o valor",
    "description": "a descrição",
    "type": "o tipo (receita ou despesa)",
    "productName": "o nome ou o código do produto",
    "productCode": "o código do produto",
    "price": "o preço",
}


@dataclass(frozen=True)
class Guidance:
    purpose: str
    example: str


GUIDANCE: Dict[Action, Guidance] = {
    Action.ADD_CUSTOMER: Guidance(
        "adicionar um cliente",
        "Adicionar cliente João Silva telefone (11) 91234-5678"),
    Action.ADD_CREDIT_ENTRY: Guidance(
        "registrar um fiado",
        "Registrar fiado para Maria de 50 reais vencendo em 2025-01-15"),
    Action.ADD_TRANSACTION: Guidance(
        "lançar uma transação",
        "Lançar receita venda de bolo 35 reais"),
    Action.ADD_PRODUCT: Guidance(
        "cadastrar um produto",
        "Cadastrar produto Camisa P código CP001 preço 50"),
    Action.EDIT_CUSTOMER: Guidance("editar um cliente", "Editar cliente João Silva"),
    Action.DELETE_CUSTOMER: Guidance("excluir um cliente", "Excluir cliente João Silva"),
    Action.EDIT_PRODUCT: Guidance("editar um produto", "Editar produto CP001"),
    Action.DELETE_PRODUCT: Guidance("excluir um produto", "Excluir produto Camisa P"),
    Action.EDIT_TRANSACTION: Guidance("editar uma transação", "Editar lançamento venda de bolo"),
    Action.DELETE_TRANSACTION: Guidance("excluir uma transação", "Apagar lançamento venda de bolo"),
    Action.EDIT_CREDIT_ENTRY: Guidance("editar um fiado", "Editar fiado de Maria"),
    Action.DELETE_CREDIT_ENTRY: Guidance("excluir um fiado", "Excluir fiado de Maria"),
}


def brl(value: float) -> str:
    return f"R$ {value:.2f}"


def join_pt(items: List[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return f"{', '.join(items[:-1])} e {items[-1]}"


def plural(count: int, singular: str, many: str) -> str:
    return f"{count} {singular if count == 1 else many}"


def missing_fields_message(action: Action, missing: List[str]) -> str:
    guidance = GUIDANCE.get(action, Guidance("executar esse comando", ""))
    fields = join_pt([FIELD_LABELS.get(name, name) for name in missing])
    message = f"Para {guidance.purpose}, preciso que você informe {fields}."
    if guidance.example:
        message += f" Por exemplo: '{guidance.example}'."
    return message


class CommandRouter:
    """Resolve an intent to a handler and run it for one company.

    ``navigate`` is called with the target path whenever a command asks the
    host to change page.
    """

    def __init__(self, stores: Stores, navigate: Optional[Callable[[str], None]] = None,
                 low_stock_threshold: int = LOW_STOCK_THRESHOLD):
        self.stores = stores
        self.navigate = navigate
        self.low_stock_threshold = low_stock_threshold
        self.handlers: Dict[str, Handler] = {}
        self.fallbacks: Dict[str, str] = {}
        self._register_defaults()

    def register(self, action: str, handler: Handler, fallback: Optional[str] = None) -> None:
        """Register a handler for an action name (matched ignoring case).

        ``fallback`` is the message returned if the handler raises.
        """
        self.handlers[action.lower()] = handler
        if fallback:
            self.fallbacks[action.lower()] = fallback

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def execute(self, company: Optional[str], action: str,
                parameters_json: Optional[str] = None) -> str:
        result = self.dispatch(company, action, parameters_json)
        if result.navigate_to and self.navigate:
            try:
                self.navigate(result.navigate_to)
            except Exception:
                log.exception("Host navigation to %s failed", result.navigate_to)
        return result.message

    def dispatch(self, company: Optional[str], action: str,
                 parameters_json: Optional[str] = None) -> CommandResult:
        if not company or not company.strip():
            return CommandResult(NOT_LOGGED_IN)
        try:
            parameters = parse_parameters(parameters_json)
        except InvalidParameters as exc:
            log.warning("Unparsable parameters for %r: %s", action, exc)
            return CommandResult(BAD_PARAMETERS)

        key = (action or "").strip().lower()
        try:
            intent = parse_intent(action, parameters)
        except Exception:
            log.exception("Could not interpret parameters for %r", action)
            return CommandResult(BAD_PARAMETERS)
        if intent.missing:
            log.info("Action %s missing %s", action, intent.missing)
            return CommandResult(missing_fields_message(intent.action, intent.missing))

        handler = self.handlers.get(key)
        if handler is None:
            return CommandResult(f"Ação '{action}' recebida, mas ainda não foi implementada.")
        log.info("Executing %s for company %r", action, company)
        try:
            return handler(company, intent)
        except Exception:
            log.exception("Handler for %s failed", action)
            return CommandResult(self.fallbacks.get(key, GENERIC_ERROR))

    # ------------------------------------------------------------------
    # Handler table
    # ------------------------------------------------------------------
    def _register_defaults(self) -> None:
        for action, page, message in (
            (Action.NAVIGATE_TO_DASHBOARD, DASHBOARD, "Abrindo o Painel Central."),
            (Action.NAVIGATE_TO_NOTEBOOK, NOTEBOOK, "Abrindo a Caderneta Digital."),
            (Action.NAVIGATE_TO_CUSTOMERS, CUSTOMERS, "Abrindo as Contas de Clientes."),
            (Action.GO_TO_CUSTOMER_ACCOUNTS, CUSTOMERS, "Abrindo as Contas de Clientes."),
            (Action.NAVIGATE_TO_SALES, SALES, "Abrindo o Ponto de Venda."),
            (Action.NAVIGATE_TO_PRODUCTS, PRODUCTS, "Abrindo o catálogo de Produtos."),
            (Action.NAVIGATE_TO_CREDIT_NOTEBOOK, CREDIT_NOTEBOOK, "Abrindo a Caderneta de Fiados."),
            (Action.NAVIGATE_TO_SALES_RECORD, SALES_RECORD, "Abrindo o Registro de Vendas."),
            (Action.SHOW_SALES, SALES_RECORD, "Abrindo o Registro de Vendas."),
            (Action.NAVIGATE_TO_MONTHLY_REPORT, MONTHLY_REPORT, "Abrindo o Relatório Mensal."),
            (Action.NAVIGATE_TO_SETTINGS, SETTINGS, "Abrindo as Configurações."),
            (Action.DISPLAY_KPIS, DASHBOARD,
             "Seus principais indicadores estão no Painel Central. Abrindo agora."),
        ):
            self.register(action.value, self._navigation(page, message))

        self.register(
            Action.QUERY_TOTAL_REVENUE.value, self.total_revenue,
            "Desculpe, não consegui calcular a receita total agora. "
            "Confira os lançamentos na Caderneta Digital.")
        self.register(
            Action.QUERY_TOTAL_CUSTOMERS.value, self.total_customers,
            "Desculpe, não consegui contar seus clientes agora. "
            "Confira a lista em Contas de Clientes.")
        self.register(
            Action.QUERY_TOTAL_DUE_FIADOS.value, self.total_due_fiados,
            "Desculpe, não consegui calcular o total de fiados agora. "
            "Confira os valores na Caderneta de Fiados.")
        self.register(
            Action.QUERY_PENDING_FIADOS_COUNT.value, self.pending_fiados_count,
            "Desculpe, não consegui contar os fiados pendentes agora. "
            "Confira a Caderneta de Fiados.")
        self.register(
            Action.QUERY_LOW_STOCK_PRODUCTS_COUNT.value, self.low_stock_count,
            "Desculpe, não consegui verificar o estoque agora. "
            "Confira o catálogo de Produtos.")

        for action, handler, page in (
            (Action.ADD_CUSTOMER, self.add_customer, CUSTOMERS),
            (Action.ADD_CREDIT_ENTRY, self.add_credit_entry, CREDIT_NOTEBOOK),
            (Action.ADD_TRANSACTION, self.add_transaction, NOTEBOOK),
            (Action.ADD_PRODUCT, self.add_product, PRODUCTS),
        ):
            self.register(
                action.value, handler,
                f"Desculpe, ocorreu um erro ao salvar. Tente adicionar manualmente na página {page.name}.")

        for action, handler, page in (
            (Action.EDIT_CUSTOMER, self.locate_customer, CUSTOMERS),
            (Action.DELETE_CUSTOMER, self.locate_customer, CUSTOMERS),
            (Action.EDIT_PRODUCT, self.locate_product, PRODUCTS),
            (Action.DELETE_PRODUCT, self.locate_product, PRODUCTS),
            (Action.EDIT_TRANSACTION, self.locate_transaction, NOTEBOOK),
            (Action.DELETE_TRANSACTION, self.locate_transaction, NOTEBOOK),
            (Action.EDIT_CREDIT_ENTRY, self.locate_credit_entry, CREDIT_NOTEBOOK),
            (Action.DELETE_CREDIT_ENTRY, self.locate_credit_entry, CREDIT_NOTEBOOK),
        ):
            self.register(
                action.value, handler,
                f"Desculpe, não consegui fazer a busca agora. Procure diretamente na página {page.name}.")

        self.register(Action.SEND_MONTHLY_REPORT.value, self.send_monthly_report)
        self.register(Action.UNKNOWN.value, self._clarify)
        self.register(Action.UNKNOWN_COMMAND.value, self._clarify)

    @staticmethod
    def _navigation(page: Page, message: str) -> Handler:
        def handler(company: str, intent: Intent) -> CommandResult:
            return CommandResult(message, page.path)
        return handler

    @staticmethod
    def _clarify(company: str, intent: Intent) -> CommandResult:
        return CommandResult(CLARIFICATION)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def total_revenue(self, company: str, intent: Intent) -> CommandResult:
        total = sum(
            t.amount for t in self.stores.transactions.load(company)
            if t.type is TransactionType.INCOME and t.date is not None
        )
        return CommandResult(f"Sua receita total é de {brl(total)}.")

    def total_customers(self, company: str, intent: Intent) -> CommandResult:
        count = len(self.stores.customers.load(company))
        return CommandResult(
            f"Você tem {plural(count, 'cliente cadastrado', 'clientes cadastrados')}.")

    def _pending_entries(self, company: str) -> List[CreditEntry]:
        # entries whose sale date could not be read are left out of both queries
        return [e for e in self.stores.credit_entries.load(company)
                if not e.paid and e.sale_date is not None]

    def total_due_fiados(self, company: str, intent: Intent) -> CommandResult:
        total = sum(e.amount for e in self._pending_entries(company))
        return CommandResult(f"O total a receber de fiados pendentes é de {brl(total)}.")

    def pending_fiados_count(self, company: str, intent: Intent) -> CommandResult:
        count = len(self._pending_entries(company))
        return CommandResult(
            f"Você tem {plural(count, 'fiado pendente', 'fiados pendentes')}.")

    def low_stock_count(self, company: str, intent: Intent) -> CommandResult:
        count = 0
        for product in self.stores.products.load(company):
            level = product.stock_level()
            if level is not None and 0 < level <= self.low_stock_threshold:
                count += 1
        return CommandResult(
            f"Você tem {plural(count, 'produto', 'produtos')} com estoque baixo "
            f"({self.low_stock_threshold} unidades ou menos).")

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    @staticmethod
    def _save_failed(what: str, page: Page) -> CommandResult:
        return CommandResult(
            f"Não consegui salvar {what} diretamente. "
            f"Por favor, adicione manualmente na página {page.name}.",
            page.path,
        )

    def add_customer(self, company: str, intent: Intent) -> CommandResult:
        params: NewCustomer = intent.params  # type: ignore[assignment]
        customers = self.stores.customers
        customer = Customer(
            id=customers.new_id(),
            name=params.customer_name,
            phone=params.phone,
            email=params.email,
            address=params.address,
        )
        if not customers.append(company, customer):
            return self._save_failed(f"o cliente {customer.name}", CUSTOMERS)
        return CommandResult(f"Cliente {customer.name} adicionado com sucesso!", CUSTOMERS.path)

    def add_credit_entry(self, company: str, intent: Intent) -> CommandResult:
        params: NewCreditEntry = intent.params  # type: ignore[assignment]
        warning = ""
        due_date = None
        if params.due_date:
            due_date = parse_timestamp(params.due_date)
            if due_date is None:
                log.warning("Ignoring invalid due date %r", params.due_date)
                warning = f" Atenção: a data de vencimento '{params.due_date}' é inválida e foi ignorada."

        entries = self.stores.credit_entries
        entry = CreditEntry(
            id=entries.new_id(),
            customer_name=params.customer_name,
            amount=params.amount,
            due_date=due_date,
            whatsapp_number=params.whatsapp_number,
            notes=params.notes,
        )
        if not entries.append(company, entry):
            return self._save_failed(f"o fiado de {entry.customer_name}", CREDIT_NOTEBOOK)

        message = (
            f"Fiado de {brl(entry.amount)} para {entry.customer_name} registrado com sucesso!"
            f"{self._register_debtor(company, entry)}{warning}"
        )
        return CommandResult(message, CREDIT_NOTEBOOK.path)

    def _register_debtor(self, company: str, entry: CreditEntry) -> str:
        """Add the entry's customer to the customer list when it is new."""
        customers = self.stores.customers
        if customers.find_by_name(company, entry.customer_name) is not None:
            return ""
        customer = Customer(
            id=customers.new_id(),
            name=entry.customer_name,
            phone=entry.whatsapp_number or "",
        )
        if not customers.append(company, customer):
            return (f" Não foi possível adicionar {entry.customer_name} "
                    "à sua lista de clientes.")
        return f" O cliente {entry.customer_name} também foi adicionado à sua lista de clientes."

    def add_transaction(self, company: str, intent: Intent) -> CommandResult:
        params: NewTransaction = intent.params  # type: ignore[assignment]
        transactions = self.stores.transactions
        transaction = Transaction(
            id=transactions.new_id(),
            description=params.description,
            amount=params.amount,
            type=params.type,
        )
        kind = "Receita" if transaction.type is TransactionType.INCOME else "Despesa"
        if not transactions.append(company, transaction):
            return self._save_failed(f"a {kind.lower()} '{transaction.description}'", NOTEBOOK)
        return CommandResult(
            f"{kind} '{transaction.description}' de {brl(transaction.amount)} "
            "registrada com sucesso na Caderneta Digital!",
            NOTEBOOK.path,
        )

    def add_product(self, company: str, intent: Intent) -> CommandResult:
        params: NewProduct = intent.params  # type: ignore[assignment]
        products = self.stores.products
        product = Product(
            id=products.new_id(),
            name=params.product_name,
            code=params.product_code,
            price=params.price,
            category=params.category,
            stock=params.stock,
        )
        if not products.append(company, product):
            return self._save_failed(f"o produto {product.name}", PRODUCTS)
        return CommandResult(
            f"Produto {product.name} (código {product.code}) adicionado por {brl(product.price)}!",
            PRODUCTS.path,
        )

    # ------------------------------------------------------------------
    # Edit / delete lookups
    # ------------------------------------------------------------------
    @staticmethod
    def _verb(intent: Intent) -> str:
        return "editar" if intent.action and intent.action.name.startswith("EDIT_") else "excluir"

    @classmethod
    def _located(cls, intent: Intent, found: bool, what: str, page: Page) -> CommandResult:
        if found:
            return CommandResult(
                f"Encontrei {what}. Para {cls._verb(intent)}, conclua a ação na página {page.name}.",
                page.path,
            )
        return CommandResult(
            f"Não encontrei {what}. Verifique o nome ou identificador e tente novamente "
            f"na página {page.name}.",
            page.path,
        )

    def locate_customer(self, company: str, intent: Intent) -> CommandResult:
        params: CustomerRef = intent.params  # type: ignore[assignment]
        found = self.stores.customers.find_by_name(company, params.customer_name)
        return self._located(intent, found is not None,
                             f"o cliente '{params.customer_name}'", CUSTOMERS)

    def locate_product(self, company: str, intent: Intent) -> CommandResult:
        params: ProductRef = intent.params  # type: ignore[assignment]
        identifier = params.identifier or ""
        found = self.stores.products.find(company, identifier)
        return self._located(intent, found is not None, f"o produto '{identifier}'", PRODUCTS)

    def locate_transaction(self, company: str, intent: Intent) -> CommandResult:
        params: TransactionRef = intent.params  # type: ignore[assignment]
        found = self.stores.transactions.find_by_description(company, params.description)
        return self._located(intent, found is not None,
                             f"a transação '{params.description}'", NOTEBOOK)

    def locate_credit_entry(self, company: str, intent: Intent) -> CommandResult:
        params: CustomerRef = intent.params  # type: ignore[assignment]
        found = self.stores.credit_entries.find_by_customer(company, params.customer_name)
        return self._located(intent, found is not None,
                             f"o fiado de '{params.customer_name}'", CREDIT_NOTEBOOK)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def send_monthly_report(self, company: str, intent: Intent) -> CommandResult:
        params: ReportRequest = intent.params  # type: ignore[assignment]
        if params.whatsapp_number:
            message = (f"Abrindo o Relatório Mensal. De lá você pode enviá-lo para o "
                       f"WhatsApp {params.whatsapp_number}.")
        else:
            message = "Abrindo o Relatório Mensal. De lá você pode gerar e compartilhar o relatório."
        return CommandResult(message, MONTHLY_REPORT.path)
