"""Typed intents parsed from the loosely typed ``{action, parameters}`` bag.

The language model returns an arbitrary action string and a JSON string of
parameters. :func:`parse_intent` turns that into an :class:`Intent` carrying a
known :class:`Action` and a validated parameter record, so the router never
reads raw dictionary fields.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from moneywise.models import TransactionType

log = logging.getLogger(__name__)


class Action(str, Enum):
    NAVIGATE_TO_DASHBOARD = "navigateToDashboard"
    NAVIGATE_TO_NOTEBOOK = "navigateToNotebook"
    NAVIGATE_TO_CUSTOMERS = "navigateToCustomers"
    GO_TO_CUSTOMER_ACCOUNTS = "goToCustomerAccounts"
    NAVIGATE_TO_SALES = "navigateToSales"
    NAVIGATE_TO_PRODUCTS = "navigateToProducts"
    NAVIGATE_TO_CREDIT_NOTEBOOK = "navigateToCreditNotebook"
    NAVIGATE_TO_SALES_RECORD = "navigateToSalesRecord"
    SHOW_SALES = "showSales"
    NAVIGATE_TO_MONTHLY_REPORT = "navigateToMonthlyReport"
    NAVIGATE_TO_SETTINGS = "navigateToSettings"
    DISPLAY_KPIS = "displayKPIs"

    QUERY_TOTAL_REVENUE = "queryTotalRevenue"
    QUERY_TOTAL_CUSTOMERS = "queryTotalCustomers"
    QUERY_TOTAL_DUE_FIADOS = "queryTotalDueFiados"
    QUERY_PENDING_FIADOS_COUNT = "queryPendingFiadosCount"
    QUERY_LOW_STOCK_PRODUCTS_COUNT = "queryLowStockProductsCount"

    ADD_CUSTOMER = "initiateAddCustomer"
    ADD_CREDIT_ENTRY = "initiateAddCreditEntry"
    ADD_TRANSACTION = "initiateAddTransaction"
    ADD_PRODUCT = "initiateAddProduct"

    EDIT_CUSTOMER = "initiateEditCustomer"
    DELETE_CUSTOMER = "initiateDeleteCustomer"
    EDIT_PRODUCT = "initiateEditProduct"
    DELETE_PRODUCT = "initiateDeleteProduct"
    EDIT_TRANSACTION = "initiateEditTransaction"
    DELETE_TRANSACTION = "initiateDeleteTransaction"
    EDIT_CREDIT_ENTRY = "initiateEditCreditEntry"
    DELETE_CREDIT_ENTRY = "initiateDeleteCreditEntry"

    SEND_MONTHLY_REPORT = "initiateSendMonthlyReport"

    UNKNOWN = "unknown"
    UNKNOWN_COMMAND = "unknownCommand"

    @classmethod
    def lookup(cls, name: Optional[str]) -> Optional["Action"]:
        """Case-insensitive match of an action name."""
        if not name:
            return None
        return _BY_LOWER_NAME.get(name.strip().lower())


_BY_LOWER_NAME = {action.value.lower(): action for action in Action}


class InvalidParameters(ValueError):
    """The parameters string is not a JSON object."""


class Params(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
        allow_inf_nan=False,
    )

    def missing_fields(self) -> List[str]:
        """Cross-field requirements that plain field validation can't express."""
        return []


def _none_if_blank(value: Optional[str]) -> Optional[str]:
    return value or None


def _drop_malformed(value: Any, info: ValidationInfo) -> Any:
    # optional details the model garbled are ignored rather than blocking the command
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return value
    log.warning("Ignoring malformed %s %r", info.field_name, value)
    return None


def _decimal_comma(value: Any) -> Any:
    # "50,90" is how amounts are usually spoken and typed in pt-BR
    if isinstance(value, str) and "," in value and "." not in value:
        return value.replace(",", ".")
    return value


class NewCustomer(Params):
    customer_name: str = Field(min_length=1, validation_alias=AliasChoices("customerName", "name"))
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    address: Optional[str] = None

    lenient = field_validator("email", "address", mode="before")(_drop_malformed)
    blank_to_none = field_validator("email", "address")(_none_if_blank)


class NewCreditEntry(Params):
    customer_name: str = Field(min_length=1, alias="customerName")
    amount: float = Field(gt=0)
    due_date: Optional[str] = Field(None, alias="dueDate")
    whatsapp_number: Optional[str] = Field(None, validation_alias=AliasChoices("whatsappNumber", "whatsapp"))
    notes: Optional[str] = None

    lenient = field_validator("due_date", "whatsapp_number", "notes", mode="before")(_drop_malformed)
    blank_to_none = field_validator("due_date", "whatsapp_number", "notes")(_none_if_blank)
    comma_amount = field_validator("amount", mode="before")(_decimal_comma)


class NewTransaction(Params):
    description: str = Field(min_length=1)
    amount: float = Field(gt=0)
    type: TransactionType

    @field_validator("type", mode="before")
    @classmethod
    def normalise_type(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    comma_amount = field_validator("amount", mode="before")(_decimal_comma)


class NewProduct(Params):
    product_name: str = Field(min_length=1, validation_alias=AliasChoices("productName", "name"))
    product_code: str = Field(min_length=1, validation_alias=AliasChoices("productCode", "code"))
    # zero is a valid price, only absence is rejected
    price: float = Field(ge=0, validation_alias=AliasChoices("price", "productPrice"))
    category: Optional[str] = None
    stock: Optional[str] = None

    lenient = field_validator("category", "stock", mode="before")(_drop_malformed)
    blank_to_none = field_validator("category", "stock")(_none_if_blank)
    comma_price = field_validator("price", mode="before")(_decimal_comma)


class CustomerRef(Params):
    customer_name: str = Field(min_length=1, validation_alias=AliasChoices("customerName", "name"))


class ProductRef(Params):
    product_name: Optional[str] = Field(None, validation_alias=AliasChoices("productName", "name"))
    product_code: Optional[str] = Field(None, validation_alias=AliasChoices("productCode", "code"))

    lenient = field_validator("product_name", "product_code", mode="before")(_drop_malformed)

    def missing_fields(self) -> List[str]:
        return [] if self.identifier else ["productName"]

    @property
    def identifier(self) -> Optional[str]:
        return self.product_name or self.product_code or None


class TransactionRef(Params):
    description: str = Field(min_length=1)


class ReportRequest(Params):
    whatsapp_number: Optional[str] = Field(None, validation_alias=AliasChoices("whatsappNumber", "whatsapp"))

    lenient = field_validator("whatsapp_number", mode="before")(_drop_malformed)
    blank_to_none = field_validator("whatsapp_number")(_none_if_blank)


PARAMS: Dict[Action, Type[Params]] = {
    Action.ADD_CUSTOMER: NewCustomer,
    Action.ADD_CREDIT_ENTRY: NewCreditEntry,
    Action.ADD_TRANSACTION: NewTransaction,
    Action.ADD_PRODUCT: NewProduct,
    Action.EDIT_CUSTOMER: CustomerRef,
    Action.DELETE_CUSTOMER: CustomerRef,
    Action.EDIT_PRODUCT: ProductRef,
    Action.DELETE_PRODUCT: ProductRef,
    Action.EDIT_TRANSACTION: TransactionRef,
    Action.DELETE_TRANSACTION: TransactionRef,
    Action.EDIT_CREDIT_ENTRY: CustomerRef,
    Action.DELETE_CREDIT_ENTRY: CustomerRef,
    Action.SEND_MONTHLY_REPORT: ReportRequest,
}


@dataclass
class Intent:
    raw_action: str
    action: Optional[Action] = None
    params: Optional[Params] = None
    missing: List[str] = field(default_factory=list)

    @property
    def recognized(self) -> bool:
        return self.action is not None

    @property
    def valid(self) -> bool:
        return self.recognized and not self.missing


def parse_parameters(parameters_json: Optional[str]) -> Dict[str, Any]:
    """Decode the parameter string; blank or absent means no parameters."""
    if parameters_json is None or not parameters_json.strip():
        return {}
    try:
        value = json.loads(parameters_json)
    except ValueError as exc:
        raise InvalidParameters(str(exc)) from exc
    if not isinstance(value, dict):
        raise InvalidParameters(f"expected an object, got {type(value).__name__}")
    return value


def _parameter_key(model: Type[Params], name: str) -> str:
    info = model.model_fields[name]
    if isinstance(info.validation_alias, AliasChoices):
        first = info.validation_alias.choices[0]
        if isinstance(first, str):
            return first
    if isinstance(info.validation_alias, str):
        return info.validation_alias
    return info.alias or name


def _missing_from_errors(model: Type[Params], exc: ValidationError) -> List[str]:
    keys_to_field: Dict[str, str] = {}
    for name, info in model.model_fields.items():
        keys_to_field[name] = name
        if info.alias:
            keys_to_field[info.alias] = name
        if isinstance(info.validation_alias, AliasChoices):
            for choice in info.validation_alias.choices:
                if isinstance(choice, str):
                    keys_to_field[choice] = name
        elif isinstance(info.validation_alias, str):
            keys_to_field[info.validation_alias] = name
    failed = {keys_to_field.get(str(err["loc"][0])) for err in exc.errors() if err["loc"]}
    return [_parameter_key(model, name) for name in model.model_fields if name in failed]


def parse_intent(action: Optional[str], parameters: Dict[str, Any]) -> Intent:
    """Resolve ``action`` and validate ``parameters`` against its record.

    Unknown actions give an intent with ``action=None``. Required fields that
    are absent or malformed are listed in ``missing`` by parameter name.
    """
    intent = Intent(raw_action=action or "", action=Action.lookup(action))
    model = PARAMS.get(intent.action) if intent.action else None
    if model is None:
        return intent
    try:
        intent.params = model.model_validate(parameters)
    except ValidationError as exc:
        intent.missing = _missing_from_errors(model, exc)
        return intent
    intent.missing = intent.params.missing_fields()
    return intent
