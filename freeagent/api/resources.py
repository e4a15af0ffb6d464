"""REST collections exposed by the API.

Each collection is described by a ResourceSpec in REGISTRY. Collection
turns a spec into list/get/create/update/delete calls plus named actions
such as ``mark_as_sent``. Reports, payroll, statement uploads and the
company record have their own small wrappers because their paths and
payloads do not fit a collection.
"""

import base64
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from freeagent.api.client import FreeAgentClient
from freeagent.dates import format_date
from freeagent.domain.models import AccountingPeriod

CRUD = frozenset({"list", "get", "create", "update", "delete"})
READ_ONLY = frozenset({"list", "get"})
LIST_ONLY = frozenset({"list"})


@dataclass(frozen=True)
class Action:
    """A state transition or side effect on a single record."""

    name: str
    method: str = "PUT"
    path: str | None = None

    def path_for(self, record_path: str) -> str:
        return f"{record_path}/{self.path or self.name}"


@dataclass(frozen=True)
class ResourceSpec:
    """Shape of one REST collection."""

    name: str
    path: str
    singular: str
    plural: str
    group: str
    operations: frozenset[str] = CRUD
    actions: tuple[Action, ...] = ()
    views: tuple[str, ...] = ()
    description: str = ""

    def action(self, name: str) -> Action:
        for action in self.actions:
            if action.name == name:
                return action
        known = ", ".join(a.name for a in self.actions) or "none"
        raise ValueError(f"Unknown action '{name}' for {self.name} (available: {known})")


def _transitions(*names: str) -> tuple[Action, ...]:
    return tuple(Action(name, "PUT", f"transitions/{name}") for name in names)


def _spec(
    name: str,
    group: str,
    singular: str | None = None,
    path: str | None = None,
    plural: str | None = None,
    operations: frozenset[str] = CRUD,
    actions: tuple[Action, ...] = (),
    views: tuple[str, ...] = (),
    description: str = "",
) -> ResourceSpec:
    return ResourceSpec(
        name=name,
        path=path or name,
        singular=singular or name[:-1],
        plural=plural or name,
        group=group,
        operations=operations,
        actions=actions,
        views=views,
        description=description,
    )


_SPECS = [
    # Banking
    _spec(
        "bank_accounts",
        "banking",
        views=("standard_bank_accounts", "credit_card_accounts", "paypal_accounts"),
        description="Current, savings, credit card and PayPal accounts",
    ),
    _spec("bank_feeds", "banking", operations=frozenset({"list", "get", "update", "delete"})),
    _spec(
        "bank_transactions",
        "banking",
        operations=frozenset({"list", "get", "delete"}),
        views=("all", "unexplained", "explained", "manual", "imported", "marked_for_review"),
        description="Statement lines; list requires a bank_account filter",
    ),
    _spec("bank_transaction_explanations", "banking", description="How bank transactions were accounted for"),
    # Sales
    _spec(
        "contacts",
        "sales",
        views=("all", "active", "clients", "suppliers", "active_projects", "completed_projects", "open_clients"),
    ),
    _spec(
        "invoices",
        "sales",
        actions=(
            *_transitions("mark_as_draft", "mark_as_sent", "mark_as_scheduled", "mark_as_cancelled"),
            Action("convert_to_credit_note", "PUT", "transitions/convert_to_credit_note"),
            Action("send_email", "POST"),
            Action("duplicate", "POST"),
        ),
        views=(
            "all",
            "recent_open_or_overdue",
            "open",
            "overdue",
            "open_or_overdue",
            "draft",
            "paid",
            "scheduled_to_email",
            "thank_you_emails",
            "reminder_emails",
        ),
    ),
    _spec(
        "credit_notes",
        "sales",
        actions=(*_transitions("mark_as_draft", "mark_as_sent", "mark_as_cancelled"), Action("send_email", "POST")),
        views=("all", "recent_open", "open", "draft", "refunded"),
    ),
    _spec("credit_note_reconciliations", "sales"),
    _spec(
        "estimates",
        "sales",
        actions=(
            *_transitions("mark_as_draft", "mark_as_sent", "mark_as_approved", "mark_as_rejected"),
            Action("convert_to_invoice", "PUT", "transitions/convert_to_invoice"),
            Action("send_email", "POST"),
            Action("duplicate", "POST"),
        ),
        views=("all", "recent", "draft", "non_draft"),
    ),
    _spec(
        "recurring_invoices",
        "sales",
        operations=frozenset({"list", "get", "delete"}),
        actions=(Action("activate"), Action("deactivate")),
        views=("draft", "active", "inactive"),
    ),
    _spec(
        "estimate_items",
        "sales",
        operations=frozenset({"create", "update", "delete"}),
        description="Estimate line items; pass the estimate URL when creating",
    ),
    _spec("price_list_items", "sales"),
    # Purchases
    _spec(
        "bills",
        "purchases",
        actions=(Action("mark_as_paid"),),
        views=("all", "open", "overdue", "open_or_overdue", "paid", "recurring", "hire_purchase"),
    ),
    _spec("expenses", "purchases", views=("recent", "recurring")),
    _spec("mileages", "purchases"),
    # Accounting
    _spec(
        "categories",
        "accounting",
        singular="category",
        description="Chart of accounts; identified by nominal code",
    ),
    _spec("journal_sets", "accounting", operations=frozenset({"list", "get", "create", "update", "delete"})),
    _spec(
        "transactions",
        "accounting",
        path="accounting/transactions",
        operations=READ_ONLY,
        description="Ledger transactions; filter by nominal_code, from_date, to_date",
    ),
    _spec(
        "opening_balances",
        "accounting",
        operations=frozenset({"list", "create"}),
    ),
    # Assets
    _spec(
        "capital_assets",
        "assets",
        views=("all", "disposed", "disposable"),
        description="Fixed assets and their depreciation settings",
    ),
    _spec("capital_asset_types", "assets"),
    _spec(
        "depreciation_profiles",
        "assets",
        operations=READ_ONLY,
        description="Straight-line, reducing-balance and no-depreciation methods",
    ),
    _spec("hire_purchases", "assets", operations=READ_ONLY),
    _spec("stock_items", "assets"),
    # Time tracking
    _spec("projects", "time", views=("active", "completed", "cancelled", "inactive")),
    _spec("tasks", "time", views=("all", "active", "completed", "hidden")),
    _spec(
        "timeslips",
        "time",
        actions=(Action("start_timer", "POST", "timer"), Action("stop_timer", "DELETE", "timer")),
        views=("all", "unbilled", "running"),
    ),
    _spec("notes", "time", description="Notes attached to contacts and projects"),
    # Payroll
    _spec("payroll_profiles", "payroll", description="Per-employee payroll settings"),
    _spec("payslips", "payroll", operations=LIST_ONLY, description="Filter by user, from_date, to_date"),
    # Setup
    _spec("users", "setup"),
    _spec("attachments", "setup", operations=frozenset({"get", "delete"})),
    _spec("webhooks", "setup"),
    _spec("properties", "setup", singular="property"),
    _spec("currencies", "setup", singular="currency", operations=LIST_ONLY),
    _spec(
        "email_addresses",
        "setup",
        singular="email_address",
        operations=LIST_ONLY,
        description="Verified addresses invoices and estimates can be sent from",
    ),
    # Tax
    _spec("sales_tax_periods", "tax"),
    _spec("sales_tax_rates", "tax", operations=LIST_ONLY),
    _spec(
        "cis_bands",
        "tax",
        plural="available_bands",
        operations=LIST_ONLY,
        description="Construction Industry Scheme deduction bands",
    ),
    _spec(
        "vat_returns",
        "tax",
        operations=READ_ONLY,
        actions=(Action("mark_as_filed"), Action("mark_as_unfiled")),
    ),
    _spec(
        "corporation_tax_returns",
        "tax",
        operations=READ_ONLY,
        actions=(Action("mark_as_filed"), Action("mark_as_unfiled"), Action("mark_as_paid"), Action("mark_as_unpaid")),
        description="Identified by period_ends_on (YYYY-MM-DD)",
    ),
    _spec(
        "final_accounts_reports",
        "tax",
        operations=READ_ONLY,
        actions=(Action("mark_as_filed"), Action("mark_as_unfiled")),
        description="Identified by period_ends_on (YYYY-MM-DD)",
    ),
]

REGISTRY: dict[str, ResourceSpec] = {spec.name: spec for spec in _SPECS}


def get_spec(name: str) -> ResourceSpec:
    """Look up a collection by name. Dashes are accepted in place of underscores.

    Raises:
        ValueError: If the collection is unknown.
    """
    key = name.strip().lower().replace("-", "_")
    try:
        return REGISTRY[key]
    except KeyError:
        raise ValueError(f"Unknown resource '{name}'. Run 'freeagent resources' to list them.") from None


def resource_id(value: str | int | date) -> str:
    """Accept a bare id, a period date, or a full resource URL and return the id."""
    if isinstance(value, date):
        return format_date(value)
    text = str(value).strip().rstrip("/")
    if not text:
        raise ValueError("Resource id must not be empty")
    if "://" in text:
        return text.rsplit("/", 1)[-1]
    return text


def _unwrap(body: Any, key: str) -> Any:
    if isinstance(body, dict) and key in body:
        return body[key]
    return body


class Collection:
    """Operations on one REST collection."""

    def __init__(self, client: FreeAgentClient, spec: ResourceSpec, path: str | None = None) -> None:
        self.client = client
        self.spec = spec
        self.path = path or spec.path

    def _require(self, operation: str) -> None:
        if operation not in self.spec.operations:
            raise ValueError(f"{self.spec.name} does not support {operation}")

    def record_path(self, id: str | int | date) -> str:
        return f"{self.path}/{resource_id(id)}"

    def list(
        self,
        view: str | None = None,
        per_page: int | None = None,
        limit: int | None = None,
        **filters: Any,
    ) -> Iterator[dict[str, Any]]:
        """Iterate over the collection, following pagination links."""
        self._require("list")
        params = {key: value for key, value in filters.items() if value is not None}
        if view:
            params["view"] = view
        for key, value in list(params.items()):
            if isinstance(value, date):
                params[key] = format_date(value)
            elif isinstance(value, bool):
                params[key] = "true" if value else "false"
        return self.client.paginate(self.path, self.spec.plural, params=params, per_page=per_page, limit=limit)

    def get(self, id: str | int | date) -> dict[str, Any]:
        self._require("get")
        return _unwrap(self.client.get(self.record_path(id)), self.spec.singular)

    def create(self, attrs: dict[str, Any]) -> dict[str, Any] | None:
        self._require("create")
        body = self.client.post(self.path, {self.spec.singular: attrs})
        return _unwrap(body, self.spec.singular)

    def update(self, id: str | int | date, attrs: dict[str, Any]) -> dict[str, Any] | None:
        self._require("update")
        body = self.client.put(self.record_path(id), {self.spec.singular: attrs})
        return _unwrap(body, self.spec.singular)

    def delete(self, id: str | int | date) -> None:
        self._require("delete")
        self.client.delete(self.record_path(id))

    def action(self, id: str | int | date, name: str, payload: dict[str, Any] | None = None) -> Any:
        """Run a named action such as ``mark_as_sent`` on one record."""
        action = self.spec.action(name)
        body = self.client.request(action.method, action.path_for(self.record_path(id)), payload=payload)
        return _unwrap(body, self.spec.singular)


class Company:
    """The singleton company record."""

    def __init__(self, client: FreeAgentClient) -> None:
        self.client = client

    def get(self) -> dict[str, Any]:
        return _unwrap(self.client.get("company"), "company")

    def business_categories(self) -> list[str]:
        return _unwrap(self.client.get("company/business_categories"), "business_categories") or []

    def tax_timeline(self) -> list[dict[str, Any]]:
        return _unwrap(self.client.get("company/tax_timeline"), "timeline_items") or []


class SelfAssessmentReturns(Collection):
    """Self assessment returns for one user, keyed by period_ends_on."""

    def __init__(self, client: FreeAgentClient, user: str | int) -> None:
        spec = ResourceSpec(
            name="self_assessment_returns",
            path="self_assessment_returns",
            singular="self_assessment_return",
            plural="self_assessment_returns",
            group="tax",
            operations=READ_ONLY,
            actions=(Action("mark_as_filed"), Action("mark_as_unfiled")),
        )
        super().__init__(client, spec, path=f"users/{resource_id(user)}/self_assessment_returns")

    def _payment_path(self, period_ends_on: str | date, payment_date: str | date, name: str) -> str:
        return f"{self.record_path(period_ends_on)}/payments/{resource_id(payment_date)}/{name}"

    def mark_payment_as_paid(self, period_ends_on: str | date, payment_date: str | date) -> dict[str, Any]:
        body = self.client.put(self._payment_path(period_ends_on, payment_date, "mark_as_paid"))
        return _unwrap(body, self.spec.singular)

    def mark_payment_as_unpaid(self, period_ends_on: str | date, payment_date: str | date) -> dict[str, Any]:
        body = self.client.put(self._payment_path(period_ends_on, payment_date, "mark_as_unpaid"))
        return _unwrap(body, self.spec.singular)


def _record_url(client: FreeAgentClient, collection: str, value: str | int) -> str:
    text = str(value).strip()
    if "://" in text:
        return text
    return client.url_for(f"{collection}/{resource_id(text)}")


STATEMENT_FILE_TYPES = ("ofx", "qif", "csv")


class BankStatements:
    """Statement file uploads into a bank account."""

    def __init__(self, client: FreeAgentClient) -> None:
        self.client = client

    def upload(self, bank_account: str | int, statement: str | bytes, file_type: str) -> dict[str, Any]:
        """Upload a statement file and import its lines as bank transactions.

        Args:
            bank_account: Bank account id or URL.
            statement: File contents. Bytes are sent base64 encoded, text as given.
            file_type: One of ofx, qif or csv.

        Returns:
            The import summary with imported, duplicate and ignored counts.

        Raises:
            ValueError: If the statement is empty or the file type is unsupported.
        """
        kind = file_type.strip().lower()
        if kind not in STATEMENT_FILE_TYPES:
            raise ValueError(f"Unsupported statement type '{file_type}' (expected one of: ofx, qif, csv)")
        if isinstance(statement, bytes):
            if not statement:
                raise ValueError("Statement data must not be empty")
            data = base64.b64encode(statement).decode("ascii")
        else:
            if not statement.strip():
                raise ValueError("Statement data must not be empty")
            data = statement

        payload = {
            "statement": {
                "bank_account": _record_url(self.client, "bank_accounts", bank_account),
                "statement": data,
                "file_type": kind,
            }
        }
        return _unwrap(self.client.post("bank_transactions/statement", payload), "import_summary") or {}


class DefaultAdditionalText:
    """Default additional text printed on new invoices or estimates."""

    ROOTS = {"invoices": "invoice", "estimates": "estimate"}

    def __init__(self, client: FreeAgentClient, resource: str) -> None:
        if resource not in self.ROOTS:
            raise ValueError(f"Default additional text is only available for invoices and estimates, not {resource}")
        self.client = client
        self.path = f"{resource}/default_additional_text"
        self.key = self.ROOTS[resource]

    def get(self) -> str | None:
        record = _unwrap(self.client.get(self.path), self.key) or {}
        return record.get("text")

    def update(self, text: str) -> str | None:
        record = _unwrap(self.client.put(self.path, {self.key: {"text": text}}), self.key) or {}
        return record.get("text")

    def delete(self) -> None:
        self.client.delete(self.path)


class Payroll:
    """Payroll periods and HMRC payments for a tax year.

    ``year`` is the year the tax year ends in, so 2026 covers April 2025 to
    March 2026. Periods are numbered 0 (April) to 11 (March).
    """

    def __init__(self, client: FreeAgentClient) -> None:
        self.client = client

    def year(self, year: int) -> dict[str, Any]:
        """Return the ``periods`` and ``payments`` of a tax year."""
        body = self.client.get(f"payroll/{year}")
        return body if isinstance(body, dict) else {}

    def period(self, year: int, period: int) -> dict[str, Any]:
        """Return one payroll period with its payslips.

        Raises:
            ValueError: If ``period`` is outside 0..11.
        """
        if not 0 <= period <= 11:
            raise ValueError(f"Payroll period must be between 0 and 11, got {period}")
        return _unwrap(self.client.get(f"payroll/{year}/{period}"), "period") or {}

    def _payment_path(self, year: int, payment_date: str | date, name: str) -> str:
        return f"payroll/{year}/payments/{resource_id(payment_date)}/{name}"

    def mark_payment_as_paid(self, year: int, payment_date: str | date) -> dict[str, Any]:
        body = self.client.put(self._payment_path(year, payment_date, "mark_as_paid"))
        return body if isinstance(body, dict) else {}

    def mark_payment_as_unpaid(self, year: int, payment_date: str | date) -> dict[str, Any]:
        body = self.client.put(self._payment_path(year, payment_date, "mark_as_unpaid"))
        return body if isinstance(body, dict) else {}


def ec_moss_sales_tax_rates(client: FreeAgentClient, country: str, on: date | None = None) -> list[dict[str, Any]]:
    """VAT MOSS rates for an EU country, optionally as they stood on a date.

    Raises:
        ValueError: If ``country`` is blank.
    """
    if not country or not country.strip():
        raise ValueError("A country is required for EC MOSS sales tax rates")
    params = {"country": country.strip()}
    if on is not None:
        params["date"] = format_date(on)
    return _unwrap(client.get("ec_moss/sales_tax_rates", params=params), "sales_tax_rates") or []


class Reports:
    """Accounting reports scoped by accounting period or date."""

    def __init__(self, client: FreeAgentClient) -> None:
        self.client = client

    def trial_balance(self, period: AccountingPeriod | None = None) -> list[dict[str, Any]]:
        params = period.as_params() if period else None
        body = self.client.get("accounting/trial_balance/summary", params=params)
        return _unwrap(body, "trial_balance_summary") or []

    def balance_sheet(self, as_at: date | None = None) -> dict[str, Any]:
        params = {"as_at_date": format_date(as_at)} if as_at else None
        return _unwrap(self.client.get("accounting/balance_sheet", params=params), "balance_sheet") or {}

    def profit_and_loss(self, period: AccountingPeriod | None = None) -> dict[str, Any]:
        params = period.as_params() if period else None
        body = self.client.get("accounting/profit_and_loss/summary", params=params)
        return _unwrap(body, "profit_and_loss_summary") or {}

    def cashflow(self, period: AccountingPeriod) -> dict[str, Any]:
        return _unwrap(self.client.get("cashflow", params=period.as_params()), "cashflow") or {}

    def aged_debtors(self, as_at: date | None = None) -> dict[str, Any]:
        """Money owed by customers, bucketed by how long it is overdue."""
        params = {"date": format_date(as_at)} if as_at else None
        return _unwrap(self.client.get("sales_aged_debtors", params=params), "sales_aged_debtors") or {}

    def aged_creditors(self, as_at: date | None = None) -> dict[str, Any]:
        """Money owed to suppliers, bucketed by how long it is overdue."""
        params = {"date": format_date(as_at)} if as_at else None
        return _unwrap(self.client.get("purchase_aged_creditors", params=params), "purchase_aged_creditors") or {}


@dataclass
class FreeAgent:
    """Entry point bundling the client with every collection.

    Example:
        ```python
        fa = FreeAgent(client)
        fa.collection("invoices").action(42, "mark_as_sent")
        fa.reports.balance_sheet()
        ```
    """

    client: FreeAgentClient
    _collections: dict[str, Collection] = field(default_factory=dict, init=False, repr=False)

    def collection(self, name: str) -> Collection:
        spec = get_spec(name)
        if spec.name not in self._collections:
            self._collections[spec.name] = Collection(self.client, spec)
        return self._collections[spec.name]

    def __getattr__(self, name: str) -> Collection:
        if name.startswith("_") or name not in REGISTRY:
            raise AttributeError(name)
        return self.collection(name)

    @property
    def company(self) -> Company:
        return Company(self.client)

    @property
    def reports(self) -> Reports:
        return Reports(self.client)

    @property
    def bank_statements(self) -> BankStatements:
        return BankStatements(self.client)

    @property
    def payroll(self) -> Payroll:
        return Payroll(self.client)

    def default_additional_text(self, resource: str) -> DefaultAdditionalText:
        return DefaultAdditionalText(self.client, get_spec(resource).name)

    def self_assessment_returns(self, user: str | int) -> SelfAssessmentReturns:
        return SelfAssessmentReturns(self.client, user)

    def ec_moss_sales_tax_rates(self, country: str, on: date | None = None) -> list[dict[str, Any]]:
        return ec_moss_sales_tax_rates(self.client, country, on)
