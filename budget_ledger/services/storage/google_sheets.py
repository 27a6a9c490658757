"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is kept as a storage backend because:
1. Project coordinators and auditors can read the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data
- No native transactions. The unit of work is emulated: staged rows are
  written with a single values.batchUpdate request, which the Sheets API
  applies all-or-nothing
- Limited query capabilities (we filter in Python)
- Uniqueness is checked against a fresh read right before the commit.
  Units of work in one process are serialized by write_lock; two
  processes committing at the same moment are not

One worksheet per record kind. Bank accounts live on the project row,
since a project owns at most one.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from budget_ledger.config import GoogleSheetsSettings, get_settings
from budget_ledger.models.audit import AuditEntry
from budget_ledger.models.ledger import (
    AccountingAccount,
    BankAccount,
    Person,
    Project,
    ProjectStatus,
    Transaction,
    TransactionClassification,
)
from budget_ledger.services.balance import chronological
from budget_ledger.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    select_audit_entries,
    select_projects,
)


logger = structlog.get_logger(__name__)


# Column mappings, one list per worksheet
PEOPLE_COLUMNS = [
    "id",
    "name",
    "identification_number",
    "created_at",
]

PROJECT_COLUMNS = [
    "id",
    "name",
    "description",
    "start_date",
    "end_date",
    "status",
    "budget_amount",
    "coordinator_id",
    "created_at",
    "updated_at",
    "bank_account_id",
    "account_number",
    "bank_name",
    "branch_number",
    "account_holder_name",
    "bank_account_created_at",
]

ACCOUNTING_ACCOUNT_COLUMNS = [
    "id",
    "name",
    "identifier",
    "created_at",
]

TRANSACTION_COLUMNS = [
    "id",
    "amount",
    "transaction_date",
    "classification",
    "bank_account_id",
    "accounting_account_id",
    "created_by",
    "created_at",
    "digital_signature",
    "data_hash",
]

AUDIT_COLUMNS = [
    "id",
    "user_id",
    "action_type",
    "entity_type",
    "entity_id",
    "timestamp",
    "previous_value",
    "new_value",
    "digital_signature",
    "data_hash",
]

# Grid size used when a worksheet is created
INITIAL_ROWS = 1000

retry_api_call = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        spreadsheet: Optional[gspread.Spreadsheet] = None,
    ):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet = spreadsheet
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=INITIAL_ROWS,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    @retry_api_call
    def read_rows(self, title: str, columns: list[str]) -> list[list[str]]:
        """All data rows of a worksheet, header excluded."""
        return self.get_worksheet(title, columns).get_all_values()[1:]

    @retry_api_call
    def batch_write(self, data: list[dict[str, Any]]) -> None:
        """Write several ranges in one request. Applied all-or-nothing."""
        self.get_spreadsheet().values_batch_update(
            {"valueInputOption": "RAW", "data": data}
        )


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _cell(row: list[str], index: int) -> str:
    """Missing trailing cells come back from Sheets as absent, not empty."""
    try:
        return row[index]
    except IndexError:
        return ""


def _optional(value: str) -> Optional[str]:
    return value or None


def person_to_row(person: Person) -> list[str]:
    return [
        str(person.id),
        person.name,
        person.identification_number,
        person.created_at.isoformat(),
    ]


def row_to_person(row: list[str]) -> Person:
    return Person(
        id=UUID(_cell(row, 0)),
        name=_cell(row, 1),
        identification_number=_cell(row, 2),
        created_at=datetime.fromisoformat(_cell(row, 3)),
    )


def project_to_row(project: Project) -> list[str]:
    bank = project.bank_account
    return [
        str(project.id),
        project.name,
        project.description or "",
        project.start_date.isoformat(),
        project.end_date.isoformat(),
        project.status.value,
        str(project.budget_amount),
        str(project.coordinator_id),
        project.created_at.isoformat(),
        project.updated_at.isoformat(),
        str(bank.id) if bank else "",
        bank.account_number if bank else "",
        bank.bank_name if bank else "",
        bank.branch_number if bank else "",
        bank.account_holder_name if bank else "",
        bank.created_at.isoformat() if bank else "",
    ]


def row_to_project(row: list[str]) -> Project:
    project_id = UUID(_cell(row, 0))

    bank_account = None
    if _cell(row, 10):
        bank_account = BankAccount(
            id=UUID(_cell(row, 10)),
            account_number=_cell(row, 11),
            bank_name=_cell(row, 12),
            branch_number=_cell(row, 13),
            account_holder_name=_cell(row, 14),
            project_id=project_id,
            created_at=datetime.fromisoformat(_cell(row, 15)),
        )

    return Project(
        id=project_id,
        name=_cell(row, 1),
        description=_optional(_cell(row, 2)),
        start_date=datetime.fromisoformat(_cell(row, 3)),
        end_date=datetime.fromisoformat(_cell(row, 4)),
        status=ProjectStatus(_cell(row, 5)),
        budget_amount=Decimal(_cell(row, 6)),
        coordinator_id=UUID(_cell(row, 7)),
        created_at=datetime.fromisoformat(_cell(row, 8)),
        updated_at=datetime.fromisoformat(_cell(row, 9)),
        bank_account=bank_account,
    )


def accounting_account_to_row(account: AccountingAccount) -> list[str]:
    return [
        str(account.id),
        account.name,
        account.identifier,
        account.created_at.isoformat(),
    ]


def row_to_accounting_account(row: list[str]) -> AccountingAccount:
    return AccountingAccount(
        id=UUID(_cell(row, 0)),
        name=_cell(row, 1),
        identifier=_cell(row, 2),
        created_at=datetime.fromisoformat(_cell(row, 3)),
    )


def transaction_to_row(transaction: Transaction) -> list[str]:
    # Amount as text keeps its exact scale, which the hash depends on.
    return [
        str(transaction.id),
        format(transaction.amount, "f"),
        transaction.transaction_date.isoformat(),
        str(int(transaction.classification)),
        str(transaction.bank_account_id),
        str(transaction.accounting_account_id),
        str(transaction.created_by),
        transaction.created_at.isoformat(),
        transaction.digital_signature,
        transaction.data_hash,
    ]


def row_to_transaction(row: list[str]) -> Transaction:
    return Transaction(
        id=UUID(_cell(row, 0)),
        amount=Decimal(_cell(row, 1)),
        transaction_date=datetime.fromisoformat(_cell(row, 2)),
        classification=TransactionClassification(int(_cell(row, 3))),
        bank_account_id=UUID(_cell(row, 4)),
        accounting_account_id=UUID(_cell(row, 5)),
        created_by=UUID(_cell(row, 6)),
        created_at=datetime.fromisoformat(_cell(row, 7)),
        digital_signature=_cell(row, 8),
        data_hash=_cell(row, 9),
    )


def audit_entry_to_row(entry: AuditEntry) -> list[str]:
    return [
        str(entry.id),
        str(entry.user_id),
        entry.action_type,
        entry.entity_type,
        str(entry.entity_id),
        entry.timestamp.isoformat(),
        entry.previous_value or "",
        entry.new_value or "",
        entry.digital_signature,
        entry.data_hash,
    ]


def row_to_audit_entry(row: list[str]) -> AuditEntry:
    return AuditEntry(
        id=UUID(_cell(row, 0)),
        user_id=UUID(_cell(row, 1)),
        action_type=_cell(row, 2),
        entity_type=_cell(row, 3),
        entity_id=UUID(_cell(row, 4)),
        timestamp=datetime.fromisoformat(_cell(row, 5)),
        previous_value=_optional(_cell(row, 6)),
        new_value=_optional(_cell(row, 7)),
        digital_signature=_cell(row, 8),
        data_hash=_cell(row, 9),
    )


# =============================================================================
# STORAGE
# =============================================================================

class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each record is one row. Staged rows are held in memory until
    save_changes(), which checks uniqueness against a fresh read and then
    writes everything with one batch request.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._sheets = {
            Person: (settings.people_sheet_name, PEOPLE_COLUMNS),
            Project: (settings.projects_sheet_name, PROJECT_COLUMNS),
            AccountingAccount: (settings.accounting_accounts_sheet_name, ACCOUNTING_ACCOUNT_COLUMNS),
            Transaction: (settings.transactions_sheet_name, TRANSACTION_COLUMNS),
            AuditEntry: (settings.audit_sheet_name, AUDIT_COLUMNS),
        }
        self._pending_appends: list[Any] = []
        self._pending_updates: list[Project] = []

    def _rows(self, record_type: type) -> list[list[str]]:
        title, columns = self._sheets[record_type]
        try:
            return [row for row in self._client.read_rows(title, columns) if row and row[0]]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read worksheet '{title}': {e}") from e

    def _load(self, record_type: type, convert: Callable[[list[str]], Any]) -> list[Any]:
        records = []
        for row in self._rows(record_type):
            try:
                records.append(convert(row))
            except ValueError as e:
                # A row that cannot be parsed is reported, never dropped
                raise StorageError(
                    f"Malformed row in '{self._sheets[record_type][0]}' for id {row[0]}: {e}"
                ) from e
        return records

    # =========================================================================
    # READS
    # =========================================================================

    async def get_person_by_id(self, person_id: UUID) -> Optional[Person]:
        for row in self._rows(Person):
            if row[0] == str(person_id):
                return row_to_person(row)
        return None

    async def get_project_by_id(self, project_id: UUID) -> Optional[Project]:
        for row in self._rows(Project):
            if row[0] == str(project_id):
                return row_to_project(row)
        return None

    async def list_projects(
        self,
        status: Optional[ProjectStatus] = None,
        coordinator_id: Optional[UUID] = None,
    ) -> list[Project]:
        return select_projects(self._load(Project, row_to_project), status, coordinator_id)

    async def list_accounting_accounts(self) -> list[AccountingAccount]:
        accounts = self._load(AccountingAccount, row_to_accounting_account)
        return sorted(accounts, key=lambda account: account.identifier)

    async def get_accounting_account_by_id(
        self,
        accounting_account_id: UUID,
    ) -> Optional[AccountingAccount]:
        for row in self._rows(AccountingAccount):
            if row[0] == str(accounting_account_id):
                return row_to_accounting_account(row)
        return None

    async def get_accounting_account_by_identifier(
        self,
        identifier: str,
    ) -> Optional[AccountingAccount]:
        for row in self._rows(AccountingAccount):
            if _cell(row, 2) == identifier:
                return row_to_accounting_account(row)
        return None

    async def bank_account_exists(
        self,
        account_number: str,
        bank_name: str,
        branch_number: str,
    ) -> bool:
        key = (account_number, bank_name, branch_number)
        return key in self._bank_keys()

    async def get_transactions_by_bank_account(
        self,
        bank_account_id: UUID,
    ) -> list[Transaction]:
        wanted = str(bank_account_id)
        return chronological(
            row_to_transaction(row)
            for row in self._rows(Transaction)
            if _cell(row, 4) == wanted
        )

    async def get_audit_trail(
        self,
        entity_ids: Optional[Iterable[UUID]] = None,
        entity_type: Optional[str] = None,
        user_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        take: Optional[int] = None,
    ) -> list[AuditEntry]:
        return select_audit_entries(
            self._load(AuditEntry, row_to_audit_entry),
            entity_ids=entity_ids,
            entity_type=entity_type,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            skip=skip,
            take=take,
        )

    # =========================================================================
    # STAGED WRITES
    # =========================================================================

    async def add_person(self, person: Person) -> None:
        self._pending_appends.append(person.model_copy(deep=True))

    async def add_project(self, project: Project) -> None:
        self._pending_appends.append(project.model_copy(deep=True))

    async def update_project(self, project: Project) -> None:
        self._pending_updates.append(project.model_copy(deep=True))

    async def add_accounting_account(self, account: AccountingAccount) -> None:
        self._pending_appends.append(account)

    async def add_transaction(self, transaction: Transaction) -> None:
        self._pending_appends.append(transaction)

    async def add_audit_entry(self, entry: AuditEntry) -> None:
        self._pending_appends.append(entry)

    # =========================================================================
    # UNIT OF WORK
    # =========================================================================

    async def save_changes(self) -> int:
        """Check constraints, then write every staged row in one request."""
        record_count = len(self._pending_appends) + len(self._pending_updates)
        if record_count == 0:
            return 0

        snapshot = {record_type: self._rows(record_type) for record_type in self._sheets}
        self._check_constraints(snapshot)

        data: list[dict[str, Any]] = []

        # Updates overwrite the existing project row in place
        project_rows = {row[0]: index for index, row in enumerate(snapshot[Project], start=2)}
        title = self._sheets[Project][0]
        for project in self._pending_updates:
            row_number = project_rows[str(project.id)]
            data.append({
                "range": f"'{title}'!A{row_number}",
                "values": [project_to_row(project)],
            })

        # Appends go right after the last data row of each sheet
        for record_type, (title, columns) in self._sheets.items():
            rows = [
                self._to_row(record)
                for record in self._pending_appends
                if isinstance(record, record_type)
            ]
            if not rows:
                continue
            first_row = len(snapshot[record_type]) + 2
            self._ensure_capacity(title, columns, first_row + len(rows) - 1)
            data.append({
                "range": f"'{title}'!A{first_row}",
                "values": rows,
            })

        try:
            self._client.batch_write(data)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to commit changes: {e}") from e

        self._pending_appends.clear()
        self._pending_updates.clear()
        logger.info("sheets_changes_committed", record_count=record_count)
        return record_count

    async def rollback(self) -> None:
        self._pending_appends.clear()
        self._pending_updates.clear()

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _bank_keys(self, project_rows: Optional[list[list[str]]] = None) -> set[tuple[str, str, str]]:
        rows = project_rows if project_rows is not None else self._rows(Project)
        return {
            (_cell(row, 11), _cell(row, 12), _cell(row, 13))
            for row in rows
            if _cell(row, 10)
        }

    def _to_row(self, record: Any) -> list[str]:
        if isinstance(record, Person):
            return person_to_row(record)
        if isinstance(record, Project):
            return project_to_row(record)
        if isinstance(record, AccountingAccount):
            return accounting_account_to_row(record)
        if isinstance(record, Transaction):
            return transaction_to_row(record)
        if isinstance(record, AuditEntry):
            return audit_entry_to_row(record)
        raise StorageError(f"Unsupported record type: {type(record).__name__}")

    def _ensure_capacity(self, title: str, columns: list[str], last_row: int) -> None:
        sheet = self._client.get_worksheet(title, columns)
        if sheet.row_count < last_row:
            sheet.add_rows(last_row - sheet.row_count)

    def _check_constraints(self, snapshot: dict[type, list[list[str]]]) -> None:
        ids = {
            record_type: {row[0] for row in rows}
            for record_type, rows in snapshot.items()
        }
        bank_keys = self._bank_keys(snapshot[Project])
        identifiers = {_cell(row, 2) for row in snapshot[AccountingAccount]}

        for project in self._pending_updates:
            if str(project.id) not in ids[Project]:
                raise NotFoundError(f"Project not found: {project.id}")

        for record in self._pending_appends:
            record_type = type(record)
            record_id = str(record.id)
            if record_id in ids[record_type]:
                raise DuplicateError(f"Duplicate {record_type.__name__} id: {record_id}")
            ids[record_type].add(record_id)

            if isinstance(record, Project) and record.bank_account is not None:
                key = record.bank_account.unique_key
                if key in bank_keys:
                    raise DuplicateError(
                        "A bank account with the same account number, bank name "
                        "and branch number already exists."
                    )
                bank_keys.add(key)

            elif isinstance(record, AccountingAccount):
                if record.identifier in identifiers:
                    raise DuplicateError(
                        f"Accounting account with identifier '{record.identifier}' already exists."
                    )
                identifiers.add(record.identifier)
