"""
Accountability Report Export

Renders an AccountabilityReport as a plain-text document, 80 columns wide.
Only the first AUDIT_PREVIEW_SIZE audit entries are listed; the rest are
counted.
"""

from datetime import datetime, timezone
from decimal import Decimal

from budget_ledger.models.ledger import TransactionClassification
from budget_ledger.models.reports import AccountabilityReport


LINE_WIDTH = 80
AUDIT_PREVIEW_SIZE = 10
SIGNATURE_PREVIEW_LENGTH = 40


def _heavy_rule() -> str:
    return "=" * LINE_WIDTH


def _light_rule() -> str:
    return "-" * LINE_WIDTH


def _money(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def _utc(value: datetime, with_time: bool = True) -> str:
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S" if with_time else "%Y-%m-%d")


def _signature_preview(signature: str) -> str:
    return f"{signature[:SIGNATURE_PREVIEW_LENGTH]}..."


def render_accountability_report(report: AccountabilityReport) -> str:
    """Render the report as text, one line per list element."""
    lines = [
        _heavy_rule(),
        "ACCOUNTABILITY REPORT",
        _heavy_rule(),
        "",
        f"Report ID: {report.report_identifier}",
        f"Generated: {_utc(report.generated_at)} UTC",
        "",
        "PROJECT INFORMATION",
        _light_rule(),
        f"Project: {report.project_name}",
        f"Description: {report.project_description or 'N/A'}",
        f"Coordinator: {report.project_coordinator}",
        f"Budget: {_money(report.budget_amount)}",
        f"Current Balance: {_money(report.current_balance)}",
    ]
    if report.warning:
        lines.append(report.warning)

    lines += [
        "",
        "BANK ACCOUNT INFORMATION",
        _light_rule(),
        f"Bank: {report.bank_name}",
        f"Branch: {report.branch_number}",
        f"Account: {report.bank_account_number}",
        f"Holder: {report.account_holder_name}",
        "",
        "TRANSACTIONS",
        _light_rule(),
        f"Total Transactions: {len(report.transactions)}",
        "",
    ]
    for transaction in report.transactions:
        direction = (
            "CREDIT"
            if transaction.classification is TransactionClassification.CREDIT
            else "DEBIT"
        )
        lines += [
            f"Date: {_utc(transaction.transaction_date, with_time=False)} | {direction} | "
            f"Amount: {_money(transaction.amount)}",
            f"  Signature: {_signature_preview(transaction.digital_signature)}",
            "",
        ]

    lines += [
        "AUDIT TRAIL",
        _light_rule(),
        f"Total Audit Entries: {len(report.audit_entries)}",
        "",
    ]
    for entry in report.audit_entries[:AUDIT_PREVIEW_SIZE]:
        lines += [
            f"{_utc(entry.timestamp)} | {entry.action_type} | {entry.entity_type}",
            f"  User: {entry.user_id}",
            f"  Signature: {_signature_preview(entry.digital_signature)}",
            "",
        ]
    hidden = len(report.audit_entries) - AUDIT_PREVIEW_SIZE
    if hidden > 0:
        lines += [f"... and {hidden} more audit entries", ""]

    integrity = report.integrity_report
    lines += [
        "DATA INTEGRITY VERIFICATION",
        _light_rule(),
        f"Verification Time: {_utc(integrity.verified_at)} UTC",
        f"Transactions Checked: {integrity.transactions_checked}",
        f"Audit Entries Checked: {integrity.audit_entries_checked}",
        f"Integrity Status: {'VALID' if integrity.is_valid else 'COMPROMISED'}",
    ]
    if not integrity.is_valid:
        lines += [
            "",
            "WARNING: Data integrity issues detected!",
            f"Tampered Transactions: {len(integrity.tampered_transaction_ids)}",
            f"Tampered Audit Entries: {len(integrity.tampered_audit_entry_ids)}",
        ]

    lines += [
        "",
        _heavy_rule(),
        "END OF REPORT",
        _heavy_rule(),
    ]
    return "\n".join(lines) + "\n"
