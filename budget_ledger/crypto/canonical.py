"""
Canonical String Formats

Hashes and signatures are computed over pipe-delimited strings built here.
Stored hashes depend on these strings byte for byte, so the formats below
must never change:

    amount       plain decimal, scale preserved, no exponent   100.00
    timestamp    round-trip ISO-8601, 7 fractional digits      2024-01-15T10:30:00.0000000Z
                 non-UTC offsets as +HH:MM                      2024-01-15T10:30:00.0000000+02:00
    enum         integer value                                 1
    uuid         lowercase, hyphenated                         3f2504e0-4f89-11d3-9a0c-0305e82c3301
    missing      empty string

Fields are joined with "|" and never escaped. A value that itself contains
"|" can make two different records produce the same string; transaction
fields cannot contain it, audit action/entity types are rejected by the
validator when they do.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID


SEPARATOR = "|"


def format_amount(amount: Union[Decimal, int, str]) -> str:
    """Render an amount in plain notation, keeping its scale."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return format(amount, "f")


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime in round-trip form with its UTC offset."""
    offset = value.utcoffset()
    if offset is None:
        raise ValueError("Canonical timestamps must be timezone-aware")

    base = value.replace(tzinfo=None).isoformat(timespec="seconds")
    # microseconds plus one trailing digit -> 100ns ticks
    fraction = f"{value.microsecond:06d}0"

    if offset == timedelta(0):
        zone = "Z"
    else:
        total_minutes = int(offset.total_seconds()) // 60
        sign = "+" if total_minutes >= 0 else "-"
        hours, minutes = divmod(abs(total_minutes), 60)
        zone = f"{sign}{hours:02d}:{minutes:02d}"

    return f"{base}.{fraction}{zone}"


def format_uuid(value: Union[UUID, str]) -> str:
    return str(UUID(str(value)))


def join_fields(*fields: Optional[str]) -> str:
    return SEPARATOR.join("" if field is None else field for field in fields)


def transaction_hash_input(
    amount: Decimal,
    transaction_date: datetime,
    classification: int,
    bank_account_id: UUID,
    accounting_account_id: UUID,
    created_by: UUID,
) -> str:
    """amount|date|classification|bankAccountId|accountingAccountId|createdBy"""
    return join_fields(
        format_amount(amount),
        format_timestamp(transaction_date),
        str(int(classification)),
        format_uuid(bank_account_id),
        format_uuid(accounting_account_id),
        format_uuid(created_by),
    )


def transaction_signature_data(
    amount: Decimal,
    transaction_date: datetime,
    classification: int,
    bank_account_id: UUID,
    accounting_account_id: UUID,
) -> str:
    """
    amount|date|classification|bankAccountId|accountingAccountId

    The creator is not part of the data; the signature binds it through
    the HMAC user prefix instead.
    """
    return join_fields(
        format_amount(amount),
        format_timestamp(transaction_date),
        str(int(classification)),
        format_uuid(bank_account_id),
        format_uuid(accounting_account_id),
    )


def audit_hash_input(
    user_id: UUID,
    action_type: str,
    entity_type: str,
    entity_id: UUID,
    timestamp: datetime,
    previous_value: Optional[str],
    new_value: Optional[str],
) -> str:
    """userId|actionType|entityType|entityId|timestamp|previousValue|newValue"""
    return join_fields(
        format_uuid(user_id),
        action_type,
        entity_type,
        format_uuid(entity_id),
        format_timestamp(timestamp),
        previous_value,
        new_value,
    )


def audit_signature_data(
    action_type: str,
    entity_type: str,
    entity_id: UUID,
    timestamp: datetime,
) -> str:
    """actionType|entityType|entityId|timestamp"""
    return join_fields(
        action_type,
        entity_type,
        format_uuid(entity_id),
        format_timestamp(timestamp),
    )
