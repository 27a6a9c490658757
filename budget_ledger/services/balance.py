"""
Balance Reconciliation

Derives a bank account's balance from its transaction history and compares
it with the project budget.

The balance is never stored. It is always recomputed from the immutable
transaction records, so it cannot drift from them.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from uuid import UUID

from budget_ledger.models.ledger import Transaction


ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")


def chronological(transactions: Optional[Iterable[Transaction]]) -> list[Transaction]:
    """Order by transaction date, then by creation time."""
    if not transactions:
        return []
    return sorted(transactions, key=lambda tx: (tx.transaction_date, tx.created_at))


class BalanceCalculator:
    """
    Pure balance arithmetic over transaction lists.

    Credits add to the balance, debits subtract from it.
    """

    def calculate_balance(self, transactions: Optional[Iterable[Transaction]]) -> Decimal:
        """
        Current balance of a set of transactions.

        Returns Decimal("0") for None or an empty collection. The result
        does not depend on the order of the input.
        """
        balance = ZERO
        for transaction in chronological(transactions):
            balance += transaction.signed_amount
        return balance

    def calculate_running_balances(
        self,
        transactions: Optional[Iterable[Transaction]],
    ) -> dict[UUID, Decimal]:
        """
        Balance immediately after each transaction.

        Keys are inserted in chronological order.
        """
        running: dict[UUID, Decimal] = {}
        balance = ZERO
        for transaction in chronological(transactions):
            balance += transaction.signed_amount
            running[transaction.id] = balance
        return running

    def is_over_budget(self, balance: Decimal, budget: Decimal) -> bool:
        return balance > budget

    def generate_warning(self, balance: Decimal, budget: Decimal) -> Optional[str]:
        """
        Advisory message when the balance exceeds the budget.

        Never blocks a write. Returns None when within budget.
        """
        if not self.is_over_budget(balance, budget):
            return None

        overage = balance - budget
        return (
            f"Warning: Account balance ({_two_places(balance)}) exceeds "
            f"project budget ({_two_places(budget)}) by {_two_places(overage)}"
        )


def _two_places(value: Decimal) -> str:
    return format(value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP), "f")
