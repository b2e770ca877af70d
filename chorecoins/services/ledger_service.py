"""
Coin ledger service.
Appends ledger entries with running totals computed inside the same
transaction as the append.
"""
import logging
from typing import List, Optional
from sqlalchemy.orm import Session

from chorecoins.models import Transaction
from chorecoins.repositories.transaction_repository import TransactionRepository
from chorecoins.constants import (
    EARNING_TRANSACTION_TYPES, SPENDING_TRANSACTION_TYPES
)
from chorecoins.exceptions import InsufficientBalanceException, ValidationException

logger = logging.getLogger("chorecoins.ledger")


class LedgerService:
    """Service for the append-only coin ledger"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TransactionRepository()

    def record(
        self,
        child_id: str,
        amount: int,
        type: str,
        description: Optional[str] = None,
        task_id: Optional[str] = None
    ) -> Transaction:
        """
        Append a ledger entry for a child. Does not commit.

        Earning types add to both total_earned and coin_balance.
        Spending types subtract |amount| from coin_balance only and fail
        if the balance would go negative. Any other type leaves both
        totals unchanged.

        The previous entry is read FOR UPDATE and entry_number is unique
        per child, so two concurrent appends cannot both build on the
        same predecessor.

        Raises:
            ValidationException: Negative earning amount
            InsufficientBalanceException: Spending beyond the balance
        """
        last = self.repo.get_latest(self.db, child_id, for_update=True)
        total_earned = last.total_earned if last else 0
        coin_balance = last.coin_balance if last else 0
        entry_number = (last.entry_number + 1) if last else 1

        if type in EARNING_TRANSACTION_TYPES:
            if amount < 0:
                raise ValidationException("amount", "Earning amount cannot be negative")
            total_earned += amount
            coin_balance += amount
        elif type in SPENDING_TRANSACTION_TYPES:
            spend = abs(amount)
            if coin_balance - spend < 0:
                raise InsufficientBalanceException(child_id, coin_balance, spend)
            coin_balance -= spend
        else:
            logger.warning(f"Ledger entry of unknown type '{type}' for child {child_id}")

        entry = Transaction(
            child_id=child_id,
            task_id=task_id,
            amount=amount,
            type=type,
            description=description,
            total_earned=total_earned,
            coin_balance=coin_balance,
            entry_number=entry_number,
        )
        return self.repo.add(self.db, entry)

    def record_and_commit(self, child_id: str, amount: int, type: str, description: Optional[str] = None) -> Transaction:
        """Append a standalone entry (credit/spending) as its own transaction"""
        try:
            entry = self.record(child_id, amount, type, description)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(entry)
        logger.info(f"Ledger {type} of {amount} for child {child_id}; balance {entry.coin_balance}")
        return entry

    def get_coin_stats(self, child_id: str) -> dict:
        """Current totals of a child, taken from the latest entry"""
        last = self.repo.get_latest(self.db, child_id)
        return {
            "child_id": child_id,
            "total_earned": last.total_earned if last else 0,
            "coin_balance": last.coin_balance if last else 0,
        }

    def get_history(self, child_id: str) -> List[Transaction]:
        return self.repo.get_history(self.db, child_id)
