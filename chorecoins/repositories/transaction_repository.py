"""
Transaction repository - Data access layer for the coin ledger.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from chorecoins.models import Transaction


class TransactionRepository:
    """Repository for Transaction data access"""

    @staticmethod
    def get_latest(db: Session, child_id: str, for_update: bool = False) -> Optional[Transaction]:
        """Get the most recent ledger entry of a child"""
        query = db.query(Transaction).filter(Transaction.child_id == child_id)
        if for_update:
            query = query.with_for_update()
        return query.order_by(Transaction.entry_number.desc()).first()

    @staticmethod
    def get_history(db: Session, child_id: str) -> List[Transaction]:
        """Get every ledger entry of a child, oldest first"""
        return db.query(Transaction).filter(
            Transaction.child_id == child_id
        ).order_by(Transaction.entry_number).all()

    @staticmethod
    def add(db: Session, entry: Transaction) -> Transaction:
        """Stage a new ledger entry"""
        db.add(entry)
        db.flush()
        return entry
