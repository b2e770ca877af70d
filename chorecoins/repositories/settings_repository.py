"""
Settings repository - Data access layer for the singleton Settings row.
"""
from datetime import date
from sqlalchemy.orm import Session
from chorecoins.models import Settings


class SettingsRepository:
    """Repository for Settings data access"""

    @staticmethod
    def get(db: Session) -> Settings:
        """
        Get the settings row, staging one with defaults on first use.

        Only flushes, so it is safe to call in the middle of a
        service transaction.
        """
        settings = db.query(Settings).first()
        if not settings:
            settings = Settings()
            db.add(settings)
            db.flush()
        return settings

    @staticmethod
    def update(db: Session, settings: Settings) -> Settings:
        """Commit pending changes to the settings row"""
        db.commit()
        db.refresh(settings)
        return settings

    @staticmethod
    def mark_reconciled(db: Session, run_date: date) -> Settings:
        """Record the local date of the last completed reconciliation run"""
        settings = SettingsRepository.get(db)
        settings.last_reconciliation_date = run_date
        return SettingsRepository.update(db, settings)
