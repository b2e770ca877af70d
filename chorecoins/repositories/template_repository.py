"""
Task template repository - Data access layer for TaskTemplate model.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import or_

from chorecoins.models import TaskTemplate


class TemplateRepository:
    """Repository for TaskTemplate data access"""

    @staticmethod
    def get_by_id(db: Session, template_id: str) -> Optional[TaskTemplate]:
        """Get template by ID"""
        return db.query(TaskTemplate).filter(TaskTemplate.id == template_id).first()

    @staticmethod
    def get_visible_to_parent(db: Session, parent_id: str) -> List[TaskTemplate]:
        """Templates created by this parent plus every admin template"""
        return db.query(TaskTemplate).filter(
            or_(
                TaskTemplate.parent_id == parent_id,
                TaskTemplate.admin_id.isnot(None)
            )
        ).order_by(TaskTemplate.title).all()

    @staticmethod
    def get_all(db: Session) -> List[TaskTemplate]:
        """Get all templates"""
        return db.query(TaskTemplate).order_by(TaskTemplate.title).all()

    @staticmethod
    def add(db: Session, template: TaskTemplate) -> TaskTemplate:
        """Stage a new template"""
        db.add(template)
        db.flush()
        return template
