"""Records repository - Database operations for customers, vendors and projects"""

from typing import Optional, Type

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...database import Base
from ...models import Customer, Project, Vendor


class RecordsRepository:
    """Shared queries for the contact-style business records"""

    @staticmethod
    def get(db: Session, model: Type[Base], record_id: int):
        return db.query(model).filter(model.id == record_id).first()

    @staticmethod
    def list_contacts(db: Session, model: Type[Base], search: Optional[str] = None) -> list:
        """Customers or vendors, merged-away rows hidden"""
        query = db.query(model).filter(model.merged_into_id.is_(None))
        if search:
            term = f"%{search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(model.name).like(term),
                    func.lower(model.company).like(term),
                    func.lower(model.email).like(term),
                )
            )
        return query.order_by(model.name).all()

    @staticmethod
    def list_customers(db: Session, search: Optional[str] = None) -> list[Customer]:
        return RecordsRepository.list_contacts(db, Customer, search)

    @staticmethod
    def list_vendors(
        db: Session, search: Optional[str] = None, active_only: bool = False
    ) -> list[Vendor]:
        vendors = RecordsRepository.list_contacts(db, Vendor, search)
        if active_only:
            vendors = [v for v in vendors if v.is_active]
        return vendors

    @staticmethod
    def list_projects(db: Session, customer_id: Optional[int] = None) -> list[Project]:
        query = db.query(Project)
        if customer_id:
            query = query.filter(Project.customer_id == customer_id)
        return query.order_by(Project.created_at.desc(), Project.id.desc()).all()

    @staticmethod
    def create(db: Session, model: Type[Base], **data):
        record = model(**data)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def update(db: Session, record, **updates):
        for key, value in updates.items():
            if hasattr(record, key):
                setattr(record, key, value)
        db.commit()
        db.refresh(record)
        return record
