"""Personnel repository - Database operations for personnel"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Personnel


class PersonnelRepository:
    """Repository for personnel database operations"""

    @staticmethod
    def get(db: Session, personnel_id: int) -> Optional[Personnel]:
        return db.query(Personnel).filter(Personnel.id == personnel_id).first()

    @staticmethod
    def list(
        db: Session, status: Optional[str] = None, search: Optional[str] = None
    ) -> list[Personnel]:
        """Merged-away records are hidden"""
        query = db.query(Personnel).filter(Personnel.merged_into_id.is_(None))
        if status:
            query = query.filter(Personnel.status == status)
        if search:
            term = f"%{search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Personnel.first_name).like(term),
                    func.lower(Personnel.last_name).like(term),
                    func.lower(Personnel.email).like(term),
                    Personnel.personnel_number.like(term),
                )
            )
        return query.order_by(Personnel.last_name, Personnel.first_name).all()

    @staticmethod
    def existing_emails(db: Session) -> set[str]:
        return {
            email.lower()
            for (email,) in db.query(Personnel.email).filter(Personnel.email.isnot(None)).all()
        }

    @staticmethod
    def assign_personnel_number(personnel: Personnel) -> None:
        """Needs a flushed row; numbers follow the primary key"""
        if not personnel.personnel_number:
            personnel.personnel_number = f"P-{personnel.id:05d}"

    @staticmethod
    def create(db: Session, **data) -> Personnel:
        personnel = Personnel(**data)
        db.add(personnel)
        db.flush()
        PersonnelRepository.assign_personnel_number(personnel)
        db.commit()
        db.refresh(personnel)
        return personnel

    @staticmethod
    def update(db: Session, personnel: Personnel, **updates) -> Personnel:
        for key, value in updates.items():
            if hasattr(personnel, key):
                setattr(personnel, key, value)
        db.commit()
        db.refresh(personnel)
        return personnel
