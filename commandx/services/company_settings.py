from sqlalchemy.orm import Session

from ..models import CompanySettings

DEFAULT_COMPANY_NAME = "CommandX"
DEFAULT_OVERTIME_MULTIPLIER = 1.5


def get_company_settings(db: Session) -> CompanySettings:
    """The single settings row, created with defaults on first use"""
    settings = db.query(CompanySettings).order_by(CompanySettings.id).first()
    if settings is None:
        settings = CompanySettings(
            company_name=DEFAULT_COMPANY_NAME, overtime_multiplier=DEFAULT_OVERTIME_MULTIPLIER
        )
        db.add(settings)
        db.flush()
    return settings


def company_name(db: Session) -> str:
    return get_company_settings(db).company_name or DEFAULT_COMPANY_NAME
