"""Document service - estimates, invoices and purchase orders"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import email_service
from ...config import SITE_URL
from ...models import Customer, Estimate, Invoice, Project, PurchaseOrder, User, Vendor
from ...services.audit_service import record_audit
from ...services.company_settings import get_company_settings
from ...services.pdf_service import DocumentPDFGenerator
from ...shared.validators import is_valid_email
from .schemas import DocumentCreate, SendDocumentRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentKind:
    path: str
    document_type: str
    label: str
    prefix: str
    model: type
    party: str  # customer or vendor


DOCUMENT_KINDS = {
    "estimates": DocumentKind("estimates", "estimate", "Estimate", "EST", Estimate, "customer"),
    "invoices": DocumentKind("invoices", "invoice", "Invoice", "INV", Invoice, "customer"),
    "purchase-orders": DocumentKind(
        "purchase-orders", "purchase_order", "Purchase Order", "PO", PurchaseOrder, "vendor"
    ),
}


class DocumentService:
    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def kind(path: str) -> DocumentKind:
        try:
            return DOCUMENT_KINDS[path]
        except KeyError:
            raise HTTPException(status_code=404, detail="Unknown document type")

    def _party(self, kind: DocumentKind, party_id: Optional[int]):
        if party_id is None:
            raise HTTPException(status_code=400, detail=f"{kind.party}_id is required")
        model = Customer if kind.party == "customer" else Vendor
        party = self.db.query(model).filter(model.id == party_id).first()
        if not party:
            raise HTTPException(status_code=404, detail=f"{kind.party.capitalize()} not found")
        if party.merged_into_id:
            raise HTTPException(
                status_code=409, detail=f"{kind.party.capitalize()} has been merged"
            )
        return party

    def create(self, path: str, data: DocumentCreate, user: User):
        kind = self.kind(path)
        party_id = data.customer_id if kind.party == "customer" else data.vendor_id
        party = self._party(kind, party_id)

        if data.project_id and not self.db.query(Project).filter(Project.id == data.project_id).first():
            raise HTTPException(status_code=404, detail="Project not found")

        items = [
            {**item.model_dump(), "amount": item.amount} for item in data.line_items
        ]
        subtotal = round(sum(item["amount"] for item in items), 2)
        tax_amount = round(subtotal * data.tax_rate / 100, 2)

        values = {
            "number": "",
            "project_id": data.project_id,
            "line_items": items,
            "subtotal": subtotal,
            "tax_amount": tax_amount,
            "total": round(subtotal + tax_amount, 2),
            "notes": data.notes,
            "status": "draft",
            f"{kind.party}_id": party.id,
            f"{kind.party}_name": party.name,
        }
        if kind.document_type == "invoice":
            values["due_date"] = data.due_date
        if kind.document_type == "estimate":
            values["valid_until"] = data.valid_until

        document = kind.model(**values)
        self.db.add(document)
        self.db.flush()
        document.number = f"{kind.prefix}-{document.id:05d}"
        record_audit(self.db, user, "create", kind.document_type, document.id)
        self.db.commit()
        self.db.refresh(document)
        logger.info(f"✅ {kind.label} {document.number} created")
        return document

    def list(self, path: str, party_id: Optional[int] = None):
        kind = self.kind(path)
        query = self.db.query(kind.model)
        if party_id:
            query = query.filter(getattr(kind.model, f"{kind.party}_id") == party_id)
        return query.order_by(kind.model.id.desc()).all()

    def get(self, path: str, document_id: int):
        kind = self.kind(path)
        document = self.db.query(kind.model).filter(kind.model.id == document_id).first()
        if not document:
            raise HTTPException(status_code=404, detail=f"{kind.label} not found")
        return document

    def render_pdf(self, path: str, document_id: int) -> tuple[bytes, str]:
        kind = self.kind(path)
        document = self.get(path, document_id)
        pdf = DocumentPDFGenerator(
            document, kind.document_type, get_company_settings(self.db)
        ).generate()
        return pdf, f"{document.number}.pdf"

    async def send(self, path: str, document_id: int, data: SendDocumentRequest, user: User):
        """Email the document link to the customer or vendor and stamp sent_at"""
        kind = self.kind(path)
        document = self.get(path, document_id)
        party_id = getattr(document, f"{kind.party}_id")
        model = Customer if kind.party == "customer" else Vendor
        party = self.db.query(model).filter(model.id == party_id).first() if party_id else None

        to_email = data.to_email or (party.email if party else None)
        if not is_valid_email(to_email):
            raise HTTPException(
                status_code=400, detail=f"No valid email address for this {kind.party}"
            )

        settings = get_company_settings(self.db)
        pdf_bytes = None
        if data.attach_pdf:
            pdf_bytes = DocumentPDFGenerator(document, kind.document_type, settings).generate()

        document_url = f"{SITE_URL}/documents/{kind.path}/{document.id}"
        try:
            await email_service.send_document_email(
                to=to_email,
                recipient_name=getattr(document, f"{kind.party}_name") or "there",
                company_name=settings.company_name or "CommandX",
                document_label=kind.label,
                document_number=document.number,
                total=document.total or 0,
                document_url=document_url,
                pdf_bytes=pdf_bytes,
                message=data.message,
            )
        except email_service.EmailDeliveryError as e:
            logger.error(f"❌ Failed to send {kind.label} {document.number}: {e}")
            raise HTTPException(status_code=502, detail="Failed to send email")

        document.sent_at = datetime.utcnow()
        if document.status == "draft":
            document.status = "sent"
        record_audit(
            self.db, user, "send", kind.document_type, document.id, {"to": to_email}
        )
        self.db.commit()
        self.db.refresh(document)
        logger.info(f"📧 {kind.label} {document.number} sent to {to_email}")
        return document
