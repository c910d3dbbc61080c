"""Document router - estimates, invoices and purchase orders share one set of endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from .schemas import DocumentCreate, DocumentPath, DocumentResponse, SendDocumentRequest
from .service import DocumentService

router = APIRouter(prefix="/documents", tags=["Documents"])


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


@router.post("/{document_path}", response_model=DocumentResponse)
async def create_document(
    document_path: DocumentPath,
    data: DocumentCreate,
    current_user: User = Depends(require_staff),
    service: DocumentService = Depends(get_document_service),
):
    return service.create(document_path, data, current_user)


@router.get("/{document_path}", response_model=list[DocumentResponse])
async def list_documents(
    document_path: DocumentPath,
    party_id: Optional[int] = Query(None, description="Customer or vendor id"),
    current_user: User = Depends(require_staff),
    service: DocumentService = Depends(get_document_service),
):
    return service.list(document_path, party_id)


@router.get("/{document_path}/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_path: DocumentPath,
    document_id: int,
    current_user: User = Depends(require_staff),
    service: DocumentService = Depends(get_document_service),
):
    return service.get(document_path, document_id)


@router.get("/{document_path}/{document_id}/pdf")
async def download_document_pdf(
    document_path: DocumentPath,
    document_id: int,
    current_user: User = Depends(require_staff),
    service: DocumentService = Depends(get_document_service),
):
    pdf_bytes, filename = service.render_pdf(document_path, document_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


@router.post("/{document_path}/{document_id}/send", response_model=DocumentResponse)
async def send_document(
    document_path: DocumentPath,
    document_id: int,
    data: SendDocumentRequest,
    current_user: User = Depends(require_staff),
    service: DocumentService = Depends(get_document_service),
):
    return await service.send(document_path, document_id, data, current_user)
