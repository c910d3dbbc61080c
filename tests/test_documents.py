from datetime import date

import pytest

from commandx.models import Customer, Invoice
from commandx.models_audit import AuditLog
from commandx.services.pdf_service import DocumentPDFGenerator, line_item_amount, money

LINE_ITEMS = [
    {"description": "Framing labor", "quantity": 2, "unit_price": 100},
    {"description": "Lumber <2x4>", "quantity": 1, "unit_price": 50.5},
]


def create(client, headers, path, **body):
    body.setdefault("line_items", LINE_ITEMS)
    return client.post(f"/documents/{path}", json=body, headers=headers)


def test_money_and_line_amounts():
    assert money(1234.5) == "$1,234.50"
    assert money(None) == "$0.00"
    assert line_item_amount({"quantity": 3, "unit_price": 2.5}) == 7.5
    assert line_item_amount({"amount": 9, "quantity": 3, "unit_price": 2.5}) == 9


def test_pdf_generator_rejects_unknown_type():
    with pytest.raises(ValueError):
        DocumentPDFGenerator(Invoice(number="X-1"), "receipt")


def test_pdf_generator_renders_invoice():
    invoice = Invoice(
        number="INV-00001",
        customer_name="Acme Builders",
        line_items=LINE_ITEMS,
        subtotal=250.5,
        total=250.5,
        amount_paid=100,
        due_date=date(2026, 4, 1),
        notes="Net 30",
    )
    pdf = DocumentPDFGenerator(invoice, "invoice").generate()
    assert pdf.startswith(b"%PDF")


def test_create_estimate_computes_totals(client, db, admin_headers, customer, project):
    response = create(
        client,
        admin_headers,
        "estimates",
        customer_id=customer.id,
        project_id=project.id,
        tax_rate=10,
        valid_until="2026-04-30",
    )
    assert response.status_code == 200
    body = response.json()
    assert body["number"] == f"EST-{body['id']:05d}"
    assert body["status"] == "draft"
    assert body["customer_name"] == "Acme Builders"
    assert body["subtotal"] == pytest.approx(250.5)
    assert body["tax_amount"] == pytest.approx(25.05)
    assert body["total"] == pytest.approx(275.55)
    assert body["line_items"][0]["amount"] == 200
    assert body["valid_until"] == "2026-04-30"
    assert db.query(AuditLog).filter_by(action="create", entity_type="estimate").count() == 1


def test_purchase_order_needs_vendor(client, admin_headers, vendor):
    assert create(client, admin_headers, "purchase-orders").status_code == 400

    response = create(client, admin_headers, "purchase-orders", vendor_id=vendor.id)
    assert response.status_code == 200
    assert response.json()["number"].startswith("PO-")
    assert response.json()["vendor_name"] == "Supply Co"


def test_documents_for_merged_or_missing_parties(client, db, admin_headers, customer):
    old = Customer(name="Old Acme", merged_into_id=customer.id)
    db.add(old)
    db.commit()

    assert create(client, admin_headers, "invoices", customer_id=old.id).status_code == 409
    assert create(client, admin_headers, "invoices", customer_id=9999).status_code == 404
    assert (
        create(client, admin_headers, "invoices", customer_id=customer.id, project_id=9999).status_code
        == 404
    )


def test_unknown_document_path(client, admin_headers):
    assert client.get("/documents/receipts", headers=admin_headers).status_code == 422


def test_list_filters_by_party(client, db, admin_headers, customer):
    other = Customer(name="Other Co")
    db.add(other)
    db.commit()
    create(client, admin_headers, "invoices", customer_id=customer.id)
    create(client, admin_headers, "invoices", customer_id=other.id)

    everything = client.get("/documents/invoices", headers=admin_headers).json()
    assert len(everything) == 2
    mine = client.get(
        "/documents/invoices", params={"party_id": customer.id}, headers=admin_headers
    ).json()
    assert [d["customer_id"] for d in mine] == [customer.id]


def test_pdf_download(client, admin_headers, customer):
    invoice_id = create(client, admin_headers, "invoices", customer_id=customer.id).json()["id"]

    response = client.get(f"/documents/invoices/{invoice_id}/pdf", headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert f"INV-{invoice_id:05d}.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

    assert client.get("/documents/invoices/9999/pdf", headers=admin_headers).status_code == 404


def test_send_invoice_emails_pdf(client, db, admin_headers, customer, sent_emails):
    invoice_id = create(client, admin_headers, "invoices", customer_id=customer.id).json()["id"]

    response = client.post(
        f"/documents/invoices/{invoice_id}/send",
        json={"message": "Thanks for your business"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "sent"
    assert response.json()["sent_at"] is not None

    email = sent_emails[0]
    assert email["to"] == "office@acme.example"
    assert email["subject"] == f"Invoice INV-{invoice_id:05d} from CommandX"
    assert email["attachments"][0]["content"].startswith(b"%PDF")
    assert "Thanks for your business" in email["mjml_content"]
    assert db.query(AuditLog).filter_by(action="send", entity_type="invoice").count() == 1


def test_send_to_override_without_attachment(client, admin_headers, vendor, sent_emails):
    po_id = create(client, admin_headers, "purchase-orders", vendor_id=vendor.id).json()["id"]

    response = client.post(
        f"/documents/purchase-orders/{po_id}/send",
        json={"to_email": "Orders@Supply.example", "attach_pdf": False},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert sent_emails[0]["to"] == "orders@supply.example"
    assert sent_emails[0]["attachments"] is None


def test_send_without_email_address(client, db, admin_headers):
    customer = Customer(name="No Email LLC")
    db.add(customer)
    db.commit()
    estimate_id = create(client, admin_headers, "estimates", customer_id=customer.id).json()["id"]

    response = client.post(f"/documents/estimates/{estimate_id}/send", json={}, headers=admin_headers)
    assert response.status_code == 400


def test_send_failure_is_502_and_leaves_draft(client, db, admin_headers, customer):
    # No RESEND_API_KEY in tests, so delivery fails
    invoice_id = create(client, admin_headers, "invoices", customer_id=customer.id).json()["id"]

    response = client.post(f"/documents/invoices/{invoice_id}/send", json={}, headers=admin_headers)
    assert response.status_code == 502
    db.expire_all()
    assert db.query(Invoice).filter(Invoice.id == invoice_id).one().status == "draft"


def test_documents_are_staff_only(client, worker_headers):
    assert client.get("/documents/estimates", headers=worker_headers).status_code == 403
