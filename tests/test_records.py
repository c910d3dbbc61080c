from commandx.models import Customer
from commandx.models_audit import AuditLog


def test_create_customer_normalizes_contact_fields(client, db, admin_headers):
    response = client.post(
        "/customers",
        json={"name": "Jane Doe", "email": "Jane@Example.com", "phone": "(555) 222-3333"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "jane@example.com"
    assert body["phone"] == "+15552223333"

    audit = db.query(AuditLog).filter(AuditLog.entity_type == "customer").one()
    assert audit.action == "create"
    assert audit.entity_id == body["id"]


def test_create_customer_rejects_bad_phone(client, admin_headers):
    response = client.post(
        "/customers", json={"name": "Jane Doe", "phone": "12345"}, headers=admin_headers
    )
    assert response.status_code == 422


def test_unknown_customer_is_404(client, admin_headers):
    assert client.get("/customers/999", headers=admin_headers).status_code == 404


def test_merged_customer_cannot_be_edited(client, db, admin_headers, customer):
    target = Customer(name="Acme Builders LLC")
    db.add(target)
    db.commit()
    db.query(Customer).filter(Customer.id == customer.id).update({"merged_into_id": target.id})
    db.commit()

    response = client.patch(
        f"/customers/{customer.id}", json={"notes": "late payer"}, headers=admin_headers
    )
    assert response.status_code == 409


def test_merged_customers_are_hidden_from_list(client, db, admin_headers, customer):
    merged = Customer(name="Acme Old", merged_into_id=customer.id)
    db.add(merged)
    db.commit()

    names = [c["name"] for c in client.get("/customers", headers=admin_headers).json()]
    assert "Acme Builders" in names
    assert "Acme Old" not in names


def test_location_required_project_needs_coordinates(client, admin_headers, customer):
    response = client.post(
        "/projects",
        json={"name": "Warehouse", "customer_id": customer.id, "require_clock_location": True},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert "coordinates" in response.json()["detail"]


def test_project_update_keeps_existing_coordinates(client, admin_headers, project):
    response = client.patch(
        f"/projects/{project.id}", json={"geofence_radius_miles": 0.5}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["geofence_radius_miles"] == 0.5
    assert response.json()["require_clock_location"] is True


def test_vendor_active_filter(client, db, admin_headers, vendor):
    dormant = client.post("/vendors", json={"name": "Dormant Supplies"}, headers=admin_headers).json()
    client.patch(f"/vendors/{dormant['id']}", json={"is_active": False}, headers=admin_headers)

    active = client.get("/vendors", params={"active_only": True}, headers=admin_headers).json()
    assert [v["name"] for v in active] == ["Supply Co"]
