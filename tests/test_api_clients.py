"""
Client API tests.

Covers:
    - intake normalisation (phone, state, postal, city) and required fields
    - default approval status (pending vs referred → approved)
    - duplicate-household conflict and ``force``
    - approval workflow + history, denial reason
    - soft delete
    - masking per session, including driver-scoped access
"""

from woodbank.models import db
from woodbank.models.client import Client, ClientApprovalHistory


def _h(user):
    return {"X-User-Id": user.id}


def _payload(**kw):
    data = {
        "name": "Morgan Lee",
        "telephone": "603.555.0199",
        "physical_address_line1": "44 Maple St",
        "physical_address_city": "  new  boston ",
        "physical_address_state": "nh",
        "physical_address_postal_code": "03070",
    }
    data.update(kw)
    return data


class TestCreateClient:
    def test_create_normalises_fields(self, client, staff):
        res = client.post("/api/v1/clients", json=_payload(), headers=_h(staff))
        assert res.status_code == 201
        row = db.session.get(Client, res.get_json()["id"])
        assert row.telephone == "(603) 555-0199"
        assert row.physical_address_state == "NH"
        assert row.physical_address_city == "New Boston"
        assert row.approval_status == "pending"

    def test_referring_agency_approves(self, client, staff):
        res = client.post("/api/v1/clients", json=_payload(referring_agency="Fuel Aid"), headers=_h(staff))
        assert res.get_json()["approval_status"] == "approved"

    def test_phone_or_email_required(self, client, staff):
        res = client.post("/api/v1/clients", json=_payload(telephone=""), headers=_h(staff))
        assert res.status_code == 422
        assert "telephone" in res.get_json()["details"]["fields"]

    def test_email_alone_is_enough(self, client, staff):
        res = client.post("/api/v1/clients", json=_payload(telephone=None, email="m@example.org"),
                          headers=_h(staff))
        assert res.status_code == 201

    def test_invalid_state_and_postal(self, client, staff):
        res = client.post("/api/v1/clients",
                          json=_payload(physical_address_state="ZZ", physical_address_postal_code="123"),
                          headers=_h(staff))
        assert res.status_code == 422
        fields = res.get_json()["details"]["fields"]
        assert "physical_address_state" in fields
        assert "physical_address_postal_code" in fields

    def test_missing_address(self, client, staff):
        res = client.post("/api/v1/clients", json=_payload(physical_address_line1=""), headers=_h(staff))
        assert res.status_code == 422

    def test_volunteer_cannot_onboard(self, client, volunteer):
        res = client.post("/api/v1/clients", json=_payload(), headers=_h(volunteer))
        assert res.status_code == 403


class TestConflict:
    def test_same_name_different_address_blocked(self, client, staff, household):
        res = client.post("/api/v1/clients", json=_payload(name="pat jones"), headers=_h(staff))
        assert res.status_code == 422
        body = res.get_json()
        assert body["error"] == "Name already exists at a different address. Verify before creating."
        assert body["details"]["conflicts"][0]["id"] == household.id

    def test_force_overrides(self, client, staff, household):
        res = client.post("/api/v1/clients", json=_payload(name="Pat Jones", force=True), headers=_h(staff))
        assert res.status_code == 201

    def test_same_address_is_not_a_conflict(self, client, staff, household):
        res = client.post("/api/v1/clients",
                          json=_payload(name="Pat Jones", physical_address_line1="12 birch rd"),
                          headers=_h(staff))
        assert res.status_code == 201


class TestApproval:
    def test_lead_approves_with_history(self, client, lead, household):
        res = client.post(f"/api/v1/clients/{household.id}/approval",
                          json={"approval_status": "exception", "notes": "winter only"}, headers=_h(lead))
        assert res.status_code == 200
        assert res.get_json()["approval_status"] == "exception"
        history = ClientApprovalHistory.query.filter_by(client_id=household.id).all()
        assert [(h.old_status, h.new_status) for h in history] == [("approved", "exception")]

    def test_denial_requires_reason(self, client, admin, household):
        res = client.post(f"/api/v1/clients/{household.id}/approval",
                          json={"approval_status": "denied"}, headers=_h(admin))
        assert res.status_code == 422
        res = client.post(f"/api/v1/clients/{household.id}/approval",
                          json={"approval_status": "denied", "reason": "Outside service area"},
                          headers=_h(admin))
        assert res.status_code == 200
        assert res.get_json()["denial_reason"] == "Outside service area"

    def test_staff_cannot_approve(self, client, staff, household):
        res = client.post(f"/api/v1/clients/{household.id}/approval",
                          json={"approval_status": "approved"}, headers=_h(staff))
        assert res.status_code == 403

    def test_unknown_status(self, client, admin, household):
        res = client.post(f"/api/v1/clients/{household.id}/approval",
                          json={"approval_status": "maybe"}, headers=_h(admin))
        assert res.status_code == 422

    def test_history_endpoint(self, client, admin, household):
        client.post(f"/api/v1/clients/{household.id}/approval",
                    json={"approval_status": "pending"}, headers=_h(admin))
        res = client.get(f"/api/v1/clients/{household.id}/approval", headers=_h(admin))
        assert res.get_json()["total"] == 1


class TestUpdateAndDelete:
    def test_update_profile(self, client, staff, household):
        res = client.patch(f"/api/v1/clients/{household.id}",
                           json={"physical_address_city": "hillsboro center"}, headers=_h(staff))
        assert res.status_code == 200
        assert db.session.get(Client, household.id).physical_address_city == "Hillsboro Center"

    def test_update_cannot_change_approval(self, client, staff, household):
        res = client.patch(f"/api/v1/clients/{household.id}",
                           json={"approval_status": "approved"}, headers=_h(staff))
        assert res.status_code == 422

    def test_soft_delete_hides_client(self, client, staff, household):
        res = client.delete(f"/api/v1/clients/{household.id}", headers=_h(staff))
        assert res.status_code == 200
        assert db.session.get(Client, household.id) is not None
        items = client.get("/api/v1/clients", headers=_h(staff)).get_json()["items"]
        assert items == []
        res = client.patch(f"/api/v1/clients/{household.id}", json={"notes": "x"}, headers=_h(staff))
        assert res.status_code == 404


class TestClientMasking:
    def test_staff_list_masked(self, client, staff, household):
        item = client.get("/api/v1/clients", headers=_h(staff)).get_json()["items"][0]
        assert item["telephone"] == "Hidden"
        assert item["directions"] == "—"
        assert item["name"] == "Pat Jones"

    def test_hipaa_lead_sees_contact(self, client, lead, household):
        item = client.get("/api/v1/clients", headers=_h(lead)).get_json()["items"][0]
        assert item["telephone"] == "(555) 123-4567"

    def test_driver_sees_only_assigned_clients(self, client, staff, driver, household):
        item = client.get("/api/v1/clients", headers=_h(driver)).get_json()["items"][0]
        assert item["telephone"] == "Hidden"

        res = client.post("/api/v1/work-orders", json={
            "client_id": household.id, "delivery_choice": "toyota", "status": "scheduled",
            "scheduled_date": "2024-03-06", "assignees": ["Dana Driver"],
        }, headers=_h(staff))
        assert res.status_code == 201
        item = client.get("/api/v1/clients", headers=_h(driver)).get_json()["items"][0]
        assert item["telephone"] == "(555) 123-4567"

    def test_driver_scoped_staff_sees_edited_assigned_client(self, client, make_user, household):
        sid = make_user("sid", "staff", name="Sid Staff", is_driver=True,
                        driver_license_status="valid", driver_license_expires_on="2030-01-01")
        res = client.post("/api/v1/work-orders", json={
            "client_id": household.id, "delivery_choice": "toyota", "status": "scheduled",
            "scheduled_date": "2024-03-06", "assignees": ["Sid Staff"],
        }, headers=_h(sid))
        assert res.status_code == 201

        res = client.patch(f"/api/v1/clients/{household.id}", json={"notes": "dog in yard"}, headers=_h(sid))
        assert res.status_code == 200
        assert res.get_json()["telephone"] == "(555) 123-4567"
        assert res.get_json()["pii_masked"] is False

    def test_driver_scoped_staff_gets_masked_new_client(self, client, make_user):
        sid = make_user("sid", "staff", name="Sid Staff", is_driver=True,
                        driver_license_status="valid", driver_license_expires_on="2030-01-01")
        res = client.post("/api/v1/clients", json=_payload(), headers=_h(sid))
        assert res.status_code == 201
        assert res.get_json()["telephone"] == "Hidden"
