"""
Work order API tests.

Covers:
    - create with resolved sizing, status history and audit rows
    - capability checks (volunteers cannot create or edit)
    - transitions through the state machine, close-out rules per role
    - terminal orders, masking per session, pairing endpoint
"""

from datetime import datetime, timezone

import pytest

from woodbank.models import db
from woodbank.models.audit import AuditLog
from woodbank.models.work_order import WorkOrder, WorkOrderStatusHistory
from woodbank.services.code_generator import generate_work_order_number

WEDNESDAY = "2024-03-06"
TUESDAY = "2024-03-05"


def _h(user):
    return {"X-User-Id": user.id}


def _create(client, user, household, **kw):
    payload = {"client_id": household.id, "delivery_choice": "f250"}
    payload.update(kw)
    return client.post("/api/v1/work-orders", json=payload, headers=_h(user))


# ═══════════════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════════════


class TestCreateWorkOrder:
    def test_create_received(self, client, staff, household):
        res = _create(client, staff, household)
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "received"
        assert data["client_name"] == "Pat Jones"
        assert data["delivery_size_label"] == "Ford F-250"
        assert data["delivery_size_cords"] == 1.0
        assert data["created_by_display"] == "Sam Staff"

    def test_create_writes_history_and_audit(self, client, staff, household):
        oid = _create(client, staff, household).get_json()["id"]
        history = WorkOrderStatusHistory.query.filter_by(work_order_id=oid).all()
        assert [h.new_status for h in history] == ["received"]
        assert AuditLog.query.filter_by(entity_id=oid, action="work_order.create").count() == 1

    def test_create_scheduled_with_driver_and_helpers(self, client, staff, household):
        res = _create(client, staff, household, status="scheduled", scheduled_date=WEDNESDAY,
                      assignees=["Dana Driver"], helpers=["Hal", " "])
        assert res.status_code == 201
        assert res.get_json()["assignees"] == ["Dana Driver", "Hal"]

    def test_create_scheduled_without_driver_rejected(self, client, staff, household):
        res = _create(client, staff, household, status="scheduled", scheduled_date=WEDNESDAY)
        assert res.status_code == 422
        assert res.get_json()["error"].startswith("Assign at least one available driver")
        assert WorkOrder.query.count() == 0

    def test_create_pickup_by_dimensions(self, client, staff, household):
        res = _create(client, staff, household, delivery_choice=None, pickup_mode="dimensions",
                      pickup_length=96, pickup_width=48, pickup_height=48, pickup_units="in")
        assert res.status_code == 201
        assert res.get_json()["pickup_quantity_cords"] == 1.0

    def test_create_other_without_label_rejected(self, client, staff, household):
        res = _create(client, staff, household, delivery_choice="other", other_cords="2")
        assert res.status_code == 422

    def test_volunteer_cannot_create(self, client, volunteer, household):
        res = _create(client, volunteer, household)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_missing_user_header_is_forbidden(self, client, household):
        res = client.post("/api/v1/work-orders", json={"client_id": household.id})
        assert res.status_code == 403

    def test_unknown_client(self, client, staff):
        res = client.post("/api/v1/work-orders", json={"client_id": "nope"}, headers=_h(staff))
        assert res.status_code == 404

    def test_driver_availability_blocks_create(self, client, staff, driver, household):
        res = _create(client, staff, household, status="scheduled", scheduled_date=TUESDAY,
                      assignees=["Dana Driver"])
        assert res.status_code == 422
        assert "Dana Driver" in res.get_json()["error"]


# ═══════════════════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def scheduled_order(client, staff, household):
    res = _create(client, staff, household, status="scheduled", scheduled_date=WEDNESDAY,
                  assignees=["Dana Driver"])
    assert res.status_code == 201
    return res.get_json()


class TestTransitions:
    def test_volunteer_completes_without_hours(self, client, volunteer, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"status": "completed", "mileage": 12.5}, headers=_h(volunteer))
        assert res.status_code == 200
        assert res.get_json()["status"] == "completed"

    def test_completion_without_mileage_rejected(self, client, admin, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"status": "completed", "work_hours": 2}, headers=_h(admin))
        assert res.status_code == 422
        assert res.get_json()["error"] == "Mileage is required to close an order."
        assert db.session.get(WorkOrder, scheduled_order["id"]).status == "scheduled"

    def test_lead_must_record_hours(self, client, lead, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"status": "completed", "mileage": 20}, headers=_h(lead))
        assert res.status_code == 422
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"status": "completed", "mileage": 20, "work_hours": 3}, headers=_h(lead))
        assert res.status_code == 200

    def test_history_records_close_out_figures(self, client, lead, scheduled_order):
        oid = scheduled_order["id"]
        client.patch(f"/api/v1/work-orders/{oid}",
                     json={"status": "completed", "mileage": 20, "work_hours": 3}, headers=_h(lead))
        res = client.get(f"/api/v1/work-orders/{oid}/history", headers=_h(lead))
        items = res.get_json()["items"]
        assert [i["new_status"] for i in items] == ["scheduled", "completed"]
        assert items[-1]["old_status"] == "scheduled"
        assert items[-1]["mileage_recorded"] == 20
        assert items[-1]["work_hours_recorded"] == 3

    def test_terminal_order_rejects_edits(self, client, staff, scheduled_order):
        oid = scheduled_order["id"]
        client.patch(f"/api/v1/work-orders/{oid}", json={"status": "cancelled"}, headers=_h(staff))
        res = client.patch(f"/api/v1/work-orders/{oid}", json={"notes": "again"}, headers=_h(staff))
        assert res.status_code == 422
        assert "can no longer be changed" in res.get_json()["error"]

    def test_invalid_transition(self, client, staff, scheduled_order):
        oid = scheduled_order["id"]
        client.patch(f"/api/v1/work-orders/{oid}", json={"status": "in_progress"}, headers=_h(staff))
        res = client.patch(f"/api/v1/work-orders/{oid}", json={"status": "rescheduled"}, headers=_h(staff))
        assert res.status_code == 422
        assert res.get_json()["details"]["allowed"] == ["completed", "cancelled"]

    def test_volunteer_cannot_reassign(self, client, volunteer, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"assignees": ["Someone"]}, headers=_h(volunteer))
        assert res.status_code == 403

    def test_edit_that_drops_driver_rejected(self, client, staff, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"assignees": []}, headers=_h(staff))
        assert res.status_code == 422

    def test_picked_up_requires_quantity(self, client, staff, household):
        oid = _create(client, staff, household).get_json()["id"]
        res = client.patch(f"/api/v1/work-orders/{oid}", json={"status": "picked_up"}, headers=_h(staff))
        assert res.status_code == 422
        res = client.patch(f"/api/v1/work-orders/{oid}",
                           json={"status": "picked_up", "pickup_mode": "cords", "pickup_cords": 0.75},
                           headers=_h(staff))
        assert res.status_code == 200
        assert res.get_json()["pickup_quantity_cords"] == 0.75

    def test_empty_patch(self, client, staff, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}", json={}, headers=_h(staff))
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Masking & pairing
# ═══════════════════════════════════════════════════════════════════════════


class TestMaskingAndPairing:
    def test_staff_sees_masked_contact(self, client, staff, scheduled_order):
        res = client.get(f"/api/v1/work-orders/{scheduled_order['id']}", headers=_h(staff))
        data = res.get_json()
        assert data["telephone"] == "Hidden"
        assert data["gate_combo"] == "—"

    def test_assigned_driver_sees_contact(self, client, driver, scheduled_order):
        res = client.get(f"/api/v1/work-orders/{scheduled_order['id']}", headers=_h(driver))
        assert res.get_json()["telephone"] == "(555) 123-4567"

    def test_list_masks_per_session(self, client, admin, staff, scheduled_order):
        admin_items = client.get("/api/v1/work-orders", headers=_h(admin)).get_json()["items"]
        staff_items = client.get("/api/v1/work-orders", headers=_h(staff)).get_json()["items"]
        assert admin_items[0]["telephone"] == "(555) 123-4567"
        assert staff_items[0]["telephone"] == "Hidden"

    def test_pairable_excludes_own_client(self, client, staff, household):
        from woodbank.models.client import Client
        other = Client(name="Other", telephone="(555) 000-0000", physical_address_line1="1 Elm",
                       physical_address_city="Keene", physical_address_state="NH",
                       physical_address_postal_code="03431", approval_status="approved")
        db.session.add(other)
        db.session.commit()
        mine = _create(client, staff, household, delivery_choice="f250_half").get_json()
        theirs = _create(client, staff, other, delivery_choice="f250_half").get_json()

        res = client.get(f"/api/v1/work-orders/pairable?client_id={household.id}", headers=_h(staff))
        ids = [o["id"] for o in res.get_json()["items"]]
        assert ids == [theirs["id"]]

        res = _create(client, staff, household, delivery_choice="f250_half", paired_order_id=theirs["id"])
        assert res.status_code == 201
        assert res.get_json()["paired_order_id"] == theirs["id"]
        assert db.session.get(WorkOrder, theirs["id"]).paired_order_id is None
        assert mine["id"] != theirs["id"]

    def test_pairing_with_full_load_rejected(self, client, staff, household):
        other = _create(client, staff, household, delivery_choice="f250_half").get_json()
        res = _create(client, staff, household, delivery_choice="f250", paired_order_id=other["id"])
        assert res.status_code == 422

    def test_pairable_requires_client_id(self, client, staff):
        res = client.get("/api/v1/work-orders/pairable", headers=_h(staff))
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# Drivers vs helpers
# ═══════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def hank(make_user):
    return make_user("hank", name="Hank Helper", availability_notes="off on wed")


class TestCrewSplit:
    def test_helper_unavailability_does_not_block_transition(self, client, staff, driver, hank, household):
        res = _create(client, staff, household, status="scheduled", scheduled_date=WEDNESDAY,
                      assignees=["Dana Driver"], helpers=["Hank Helper"])
        assert res.status_code == 201
        body = res.get_json()
        assert body["drivers"] == ["Dana Driver"]
        assert body["helpers"] == ["Hank Helper"]

        res = client.patch(f"/api/v1/work-orders/{body['id']}",
                           json={"status": "in_progress"}, headers=_h(staff))
        assert res.status_code == 200
        assert res.get_json()["status"] == "in_progress"

    def test_helpers_alone_cannot_schedule(self, client, staff, hank, household):
        res = _create(client, staff, household, helpers=["Hank Helper"])
        assert res.status_code == 201
        oid = res.get_json()["id"]

        res = client.patch(f"/api/v1/work-orders/{oid}",
                           json={"status": "scheduled", "scheduled_date": "2024-03-07"}, headers=_h(staff))
        assert res.status_code == 422
        assert res.get_json()["error"].startswith("Assign at least one available driver")
        assert db.session.get(WorkOrder, oid).status == "received"

    def test_editing_drivers_keeps_helpers(self, client, staff, scheduled_order):
        client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                     json={"helpers": ["Hal"]}, headers=_h(staff))
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"assignees": ["Dana Driver", "Rob"]}, headers=_h(staff))
        assert res.status_code == 200
        body = res.get_json()
        assert body["drivers"] == ["Dana Driver", "Rob"]
        assert body["helpers"] == ["Hal"]
        assert body["assignees"] == ["Dana Driver", "Rob", "Hal"]

    def test_helper_cap_on_edit(self, client, staff, scheduled_order):
        res = client.patch(f"/api/v1/work-orders/{scheduled_order['id']}",
                           json={"helpers": ["A", "B", "C", "D", "E"]}, headers=_h(staff))
        assert res.status_code == 422
        assert res.get_json()["error"] == "Select at most 4 helpers (5 selected)."


class TestWorkOrderNumber:
    def test_numbers_are_sequential_per_year(self, client, staff, household):
        year = datetime.now(timezone.utc).year
        first = _create(client, staff, household).get_json()
        second = _create(client, staff, household).get_json()
        assert first["work_order_number"] == f"WO-{year}-0001"
        assert second["work_order_number"] == f"WO-{year}-0002"

    def test_soft_deleted_numbers_are_not_reused(self, client, staff, household):
        oid = _create(client, staff, household).get_json()["id"]
        order = db.session.get(WorkOrder, oid)
        order.soft_delete()
        db.session.commit()
        assert generate_work_order_number().endswith("-0002")

    def test_other_year_starts_at_one(self, client, staff, household):
        _create(client, staff, household)
        assert generate_work_order_number(1999) == "WO-1999-0001"
