import io
from datetime import date
from decimal import Decimal

import pytest
from conftest import ADMIN_ID, CONTROLLER_ID, MEMBER_ID, OTHER_MEMBER_ID, as_user
from sqlalchemy.exc import SQLAlchemyError

from app.musaib.attachments import UploadedFile
from app.musaib.constants import DemandStatus, UserRole
from app.musaib.db import session_scope
from app.musaib.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.musaib.modules.demands.models import Demand
from app.musaib.modules.demands.service import (
    allowed_transitions,
    create_demand,
    delete_demand,
    stage_role,
    update_demand_status,
    validate_demand_payload,
)
from app.musaib.modules.notifications.models import Notification
from app.musaib.modules.notifications.service import list_notifications


def _form(**overrides):
    form = {
        "service_type": "Scolaire",
        "beneficiary_name": "Yao Dossou",
        "beneficiary_relation": "enfant",
        "amount": "250",
        "event_date": "2026-09-01",
        "payment_info": {"method": "virement", "iban": "FR7630006000011234567890189"},
    }
    form.update(overrides)
    return form


def _create(app, storage, **overrides) -> int:
    with session_scope(app) as s:
        d = create_demand(s, MEMBER_ID, "Awa Dossou", _form(**overrides), storage=storage)
        return d.id


def test_transition_table():
    assert stage_role("en_attente") == UserRole.CONTROLLER
    assert stage_role("acceptee") == UserRole.ADMINISTRATOR
    assert stage_role("validee") is None
    assert allowed_transitions("en_attente") == {DemandStatus.ACCEPTED, DemandStatus.REJECTED}
    assert allowed_transitions("acceptee") == {DemandStatus.VALIDATED, DemandStatus.REJECTED}
    assert allowed_transitions("rejetee") == frozenset()


def test_create_demand_starts_pending(app, storage):
    with session_scope(app) as s:
        d = create_demand(s, MEMBER_ID, "Awa Dossou", _form(), storage=storage)
        assert d.status == DemandStatus.PENDING.value
        assert d.amount == Decimal("250.00")
        assert d.event_date == date(2026, 9, 1)
        assert d.payment_info["method"] == "virement"
        assert d.controller_id is None and d.administrator_id is None
        assert d.created_at is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"service_type": ""},
        {"beneficiary_name": None},
        {"amount": "abc"},
        {"amount": "-5"},
        {"amount": "600"},
        {"service_type": "Santé", "amount": "1000.01"},
        {"event_date": "01/09/2026"},
        {"payment_info": "RIB"},
    ],
)
def test_create_demand_rejects_invalid_form(app, storage, overrides):
    assert validate_demand_payload(_form(**overrides))
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            create_demand(s, MEMBER_ID, "Awa Dossou", _form(**overrides), storage=storage)
        assert s.query(Demand).count() == 0


def test_service_outside_catalog_has_no_ceiling():
    assert validate_demand_payload(_form(service_type="Mariage", amount="5000")) == []


def test_create_demand_with_document(app, storage):
    doc = UploadedFile(filename="certificat scolarité.pdf", data=b"%PDF cert", content_type="application/pdf")
    with session_scope(app) as s:
        d = create_demand(s, MEMBER_ID, "Awa Dossou", _form(), storage=storage, document=doc)
        assert d.justification_document["name"] == "certificat scolarité.pdf"
        assert d.justification_document["path"].startswith("demands/")
        assert storage.exists(d.justification_document["path"])


def test_create_demand_survives_failed_upload(app, failing_storage):
    doc = UploadedFile(filename="facture.pdf", data=b"%PDF", content_type="application/pdf")
    with session_scope(app) as s:
        d = create_demand(s, MEMBER_ID, "Awa Dossou", _form(), storage=failing_storage, document=doc)
        assert d.id is not None
        assert d.justification_document is None


def test_controller_accept_then_admin_validate(app, storage):
    demand_id = _create(app, storage)

    with session_scope(app) as s:
        d = update_demand_status(
            s, demand_id, "acceptee", CONTROLLER_ID, "Cécile Contrôle", "Dossier complet", actor_role="controleur"
        )
        assert d.status == "acceptee"
        assert d.controller_id == CONTROLLER_ID
        assert d.controller_name == "Cécile Contrôle"
        assert d.processing_date == date.today()
        assert d.comment == "Dossier complet"
        assert d.administrator_id is None and d.validation_date is None

    with session_scope(app) as s:
        d = update_demand_status(s, demand_id, "validee", ADMIN_ID, "Alain Admin", actor_role="administrateur")

    with session_scope(app) as s:
        d = s.get(Demand, demand_id)
        assert d.status == "validee"
        assert d.administrator_id == ADMIN_ID
        assert d.validation_date == date.today()
        # Controller stamps survive the administrator decision.
        assert d.controller_id == CONTROLLER_ID
        assert d.processing_date == date.today()
        # No comment given at validation: the controller's remains.
        assert d.comment == "Dossier complet"


def test_pending_cannot_jump_to_validated(app, storage):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        with pytest.raises(InvalidTransitionError):
            update_demand_status(s, demand_id, "validee", ADMIN_ID, "Alain Admin", actor_role="administrateur")
        assert s.get(Demand, demand_id).status == "en_attente"


def test_terminal_status_is_final(app, storage):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        update_demand_status(s, demand_id, "rejetee", CONTROLLER_ID, "Cécile Contrôle", "Pièce manquante", actor_role="controleur")

    with session_scope(app) as s:
        with pytest.raises(InvalidTransitionError):
            update_demand_status(s, demand_id, "rejetee", ADMIN_ID, "Alain Admin", "Encore", actor_role="administrateur")
        with pytest.raises(InvalidTransitionError):
            update_demand_status(s, demand_id, "acceptee", CONTROLLER_ID, "Cécile Contrôle", actor_role="controleur")

    with session_scope(app) as s:
        d = s.get(Demand, demand_id)
        assert d.status == "rejetee"
        assert d.comment == "Pièce manquante"
        assert d.administrator_id is None


def test_wrong_stage_role_is_refused(app, storage):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        with pytest.raises(InvalidTransitionError):
            update_demand_status(s, demand_id, "acceptee", ADMIN_ID, "Alain Admin", actor_role=UserRole.ADMINISTRATOR)
        with pytest.raises(InvalidTransitionError):
            update_demand_status(s, demand_id, "rejetee", ADMIN_ID, "Alain Admin", actor_role="administrateur")
        with pytest.raises(InvalidTransitionError):
            update_demand_status(s, demand_id, "rejetee", MEMBER_ID, "Awa Dossou", actor_role="membre")
        with pytest.raises(TypeError):
            update_demand_status(s, demand_id, "acceptee", ADMIN_ID, "Alain Admin")
        d = s.get(Demand, demand_id)
        assert d.status == "en_attente"
        assert d.controller_id is None
        assert d.administrator_id is None


@pytest.mark.parametrize("status", [5, None, ["acceptee"]])
def test_non_string_status_is_a_validation_error(app, storage, status):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            update_demand_status(s, demand_id, status, CONTROLLER_ID, "Cécile Contrôle", actor_role="controleur")


def test_unknown_status_and_demand(app, storage):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        with pytest.raises(ValidationError):
            update_demand_status(s, demand_id, "approuvee", CONTROLLER_ID, "Cécile Contrôle", actor_role="controleur")
        with pytest.raises(NotFoundError):
            update_demand_status(s, 9999, "acceptee", CONTROLLER_ID, "Cécile Contrôle", actor_role="controleur")
        with pytest.raises(NotFoundError):
            delete_demand(s, 9999)


def test_member_is_notified_on_create_and_decision(app, storage):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        update_demand_status(s, demand_id, "acceptee", CONTROLLER_ID, "Cécile Contrôle", actor_role="controleur")

    with session_scope(app) as s:
        items = list_notifications(s, MEMBER_ID)
        assert len(items) == 2
        assert all(n.demand_id == demand_id for n in items)
        assert "acceptée" in items[0].message or "acceptée" in items[1].message
        assert list_notifications(s, CONTROLLER_ID) == []


def test_notification_failure_keeps_status_change(app, storage, monkeypatch):
    demand_id = _create(app, storage)

    def _boom(*args, **kwargs):
        raise SQLAlchemyError("notifications table unavailable")

    monkeypatch.setattr("app.musaib.modules.notifications.service.notify", _boom)

    with session_scope(app) as s:
        d = update_demand_status(s, demand_id, "acceptee", CONTROLLER_ID, "Cécile Contrôle", actor_role="controleur")
        assert d.status == "acceptee"

    with session_scope(app) as s:
        assert s.get(Demand, demand_id).status == "acceptee"
        # Only the creation notice exists.
        assert s.query(Notification).filter(Notification.demand_id == demand_id).count() == 1


def test_delete_demand_keeps_notifications(app, storage):
    demand_id = _create(app, storage)
    with session_scope(app) as s:
        delete_demand(s, demand_id)

    with session_scope(app) as s:
        assert s.get(Demand, demand_id) is None
        items = list_notifications(s, MEMBER_ID)
        assert len(items) == 1
        assert items[0].demand_id is None


# ---------- HTTP ----------


def test_demand_http_lifecycle(client):
    r = client.post("/demands/", json=_form(), headers=as_user(MEMBER_ID))
    assert r.status_code == 201
    demand_id = r.json["id"]
    assert r.json["status"] == "en_attente"
    assert r.json["amount"] == "250.00"

    # Administrator does not see pending demands.
    r = client.get(f"/demands/{demand_id}", headers=as_user(ADMIN_ID))
    assert r.status_code == 404

    r = client.post(f"/demands/{demand_id}/status", json={"status": "validee"}, headers=as_user(ADMIN_ID))
    assert r.status_code == 409
    assert r.json["error"] == "invalid_transition"

    r = client.post(
        f"/demands/{demand_id}/status",
        json={"status": "acceptee", "comment": "RAS"},
        headers=as_user(CONTROLLER_ID),
    )
    assert r.status_code == 200
    assert r.json["controller_name"] == "Cécile Contrôle"

    r = client.post(f"/demands/{demand_id}/status", json={"status": "validee"}, headers=as_user(ADMIN_ID))
    assert r.status_code == 200
    assert r.json["status"] == "validee"
    assert r.json["administrator_id"] == ADMIN_ID
    assert r.json["controller_id"] == CONTROLLER_ID

    r = client.get("/notifications/?unread=1", headers=as_user(MEMBER_ID))
    assert len(r.json["notifications"]) == 3
    first = r.json["notifications"][0]["id"]
    assert client.post(f"/notifications/{first}/read", headers=as_user(MEMBER_ID)).json["is_read"] is True
    assert client.post(f"/notifications/{first}/read", headers=as_user(OTHER_MEMBER_ID)).status_code == 404
    assert len(client.get("/notifications/?unread=1", headers=as_user(MEMBER_ID)).json["notifications"]) == 2


def test_demand_http_permissions_and_validation(client):
    assert client.post("/demands/", json=_form(), headers=as_user(CONTROLLER_ID)).status_code == 403

    r = client.post("/demands/", json=_form(amount="900"), headers=as_user(MEMBER_ID))
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"

    demand_id = client.post("/demands/", json=_form(), headers=as_user(MEMBER_ID)).json["id"]
    r = client.post(f"/demands/{demand_id}/status", json={"status": "acceptee"}, headers=as_user(MEMBER_ID))
    assert r.status_code == 403
    r = client.post(f"/demands/{demand_id}/status", json={}, headers=as_user(CONTROLLER_ID))
    assert r.status_code == 400

    assert client.get(f"/demands/{demand_id}", headers=as_user(OTHER_MEMBER_ID)).status_code == 404
    assert client.delete(f"/demands/{demand_id}", headers=as_user(MEMBER_ID)).status_code == 403
    assert client.delete(f"/demands/{demand_id}", headers=as_user(ADMIN_ID)).status_code == 204


def test_demand_http_multipart_submission(client):
    r = client.post(
        "/demands/",
        data={
            "service_type": "Santé",
            "beneficiary_name": "Awa Dossou",
            "beneficiary_relation": "self",
            "amount": "120,50",
            "payment_info": '{"method": "cheque"}',
            "justification_document": (io.BytesIO(b"%PDF ordonnance"), "ordonnance.pdf"),
        },
        content_type="multipart/form-data",
        headers=as_user(MEMBER_ID),
    )
    assert r.status_code == 201
    assert r.json["amount"] == "120.50"
    assert r.json["payment_info"] == {"method": "cheque"}
    assert r.json["justification_document"]["name"] == "ordonnance.pdf"
