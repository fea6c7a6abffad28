"""
Tests for sitebook/services/approval_gate.py

Test blocks:
  1. Mutation Router: direct vs gated create / edit / delete
  2. Decision Processor: approve / reject per pending operation
  3. Rejection counter & lock
  4. Guards: non-admin decider, not-pending, cross-organization
  5. Policy variations (relaxed preset)
  6. Side effects: audit rows, notifications, best-effort failures
"""

from datetime import date

import pytest

from sitebook.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from sitebook.models import db
from sitebook.models.audit import AuditLog
from sitebook.models.finance import Transaction
from sitebook.models.notification import Notification
from sitebook.models.site import Document, Photo, Task
from sitebook.services import audit_service
from sitebook.services.approval_gate import ApprovalGate
from sitebook.services.approval_policy import LOCK_THRESHOLD, UNSET, ApprovalPolicy
from sitebook.services.entity_registry import get_kind
from sitebook.services.permission_service import Actor


def _txn_fields(project, **overrides):
    fields = {
        "project_id": project.id,
        "type": "expense",
        "amount": 12500,
        "description": "Cement, 50 bags",
        "date": "2024-03-14",
        "payment_mode": "bank",
    }
    fields.update(overrides)
    return fields


def _approved_document(org, project, admin, description="Site plan rev A"):
    doc = Document(
        organization_id=org.id,
        project_id=project.id,
        document_name="Site plan",
        document_url="https://files.acme.io/plan.pdf",
        description=description,
        created_by=admin.id,
    )
    db.session.add(doc)
    db.session.commit()
    return doc


# ── 1. Mutation Router ───────────────────────────────────────────────────────


class TestSubmitCreate:
    def test_user_create_is_pending(self, project, member_actor):
        """Non-admin create lands as pending-create with no overlay."""
        result = ApprovalGate(get_kind("transaction")).create(member_actor, _txn_fields(project))

        txn = db.session.get(Transaction, result.entity_id)
        assert result.gated is True
        assert result.status == "pending-create"
        assert txn.approval_status == "pending-create"
        assert txn.pending_data is None
        assert txn.submitted_by == member_actor.id
        assert txn.created_by == member_actor.id
        assert txn.amount == 12500
        assert txn.date == date(2024, 3, 14)

    def test_admin_create_is_approved(self, project, admin_actor):
        result = ApprovalGate(get_kind("transaction")).create(admin_actor, _txn_fields(project))

        txn = db.session.get(Transaction, result.entity_id)
        assert result.gated is False
        assert txn.approval_status == "approved"
        assert txn.submitted_by is None

    def test_create_keeps_request_message(self, project, member_actor):
        result = ApprovalGate(get_kind("task")).create(
            member_actor,
            {"project_id": project.id, "title": "Shuttering for slab 3"},
            request_message="  needed before Monday ",
        )
        assert result.entity.request_message == "needed before Monday"

    def test_create_missing_required_fields(self, project, member_actor):
        with pytest.raises(ValidationError) as exc:
            ApprovalGate(get_kind("transaction")).create(member_actor, {"project_id": project.id})
        assert set(exc.value.details) >= {"type", "amount", "description", "date"}
        assert Transaction.query.count() == 0

    def test_create_rejects_foreign_reference(self, project, other_project, member_actor):
        with pytest.raises(ValidationError) as exc:
            ApprovalGate(get_kind("task")).create(
                member_actor, {"project_id": other_project.id, "title": "Sneaky"},
            )
        assert "project_id" in exc.value.details

    def test_unknown_operation(self, member_actor):
        with pytest.raises(ValidationError):
            ApprovalGate(get_kind("task")).submit("archive", member_actor)


class TestSubmitEdit:
    def test_admin_edit_applies_directly(self, org, project, admin, admin_actor):
        """Admin edit updates canonical fields and never sets pending_data."""
        task = Task(organization_id=org.id, project_id=project.id, title="Excavation")
        db.session.add(task)
        db.session.commit()

        result = ApprovalGate(get_kind("task")).edit(admin_actor, task, {"status": "done"})

        assert result.gated is False
        assert task.status == "done"
        assert task.approval_status == "approved"
        assert task.pending_data is None

    def test_user_edit_parks_overlay(self, org, project, admin, member_actor):
        """Canonical untouched, overlay holds the proposal."""
        doc = _approved_document(org, project, admin)

        result = ApprovalGate(get_kind("document")).edit(
            member_actor, doc, {"description": "Site plan rev B"},
        )

        assert result.gated is True
        assert doc.approval_status == "pending-edit"
        assert doc.pending_data == {"description": "Site plan rev B"}
        assert doc.description == "Site plan rev A"
        assert doc.submitted_by == member_actor.id

    def test_overlay_stores_json_dates(self, project, admin_actor, member_actor):
        created = ApprovalGate(get_kind("transaction")).create(admin_actor, _txn_fields(project))
        txn = created.entity

        ApprovalGate(get_kind("transaction")).edit(member_actor, txn, {"date": "15.03.2024"})

        assert txn.pending_data == {"date": "2024-03-15"}
        assert txn.date == date(2024, 3, 14)

    def test_resubmission_replaces_overlay(self, org, project, admin, member_actor):
        """Last write wins while an edit is pending."""
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))

        gate.edit(member_actor, doc, {"description": "first try"})
        gate.edit(member_actor, doc, {"document_name": "Site plan v2"})

        assert doc.pending_data == {"document_name": "Site plan v2"}

    def test_edit_without_fields(self, org, project, admin, member_actor):
        doc = _approved_document(org, project, admin)
        with pytest.raises(ValidationError):
            ApprovalGate(get_kind("document")).edit(member_actor, doc, {"unknown": 1})

    def test_edit_cannot_blank_required_column(self, org, project, admin, member_actor):
        doc = _approved_document(org, project, admin)
        with pytest.raises(ValidationError) as exc:
            ApprovalGate(get_kind("document")).edit(member_actor, doc, {"document_name": ""})
        assert "document_name" in exc.value.details

    def test_unset_fields_are_not_proposed(self, org, project, admin, member_actor):
        doc = _approved_document(org, project, admin)
        ApprovalGate(get_kind("document")).edit(
            member_actor, doc, {"description": "rev C", "document_name": UNSET},
        )
        assert doc.pending_data == {"description": "rev C"}

    def test_edit_requires_matching_model(self, org, project, admin, member_actor):
        doc = _approved_document(org, project, admin)
        with pytest.raises(ValidationError):
            ApprovalGate(get_kind("photo")).edit(member_actor, doc, {"description": "x"})


class TestSubmitDelete:
    def test_admin_delete_removes_row(self, org, project, admin, admin_actor):
        doc = _approved_document(org, project, admin)
        doc_id = doc.id

        result = ApprovalGate(get_kind("document")).delete(admin_actor, doc)

        assert result.deleted is True
        assert result.entity is None
        assert db.session.get(Document, doc_id) is None

    def test_user_delete_is_pending(self, org, project, admin, member_actor):
        doc = _approved_document(org, project, admin)

        result = ApprovalGate(get_kind("document")).delete(member_actor, doc, request_message="duplicate")

        assert result.status == "pending-delete"
        assert doc.pending_data is None
        assert doc.request_message == "duplicate"
        assert db.session.get(Document, doc.id) is not None


# ── 2. Decision Processor ────────────────────────────────────────────────────


class TestResolve:
    def test_approve_pending_create(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))

        result = gate.resolve(created.entity, "approved", admin_actor)

        assert result.status == "approved"
        assert result.operation == "create"
        assert created.entity.approval_status == "approved"
        assert created.entity.pending_data is None

    def test_approve_pending_edit_merges_overlay(self, org, project, admin, admin_actor, member_actor):
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))
        gate.edit(member_actor, doc, {"description": "Site plan rev B"})

        gate.resolve(doc, "approved", admin_actor, remarks="ok")

        assert doc.description == "Site plan rev B"
        assert doc.document_name == "Site plan"
        assert doc.approval_status == "approved"
        assert doc.pending_data is None
        assert doc.remarks == "ok"

    def test_approve_pending_edit_restores_dates(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        txn = gate.create(admin_actor, _txn_fields(project)).entity
        gate.edit(member_actor, txn, {"date": "2024-04-01", "amount": "13000.50"})

        gate.resolve(txn, "approved", admin_actor)

        assert txn.date == date(2024, 4, 1)
        assert txn.amount == 13000.5

    def test_approve_pending_delete_removes_row(self, org, project, admin, admin_actor, member_actor):
        doc = _approved_document(org, project, admin)
        doc_id = doc.id
        gate = ApprovalGate(get_kind("document"))
        gate.delete(member_actor, doc)

        result = gate.resolve(doc, "approved", admin_actor)

        assert result.deleted is True
        assert result.entity is None
        assert db.session.get(Document, doc_id) is None

    def test_reject_pending_edit(self, org, project, admin, admin_actor, member_actor):
        """Overlay discarded, canonical untouched, counter incremented."""
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))
        gate.edit(member_actor, doc, {"description": "new text"})

        result = gate.resolve(doc, "rejected", admin_actor, remarks="not descriptive enough")

        assert result.status == "rejected"
        assert doc.approval_status == "rejected"
        assert doc.pending_data is None
        assert doc.remarks == "not descriptive enough"
        assert doc.rejection_count == 1
        assert doc.description == "Site plan rev A"

    def test_reject_pending_create_keeps_row(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))

        gate.resolve(created.entity, "rejected", admin_actor)

        txn = db.session.get(Transaction, created.entity_id)
        assert txn is not None
        assert txn.approval_status == "rejected"
        assert txn.rejection_count == 1
        assert txn.remarks is None

    def test_reject_pending_delete_keeps_row(self, org, project, admin, admin_actor, member_actor):
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))
        gate.delete(member_actor, doc)

        gate.resolve(doc, "rejected", admin_actor)

        assert db.session.get(Document, doc.id).approval_status == "rejected"

    def test_invalid_decision(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))
        with pytest.raises(ValidationError):
            gate.resolve(created.entity, "maybe", admin_actor)

    def test_approve_clears_stale_remarks(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        txn = gate.create(member_actor, _txn_fields(project)).entity
        gate.resolve(txn, "rejected", admin_actor, remarks="wrong amount")
        gate.edit(member_actor, txn, {"amount": 11000})

        gate.resolve(txn, "approved", admin_actor)

        assert txn.remarks is None
        assert txn.amount == 11000


# ── 3. Rejection counter & lock ──────────────────────────────────────────────


class TestRejectionLock:
    def test_counter_only_increases(self, org, project, admin, admin_actor, member_actor):
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))
        counts = []
        for i in range(LOCK_THRESHOLD):
            gate.edit(member_actor, doc, {"description": f"attempt {i}"})
            gate.resolve(doc, "rejected", admin_actor)
            counts.append(doc.rejection_count)
        gate.edit(admin_actor, doc, {"description": "admin fix"})

        assert counts == [1, 2, 3]
        assert doc.rejection_count == LOCK_THRESHOLD

    def test_user_locked_after_threshold(self, org, project, admin, admin_actor, member_actor):
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))
        for i in range(LOCK_THRESHOLD):
            gate.edit(member_actor, doc, {"description": f"attempt {i}"})
            gate.resolve(doc, "rejected", admin_actor)

        with pytest.raises(ForbiddenError):
            gate.edit(member_actor, doc, {"description": "one more"})
        with pytest.raises(ForbiddenError):
            gate.delete(member_actor, doc)
        assert doc.approval_status == "rejected"

    def test_locked_photo_rejects_forced_user_edit(self, org, project, admin, member_actor):
        """The gate itself re-checks the lock."""
        photo = Photo(
            organization_id=org.id,
            project_id=project.id,
            image_url="https://files.acme.io/p/1.jpg",
            description="north face",
            rejection_count=3,
            approval_status="rejected",
        )
        db.session.add(photo)
        db.session.commit()

        kind = get_kind("photo")
        assert kind.serialize(photo, "user")["is_locked"] is True
        with pytest.raises(ForbiddenError):
            ApprovalGate(kind).edit(member_actor, photo, {"description": "south face"})
        assert photo.description == "north face"
        assert photo.pending_data is None

    def test_admin_unaffected_by_lock(self, org, project, admin, admin_actor):
        photo = Photo(
            organization_id=org.id,
            project_id=project.id,
            image_url="https://files.acme.io/p/1.jpg",
            rejection_count=5,
            approval_status="rejected",
        )
        db.session.add(photo)
        db.session.commit()

        ApprovalGate(get_kind("photo")).edit(admin_actor, photo, {"description": "fixed"})

        assert photo.description == "fixed"
        assert photo.approval_status == "approved"
        assert photo.rejection_count == 5

    def test_resubmission_allowed_below_threshold(self, org, project, admin, admin_actor, member_actor):
        doc = _approved_document(org, project, admin)
        gate = ApprovalGate(get_kind("document"))
        gate.edit(member_actor, doc, {"description": "v1"})
        gate.resolve(doc, "rejected", admin_actor)

        result = gate.edit(member_actor, doc, {"description": "v2"})

        assert result.status == "pending-edit"
        assert doc.pending_data == {"description": "v2"}


# ── 4. Guards ────────────────────────────────────────────────────────────────


class TestResolveGuards:
    def test_non_admin_cannot_decide(self, project, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))
        with pytest.raises(ForbiddenError):
            gate.resolve(created.entity, "approved", member_actor)

    def test_deciding_twice_is_invalid_state(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))
        gate.resolve(created.entity, "approved", admin_actor)

        with pytest.raises(InvalidStateError) as exc:
            gate.resolve(created.entity, "rejected", admin_actor)
        assert exc.value.current == "approved"
        assert created.entity.rejection_count == 0

    def test_cross_org_admin_gets_not_found(self, project, member_actor, other_admin):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))
        with pytest.raises(NotFoundError):
            gate.resolve(created.entity, "approved", Actor.from_user(other_admin))
        assert created.entity.approval_status == "pending-create"

    def test_cross_org_edit_gets_not_found(self, org, project, admin, other_admin):
        doc = _approved_document(org, project, admin)
        with pytest.raises(NotFoundError):
            ApprovalGate(get_kind("document")).edit(
                Actor.from_user(other_admin), doc, {"description": "x"},
            )


# ── 5. Policy variations ─────────────────────────────────────────────────────


class TestRelaxedPolicy:
    def test_user_create_is_direct_edit_is_gated(self, project, member_actor):
        gate = ApprovalGate(get_kind("task"), policy=ApprovalPolicy.preset("relaxed"))

        created = gate.create(member_actor, {"project_id": project.id, "title": "Curing"})
        edited = gate.edit(member_actor, created.entity, {"status": "done"})

        assert created.status == "approved"
        assert edited.status == "pending-edit"
        assert created.entity.status == "todo"


# ── 6. Side effects ──────────────────────────────────────────────────────────


class TestSideEffects:
    def test_submit_and_decision_are_audited(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))
        gate.resolve(created.entity, "rejected", admin_actor, remarks="duplicate bill")

        logs = AuditLog.query.filter_by(entity="TRANSACTION").order_by(AuditLog.id).all()
        assert [log.action for log in logs] == ["SUBMIT", "REJECT"]
        assert logs[0].user_id == member_actor.id
        assert logs[1].user_id == admin_actor.id
        assert logs[1].meta["remarks"] == "duplicate bill"
        assert logs[1].entity_id == str(created.entity_id)

    def test_direct_mutations_are_audited(self, project, admin_actor):
        gate = ApprovalGate(get_kind("task"))
        task = gate.create(admin_actor, {"project_id": project.id, "title": "Plaster"}).entity
        gate.edit(admin_actor, task, {"status": "in-progress"})
        gate.delete(admin_actor, task)

        actions = [log.action for log in AuditLog.query.order_by(AuditLog.id).all()]
        assert actions == ["CREATE", "UPDATE", "DELETE"]

    def test_submission_notifies_admins(self, project, admin, member_actor, make_user):
        second_admin = make_user("partner@acme.io", role="admin")

        ApprovalGate(get_kind("transaction")).create(member_actor, _txn_fields(project))

        recipients = {n.user_id for n in Notification.query.filter_by(type="submitted").all()}
        assert recipients == {admin.id, second_admin.id}

    def test_decision_notifies_submitter(self, project, admin_actor, member_actor):
        gate = ApprovalGate(get_kind("transaction"))
        created = gate.create(member_actor, _txn_fields(project))
        gate.resolve(created.entity, "approved", admin_actor)

        notif = Notification.query.filter_by(user_id=member_actor.id).one()
        assert notif.type == "approved"
        assert notif.item_type == "transaction"
        assert notif.item_id == created.entity_id

    def test_audit_failure_does_not_undo_mutation(self, project, member_actor, monkeypatch):
        def _boom(**kwargs):
            raise RuntimeError("audit table unavailable")

        monkeypatch.setattr(audit_service, "write_audit", _boom)

        result = ApprovalGate(get_kind("transaction")).create(member_actor, _txn_fields(project))

        assert db.session.get(Transaction, result.entity_id).approval_status == "pending-create"
        assert AuditLog.query.count() == 0
