"""
Financial accounts and record settlements.

Test blocks:
  1. Financial accounts API: admin-only writes, unique name per organization
  2. Settlements: paid / balance / status recalculation
  3. Settlement guards: overpayment, unsettleable records, finance flags
  4. Conversion of a settlement into a transaction
"""

from datetime import date

import pytest

from sitebook.models import db
from sitebook.models.audit import AuditLog
from sitebook.models.finance import Record, RecordSettlement, Transaction
from sitebook.models.project import ProjectUser
from sitebook.services.settlement_service import recalculate

API = "/api/v1"


def _create_record(client, headers, project_id, amount=90000, type_="liability"):
    res = client.post(
        f"{API}/records",
        json={
            "project_id": project_id, "type": type_, "amount": amount,
            "description": "Steel supplier balance", "due_date": "2024-06-30",
        },
        headers=headers,
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()["id"]


def _settle(client, headers, record_id, amount, **extra):
    body = {"settlement_date": "2024-07-01", "amount_paid": amount, "payment_mode": "bank", **extra}
    return client.post(f"{API}/records/{record_id}/settlements", json=body, headers=headers)


# ── 1. Financial accounts ────────────────────────────────────────────────────


class TestFinancialAccountsApi:
    def test_admin_creates_account(self, client, admin, auth_headers):
        res = client.post(
            f"{API}/financial-accounts",
            json={"name": "HDFC Current", "type": "Bank", "bank_name": "HDFC", "opening_balance": "150000"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["type"] == "bank"
        assert body["opening_balance"] == 150000
        assert AuditLog.query.filter_by(entity="FINANCIAL_ACCOUNT", action="CREATE").count() == 1

    def test_name_unique_per_organization(self, client, admin, other_admin, auth_headers):
        body = {"name": "Site cash", "type": "cash"}
        assert client.post(f"{API}/financial-accounts", json=body, headers=auth_headers(admin)).status_code == 201

        res = client.post(f"{API}/financial-accounts", json=body, headers=auth_headers(admin))
        assert res.status_code == 409

        res = client.post(f"{API}/financial-accounts", json=body, headers=auth_headers(other_admin))
        assert res.status_code == 201

    def test_invalid_account(self, client, admin, auth_headers):
        res = client.post(
            f"{API}/financial-accounts", json={"name": "X", "type": "wallet"}, headers=auth_headers(admin),
        )
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"type"}

        res = client.post(f"{API}/financial-accounts", json={"name": "X", "type": "cash"}, headers=auth_headers(admin))
        assert res.get_json()["details"] == {"name": "must be at least 2 characters"}

    def test_member_lists_but_cannot_write(self, client, admin, member, auth_headers):
        client.post(f"{API}/financial-accounts", json={"name": "Site cash", "type": "cash"}, headers=auth_headers(admin))

        res = client.post(
            f"{API}/financial-accounts", json={"name": "Petty cash", "type": "cash"}, headers=auth_headers(member),
        )
        assert res.status_code == 403

        listed = client.get(f"{API}/financial-accounts", headers=auth_headers(member)).get_json()
        assert [a["name"] for a in listed["items"]] == ["Site cash"]

    def test_update_account(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        first = client.post(f"{API}/financial-accounts", json={"name": "Site cash", "type": "cash"}, headers=headers)
        client.post(f"{API}/financial-accounts", json={"name": "SBI", "type": "bank"}, headers=headers)
        account_id = first.get_json()["id"]

        res = client.put(f"{API}/financial-accounts/{account_id}", json={"name": "Main cash"}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["name"] == "Main cash"

        res = client.put(f"{API}/financial-accounts/{account_id}", json={"name": "SBI"}, headers=headers)
        assert res.status_code == 409
        res = client.put(f"{API}/financial-accounts/{account_id}", json={}, headers=headers)
        assert res.status_code == 400

    def test_update_cross_org_is_not_found(self, client, admin, other_admin, auth_headers):
        created = client.post(
            f"{API}/financial-accounts", json={"name": "Site cash", "type": "cash"}, headers=auth_headers(admin),
        ).get_json()
        res = client.put(
            f"{API}/financial-accounts/{created['id']}", json={"name": "Mine"}, headers=auth_headers(other_admin),
        )
        assert res.status_code == 404


# ── 2. Settlements ───────────────────────────────────────────────────────────


class TestSettlements:
    def test_partial_then_full_payment(self, client, admin, member, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id)

        res = _settle(client, auth_headers(member), record_id, 40000, remarks="first instalment")
        assert res.status_code == 201
        record = res.get_json()["record"]
        assert record["paid_amount"] == 40000
        assert record["balance_amount"] == 50000
        assert record["status"] == "partial"

        res = _settle(client, auth_headers(member), record_id, "50000")
        record = res.get_json()["record"]
        assert record["paid_amount"] == 90000
        assert record["balance_amount"] == 0
        assert record["status"] == "paid"

        assert AuditLog.query.filter_by(entity="SETTLEMENT", action="CREATE").count() == 2

    def test_list_newest_first(self, client, admin, project, auth_headers):
        headers = auth_headers(admin)
        record_id = _create_record(client, headers, project.id)
        _settle(client, headers, record_id, 1000, settlement_date="2024-07-01")
        _settle(client, headers, record_id, 2000, settlement_date="2024-08-01")

        res = client.get(f"{API}/records/{record_id}/settlements", headers=headers)

        body = res.get_json()
        assert body["total"] == 2
        assert [s["amount_paid"] for s in body["items"]] == [2000, 1000]

    def test_recalculate_from_stored_rows(self, org, project, admin):
        record = Record(
            organization_id=org.id, project_id=project.id, type="asset", amount=1000,
            description="Advance to contractor", due_date=date(2024, 6, 30), status="pending",
        )
        db.session.add(record)
        db.session.flush()
        for amount in (250, 250.5):
            db.session.add(RecordSettlement(
                organization_id=org.id, record_id=record.id, settlement_date=date(2024, 7, 1),
                amount_paid=amount, payment_mode="cash", created_by=admin.id,
            ))
        db.session.flush()

        recalculate(record)
        assert record.paid_amount == 500.5
        assert record.balance_amount == 499.5
        assert record.status == "partial"

        RecordSettlement.query.filter_by(record_id=record.id).delete()
        recalculate(record)
        assert record.paid_amount == 0
        assert record.status == "pending"

    def test_amount_edit_rederives_status(self, client, admin, project, auth_headers):
        headers = auth_headers(admin)
        record_id = _create_record(client, headers, project.id)
        _settle(client, headers, record_id, 40000)

        res = client.put(f"{API}/records/{record_id}", json={"amount": 40000}, headers=headers)

        item = res.get_json()["item"]
        assert item["status"] == "paid"
        assert item["balance_amount"] == 0

    def test_settlement_with_account(self, client, admin, project, auth_headers):
        headers = auth_headers(admin)
        account = client.post(
            f"{API}/financial-accounts", json={"name": "SBI", "type": "bank"}, headers=headers,
        ).get_json()
        record_id = _create_record(client, headers, project.id)

        res = _settle(client, headers, record_id, 500, financial_account_id=account["id"])

        assert res.get_json()["settlement"]["financial_account_id"] == account["id"]


# ── 3. Guards ────────────────────────────────────────────────────────────────


class TestSettlementGuards:
    def test_overpayment_rejected(self, client, admin, project, auth_headers):
        headers = auth_headers(admin)
        record_id = _create_record(client, headers, project.id, amount=1000)
        _settle(client, headers, record_id, 600)

        res = _settle(client, headers, record_id, 400.01)

        assert res.status_code == 400
        assert res.get_json()["details"] == {"amount_paid": "must not exceed 400.00"}
        assert RecordSettlement.query.count() == 1

    @pytest.mark.parametrize("amount", [0, -5, "NaN", "Infinity"])
    def test_invalid_amount(self, client, admin, project, auth_headers, amount):
        record_id = _create_record(client, auth_headers(admin), project.id)
        res = _settle(client, auth_headers(admin), record_id, amount)
        assert res.status_code == 400
        assert "amount_paid" in res.get_json()["details"]

    def test_pending_record_cannot_be_settled(self, client, member, project, auth_headers):
        record_id = _create_record(client, auth_headers(member), project.id)

        res = _settle(client, auth_headers(member), record_id, 100)

        assert res.status_code == 409
        assert res.get_json()["details"] == {"status": "pending-create"}

    def test_foreign_account_rejected(self, client, admin, other_admin, project, auth_headers):
        foreign = client.post(
            f"{API}/financial-accounts", json={"name": "Their bank", "type": "bank"}, headers=auth_headers(other_admin),
        ).get_json()
        record_id = _create_record(client, auth_headers(admin), project.id)

        res = _settle(client, auth_headers(admin), record_id, 100, financial_account_id=foreign["id"])

        assert res.status_code == 400
        assert "financial_account_id" in res.get_json()["details"]

    def test_cross_org_record_is_not_found(self, client, admin, other_admin, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id)
        assert _settle(client, auth_headers(other_admin), record_id, 100).status_code == 404
        res = client.get(f"{API}/records/{record_id}/settlements", headers=auth_headers(other_admin))
        assert res.status_code == 404

    def test_finance_flags(self, client, admin, member, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id)
        membership = ProjectUser.query.filter_by(project_id=project.id, user_id=member.id).one()
        membership.can_create_entries = False
        db.session.commit()

        assert _settle(client, auth_headers(member), record_id, 100).status_code == 403
        res = client.get(f"{API}/records/{record_id}/settlements", headers=auth_headers(member))
        assert res.status_code == 200

        membership.can_view_finances = False
        db.session.commit()
        res = client.get(f"{API}/records/{record_id}/settlements", headers=auth_headers(member))
        assert res.status_code == 403

    def test_outsider_is_forbidden(self, client, admin, outsider, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id)
        assert _settle(client, auth_headers(outsider), record_id, 100).status_code == 403


# ── 4. Convert to transaction ────────────────────────────────────────────────


class TestConvertToTransaction:
    def test_admin_conversion_books_transaction(self, client, admin, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id, type_="liability")

        res = _settle(client, auth_headers(admin), record_id, 12000, convert_to_transaction=True)

        settlement = res.get_json()["settlement"]
        txn = db.session.get(Transaction, settlement["transaction_id"])
        assert txn.approval_status == "approved"
        assert txn.type == "expense"
        assert txn.amount == 12000
        assert txn.project_id == project.id
        assert txn.payment_mode == "bank"
        assert txn.description.startswith(f"Settlement of record #{record_id}")

    def test_member_conversion_waits_for_approval(self, client, admin, member, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id, type_="asset")

        res = _settle(client, auth_headers(member), record_id, 5000, convert_to_transaction="yes")

        assert res.status_code == 201
        txn = db.session.get(Transaction, res.get_json()["settlement"]["transaction_id"])
        assert txn.approval_status == "pending-create"
        assert txn.type == "income"
        assert txn.submitted_by == member.id
        assert res.get_json()["record"]["status"] == "partial"

    def test_no_conversion_by_default(self, client, admin, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id)
        res = _settle(client, auth_headers(admin), record_id, 100)
        assert res.get_json()["settlement"]["transaction_id"] is None
        assert Transaction.query.count() == 0

    def test_invalid_conversion_flag(self, client, admin, project, auth_headers):
        record_id = _create_record(client, auth_headers(admin), project.id)
        res = _settle(client, auth_headers(admin), record_id, 100, convert_to_transaction="maybe")
        assert res.status_code == 400
        assert RecordSettlement.query.count() == 0
