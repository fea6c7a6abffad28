"""
Finance Blueprint — financial accounts and record settlements.

Endpoints:
    GET  /api/v1/financial-accounts                  — accounts of the organization
    POST /api/v1/financial-accounts                  — create (admin)
    PUT  /api/v1/financial-accounts/<id>             — update (admin)
    GET  /api/v1/records/<id>/settlements            — payments against a record
    POST /api/v1/records/<id>/settlements            — record a payment

Settlement body:
    { "settlement_date": "2024-07-01", "amount_paid": 25000, "payment_mode": "bank",
      "financial_account_id": 3, "remarks": "...", "convert_to_transaction": true }
"""

from flask import Blueprint, g, jsonify, request

from sitebook.middleware.auth import require_admin, require_auth
from sitebook.services import financial_account_service, settlement_service
from sitebook.services.entity_registry import get_kind

finance_bp = Blueprint("finance", __name__, url_prefix="/api/v1")


# ── Financial accounts ───────────────────────────────────────────────────────

@finance_bp.route("/financial-accounts", methods=["GET"])
@require_auth
def list_accounts():
    accounts = financial_account_service.list_accounts(g.actor.organization_id)
    return jsonify({"items": [a.to_dict() for a in accounts], "total": len(accounts)})


@finance_bp.route("/financial-accounts", methods=["POST"])
@require_admin
def create_account():
    account = financial_account_service.create_account(g.actor, request.get_json(silent=True) or {})
    return jsonify(account.to_dict()), 201


@finance_bp.route("/financial-accounts/<int:account_id>", methods=["PUT"])
@require_admin
def update_account(account_id):
    account = financial_account_service.update_account(g.actor, account_id, request.get_json(silent=True) or {})
    return jsonify(account.to_dict())


# ── Record settlements ───────────────────────────────────────────────────────

@finance_bp.route("/records/<int:record_id>/settlements", methods=["GET"])
@require_auth
def list_settlements(record_id):
    settlements = settlement_service.list_settlements(g.actor, record_id)
    return jsonify({"items": [s.to_dict() for s in settlements], "total": len(settlements)})


@finance_bp.route("/records/<int:record_id>/settlements", methods=["POST"])
@require_auth
def create_settlement(record_id):
    settlement, record = settlement_service.record_settlement(
        g.actor, record_id, request.get_json(silent=True) or {},
    )
    return jsonify({
        "settlement": settlement.to_dict(),
        "record": get_kind("record").serialize(record, g.actor.role),
    }), 201
