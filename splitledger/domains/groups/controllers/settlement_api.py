"""Settlement API controllers."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required
from pydantic import ValidationError

from splitledger.core.utils.decorators import require_roles
from splitledger.domains.groups.mappers import map_settlement
from splitledger.domains.groups.schemas.group_schemas import SettlementCreate, SettlementListQuery
from splitledger.domains.groups.services import settlement_service
from splitledger.extensions import limiter

settlement_api_bp = Blueprint("groups_settlement_api", __name__)


def _validation_failed(exc: ValidationError):
    return jsonify({"ok": False, "error": "validation_error", "details": exc.errors(include_url=False)}), 400


@settlement_api_bp.get("/groups/<int:group_id>/settlements")
@jwt_required()
def list_settlements(group_id: int):
    try:
        query = SettlementListQuery.model_validate(request.args.to_dict())
    except ValidationError as exc:
        return _validation_failed(exc)
    page = settlement_service.page_settlements(
        group_id,
        query.status,
        page=query.page,
        per_page=query.per_page,
        actor_id=int(get_jwt_identity()),
    )
    return jsonify(
        {
            "ok": True,
            "items": [map_settlement(s) for s in page["items"]],
            "page": page["page"],
            "pages": page["pages"],
            "total": page["total"],
        }
    )


@settlement_api_bp.post("/groups/<int:group_id>/settlements")
@jwt_required()
@require_roles({"groups:write"})
@limiter.limit("30/minute")
def create_settlement(group_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        data = SettlementCreate.model_validate(payload)
    except ValidationError as exc:
        return _validation_failed(exc)
    user_id = int(get_jwt_identity())
    settlement = settlement_service.create_settlement(
        group_id,
        data.from_user_id or user_id,
        data.to_user_id,
        data.amount,
        data.currency,
        data.notes,
        actor_id=user_id,
    )
    return jsonify({"ok": True, "settlement": map_settlement(settlement)}), 201


@settlement_api_bp.post("/settlements/<int:settlement_id>/paid")
@jwt_required()
@require_roles({"groups:write"})
def mark_paid(settlement_id: int):
    user_id = int(get_jwt_identity())
    settlement = settlement_service.mark_settlement_paid(settlement_id, actor_id=user_id)
    return jsonify({"ok": True, "settlement": map_settlement(settlement)})


@settlement_api_bp.post("/settlements/<int:settlement_id>/cancel")
@jwt_required()
@require_roles({"groups:write"})
def cancel(settlement_id: int):
    user_id = int(get_jwt_identity())
    settlement = settlement_service.cancel_settlement(settlement_id, actor_id=user_id)
    return jsonify({"ok": True, "settlement": map_settlement(settlement)})
