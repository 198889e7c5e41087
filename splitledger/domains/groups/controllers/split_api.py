"""Transaction split API controllers."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required
from pydantic import ValidationError

from splitledger.core.utils.decorators import require_roles
from splitledger.domains.groups.mappers import map_split, map_split_event
from splitledger.domains.groups.schemas.group_schemas import SplitRequest
from splitledger.domains.groups.services import split_service
from splitledger.extensions import limiter

split_api_bp = Blueprint("groups_split_api", __name__)


@split_api_bp.get("/transactions/<int:transaction_id>/splits")
@jwt_required()
def list_splits(transaction_id: int):
    user_id = int(get_jwt_identity())
    splits = split_service.list_splits(transaction_id, actor_id=user_id)
    return jsonify({"ok": True, "items": [map_split(s) for s in splits]})


@split_api_bp.post("/transactions/<int:transaction_id>/split")
@jwt_required()
@require_roles({"groups:write"})
@limiter.limit("60/minute")
def split_transaction(transaction_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        data = SplitRequest.model_validate(payload)
    except ValidationError as exc:
        return (
            jsonify({"ok": False, "error": "validation_error", "details": exc.errors(include_url=False)}),
            400,
        )
    user_id = int(get_jwt_identity())
    result = split_service.apply_split(transaction_id, data.splits, actor_id=user_id)
    return jsonify(
        {
            "ok": True,
            "transaction_id": transaction_id,
            "splits": [map_split(s) for s in result.splits],
            "events": [map_split_event(e) for e in result.events],
        }
    )


@split_api_bp.post("/transactions/<int:transaction_id>/splits/<int:member_id>/paid")
@jwt_required()
@require_roles({"groups:write"})
def mark_split_paid(transaction_id: int, member_id: int):
    user_id = int(get_jwt_identity())
    split = split_service.mark_split_paid(transaction_id, member_id, actor_id=user_id)
    return jsonify({"ok": True, "split": map_split(split)})
