"""Group balance API controllers."""

from __future__ import annotations

from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt_identity, jwt_required

from splitledger.domains.groups.mappers import map_debt, map_group_balances
from splitledger.domains.groups.services import balance_service

balance_api_bp = Blueprint("groups_balance_api", __name__)


@balance_api_bp.get("/groups/<int:group_id>/balances")
@jwt_required()
def get_balances(group_id: int):
    user_id = int(get_jwt_identity())
    balances = balance_service.compute_balances(group_id, actor_id=user_id)
    return jsonify({"ok": True, **map_group_balances(balances)})


@balance_api_bp.get("/groups/<int:group_id>/balances/debts")
@jwt_required()
def get_debts(group_id: int):
    user_id = int(get_jwt_identity())
    debts = balance_service.list_debts(group_id, actor_id=user_id)
    return jsonify({"ok": True, "group_id": group_id, "items": [map_debt(d) for d in debts]})
