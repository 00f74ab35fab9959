from quart import Blueprint, current_app, jsonify

from ..auth.controller import require_admin
from ..common.http import json_body
from .service import OrderEngine

bp = Blueprint("orders", __name__)


def _engine() -> OrderEngine:
    return current_app.order_engine


@bp.post("/api/orders")
async def order_create():
    data = await json_body()
    placed = await _engine().place_order(data.get("name"), data.get("email"), data.get("items"))
    return jsonify({"order_id": placed.order_id, "total_cents": placed.total_cents})


@bp.get("/api/admin/orders")
@require_admin
async def admin_orders_list():
    limit = current_app.storefront_settings.ADMIN_ORDERS_LIMIT
    return jsonify(await _engine().list_recent_orders(limit=limit))
