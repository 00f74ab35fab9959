import logging

from quart import Blueprint, current_app, g, jsonify

from ..auth.controller import require_admin
from ..common.http import json_body
from ..realtime.publisher import StockPublisher
from .service import InventoryStore

_logger = logging.getLogger(__name__)

bp = Blueprint("inventory", __name__)


def _store() -> InventoryStore:
    return current_app.inventory_store


def _publisher() -> StockPublisher:
    return current_app.stock_publisher


@bp.get("/api/products")
async def products_list():
    return jsonify(await _store().list_products())


@bp.get("/api/products/<int:product_id>")
async def product_detail(product_id: int):
    prod = await _store().get_product(product_id)
    if not prod:
        return jsonify({"error": "Product not found."}), 404
    return jsonify(prod)


@bp.get("/api/metrics")
async def catalog_metrics():
    return jsonify(await _store().summary())


@bp.get("/api/admin/products")
@require_admin
async def admin_products_list():
    return jsonify(await _store().list_products())


@bp.post("/api/admin/products")
@require_admin
async def admin_product_create():
    data = await json_body()
    product_id = await _store().create_product(data)
    _logger.info("Product created by admin | product_id=%s admin=%s", product_id, g.admin.email)
    prod = await _store().get_product(product_id)
    if prod is not None:
        await _publisher().publish(product_id, prod["stock"])
    return jsonify({"id": product_id})


@bp.put("/api/admin/products/<int:product_id>")
@require_admin
async def admin_product_update(product_id: int):
    data = await json_body()
    updated = await _store().update_product(product_id, data)
    if not updated:
        return jsonify({"error": "Product not found."}), 404
    if data.get("stock") is not None:
        prod = await _store().get_product(product_id)
        if prod is not None:
            await _publisher().publish(product_id, prod["stock"])
    return jsonify({"status": "ok"})


@bp.delete("/api/admin/products/<int:product_id>")
@require_admin
async def admin_product_delete(product_id: int):
    deleted = await _store().delete_product(product_id)
    if not deleted:
        return jsonify({"error": "Product not found."}), 404
    await _publisher().publish(product_id, 0)
    return jsonify({"status": "deleted"})
