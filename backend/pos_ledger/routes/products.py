# Overview: Flask API routes for products and stock moves; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require authentication.
- Reads are open to any authenticated user (cashiers browse the catalog)
- Writes (create, update, delete, restock, adjust) require the admin role
"""
from flask import Blueprint, request, g

from ..services import products_service, inventory_service, ledger_service
from ..decorators import require_auth, require_role
from .responses import invalid_body, json_object, respond

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - category: str (optional) - equality filter
    - search: str (optional) - case-insensitive substring of name or barcode
    - active_only: "true" | "false" (default "true")
    """
    active_only = request.args.get("active_only", "true").lower() != "false"
    result = products_service.list_products(
        category=request.args.get("category"),
        search=request.args.get("search"),
        active_only=active_only,
    )
    return respond(result)


@products_bp.get("/categories")
@require_auth
def list_categories_route():
    return respond(products_service.list_categories())


@products_bp.get("/barcode/<string:barcode>")
@require_auth
def get_by_barcode_route(barcode: str):
    return respond(products_service.get_product_by_barcode(barcode))


@products_bp.get("/barcode-exists")
@require_auth
def barcode_exists_route():
    result = products_service.barcode_exists(
        request.args.get("barcode", ""),
        exclude_product_id=request.args.get("exclude_product_id", type=int),
    )
    return respond(result)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    return respond(products_service.get_product(product_id))


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = json_object()
    if payload is None:
        return invalid_body()
    return respond(products_service.create_product(g.session_context, payload), success_status=201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    payload = json_object()
    if payload is None:
        return invalid_body()
    return respond(products_service.update_product(product_id, payload))


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    """Soft delete: the product is deactivated, never removed."""
    return respond(products_service.delete_product(product_id))


@products_bp.post("/<int:product_id>/restock")
@require_auth
@require_role("admin")
def restock_route(product_id: int):
    data = json_object()
    if data is None:
        return invalid_body()
    result = inventory_service.restock_product(
        g.session_context,
        product_id,
        data.get("quantity"),
        note=data.get("note"),
    )
    return respond(result)


@products_bp.post("/<int:product_id>/adjust")
@require_auth
@require_role("admin")
def adjust_route(product_id: int):
    data = json_object()
    if data is None:
        return invalid_body()
    result = inventory_service.adjust_stock(
        g.session_context,
        product_id,
        data.get("quantity_delta"),
        note=data.get("note"),
    )
    return respond(result)


@products_bp.get("/<int:product_id>/history")
@require_auth
def history_route(product_id: int):
    limit = request.args.get("limit", type=int)
    return respond(ledger_service.history(product_id, limit=limit))
