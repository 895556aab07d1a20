# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Checkout and sale lookups. Any authenticated user may check out."""

from flask import Blueprint, request, g

from ..services import sales_service
from ..decorators import require_auth
from .responses import invalid_body, json_object, respond


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Body:
    {
      "items": [{"product_id": 1, "quantity": 2, "unit_price_cents": 1999}, ...],
      "payment_method": "Cash" | "Transfer"
    }

    The client should re-fetch product stock after any response,
    successful or not.
    """
    data = json_object()
    if data is None:
        return invalid_body()
    result = sales_service.create_sale(
        g.session_context,
        data.get("items"),
        data.get("payment_method"),
    )
    return respond(result, success_status=201)


@sales_bp.get("")
@require_auth
def list_sales_route():
    result = sales_service.list_sales(
        start_date=request.args.get("start_date"),
        end_date=request.args.get("end_date"),
        payment_method=request.args.get("payment_method"),
    )
    return respond(result)


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    return respond(sales_service.get_sale(sale_id))
