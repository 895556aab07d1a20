# Overview: Flask API routes for reporting and stock reconciliation; read-only JSON responses.

from flask import Blueprint, request

from ..services import reporting_service, ledger_service
from ..decorators import require_auth, require_role
from .responses import respond

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales-analytics")
@require_auth
@require_role("admin")
def sales_analytics_route():
    """Query params: date_range = today | week | month | year (default month)."""
    return respond(reporting_service.sales_analytics(request.args.get("date_range", "month")))


@reports_bp.get("/inventory-summary")
@require_auth
@require_role("admin")
def inventory_summary_route():
    return respond(reporting_service.inventory_summary())


@reports_bp.get("/today-sales")
@require_auth
def today_sales_route():
    return respond(reporting_service.today_sales())


@reports_bp.get("/reconciliation")
@require_auth
@require_role("admin")
def reconciliation_route():
    """Recompute stock from the ledger and flag products whose counter drifted."""
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    return respond(ledger_service.reconcile_all(include_inactive=include_inactive))


@reports_bp.get("/reconciliation/<int:product_id>")
@require_auth
@require_role("admin")
def reconcile_product_route(product_id: int):
    return respond(ledger_service.reconcile_product(product_id))
