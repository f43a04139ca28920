# Overview: Flask API routes for daily sales (ledger reads, backfill, audit); returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import reconciliation_service, diagnostics_service
from ..validation import ValidationError, NotFoundError, PersistenceError
from ..decorators import require_establishment
from hospitality.time_utils import parse_iso_date

"""
Date semantics:
- start_date / end_date / date are calendar days (YYYY-MM-DD) in the
  establishment's timezone.
- start_date and end_date are both inclusive.
"""

sales_bp = Blueprint("sales", __name__, url_prefix="/api/establishments/<int:establishment_id>")


@sales_bp.get("/sales")
@require_establishment
def list_daily_sales_route(establishment_id: int):
    try:
        start_date = parse_iso_date(request.args.get("start_date"))
        end_date = parse_iso_date(request.args.get("end_date"))
    except ValueError:
        return jsonify({"error": "start_date and end_date must be YYYY-MM-DD"}), 400

    if start_date and end_date and start_date > end_date:
        return jsonify({"error": "start_date must be on or before end_date"}), 400

    limit = request.args.get("limit", default=None, type=int)
    if limit is not None:
        limit = max(1, min(limit, 1000))

    entries = reconciliation_service.list_ledger_entries(
        g.establishment_id, start_date=start_date, end_date=end_date, limit=limit,
    )
    return jsonify({
        "items": [e.to_dict() for e in entries],
        "count": len(entries),
        "total": sum(e.amount for e in entries),
    }), 200


@sales_bp.get("/sales/summary")
@require_establishment
def sales_summary_route(establishment_id: int):
    return jsonify({"sales": reconciliation_service.get_sales_summary(g.establishment_id)}), 200


@sales_bp.post("/sales/backfill")
@require_establishment
def backfill_sales_route(establishment_id: int):
    """
    Operational tool: post qualifying orders that never reached the ledger.

    Body: {"by": "paid" | "served"} (default "paid").
    """
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400
        result = diagnostics_service.run_backfill(
            g.establishment_id,
            data.get("by", "paid"),
            actor=request.headers.get("X-Actor"),
        )
        return jsonify(result.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError:
        current_app.logger.exception("Backfill could not complete")
        return jsonify({"error": "Backfill could not complete"}), 503
    except Exception:
        current_app.logger.exception("Failed to backfill sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/sales/audit")
@require_establishment
def audit_sales_route(establishment_id: int):
    try:
        day = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400

    return jsonify({"audit": diagnostics_service.audit_sales(g.establishment_id, day)}), 200


@sales_bp.get("/sales/order-counts")
@require_establishment
def order_counts_route(establishment_id: int):
    return jsonify(diagnostics_service.order_status_counts(g.establishment_id)), 200


@sales_bp.get("/orders/<int:order_id>/sales-status")
@require_establishment
def order_sales_status_route(establishment_id: int, order_id: int):
    try:
        return jsonify(diagnostics_service.get_order_sales_status(g.establishment_id, order_id)), 200
    except NotFoundError:
        return jsonify({"error": "Order not found"}), 404
