# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/hospitality/routes/orders.py
"""Order API routes, scoped to one establishment"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service
from ..validation import ValidationError, NotFoundError, PersistenceError
from ..decorators import require_establishment


orders_bp = Blueprint("orders", __name__, url_prefix="/api/establishments/<int:establishment_id>/orders")


@orders_bp.post("")
@require_establishment
def create_order_route(establishment_id: int):
    """
    Place a new order (status=pending, payment_status=pending).

    Body: customer_name, phone, items[{name, price, quantity}],
    optional delivery_address, notes.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400

        order = order_service.create_order(
            establishment_id=g.establishment_id,
            customer_name=data.get("customer_name"),
            phone=data.get("phone"),
            items=data.get("items"),
            delivery_address=data.get("delivery_address"),
            notes=data.get("notes"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError:
        current_app.logger.exception("Failed to persist order")
        return jsonify({"error": "Order could not be saved"}), 503
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_establishment
def list_orders_route(establishment_id: int):
    orders = order_service.list_orders(
        g.establishment_id,
        status=request.args.get("status"),
        payment_status=request.args.get("payment_status"),
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
@require_establishment
def get_order_route(establishment_id: int, order_id: int):
    try:
        order = order_service.get_order(g.establishment_id, order_id)
    except NotFoundError:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.put("/<int:order_id>/status")
@require_establishment
def update_order_status_route(establishment_id: int, order_id: int):
    """
    Partial update of status / payment_status / payment_method.

    The response reports whether sales reconciliation ran and its outcome;
    a reconciliation failure never fails this request.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400

        unknown = set(data) - {"status", "payment_status", "payment_method"}
        if unknown:
            return jsonify({"error": f"Field not allowed: {', '.join(sorted(unknown))}"}), 400

        result = order_service.update_order_status(
            g.establishment_id,
            order_id,
            status=data.get("status"),
            payment_status=data.get("payment_status"),
            payment_method=data.get("payment_method"),
            actor=request.headers.get("X-Actor"),
        )
        return jsonify(result.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError:
        return jsonify({"error": "Order not found"}), 404
    except PersistenceError:
        current_app.logger.exception("Failed to persist order status update")
        return jsonify({"error": "Order could not be updated"}), 503
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
