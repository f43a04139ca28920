# Overview: Flask API routes for establishments (tenants); parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import establishment_service
from ..validation import ValidationError
from ..decorators import require_establishment


establishments_bp = Blueprint("establishments", __name__, url_prefix="/api/establishments")


@establishments_bp.post("")
def create_establishment_route():
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object body required"}), 400
        establishment = establishment_service.create_establishment(
            name=data.get("name"),
            establishment_type=data.get("establishment_type", "restaurant"),
            timezone=data.get("timezone", "UTC"),
        )
        return jsonify({"establishment": establishment.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create establishment")
        return jsonify({"error": "Internal server error"}), 500


@establishments_bp.get("/<int:establishment_id>")
@require_establishment
def get_establishment_route(establishment_id: int):
    return jsonify({"establishment": g.establishment.to_dict()}), 200
