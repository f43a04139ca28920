# Overview: Request decorators for API routes (tenant context).

from functools import wraps
from flask import jsonify, g

from .services import establishment_service
from .validation import NotFoundError


def require_establishment(f):
    """
    Resolve the establishment (tenant) named in the URL and establish context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.establishment: the Establishment row
    - g.establishment_id: its id; every query in the route is scoped by it

    Returns 404 if the establishment does not exist and 403 if it has been
    deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        establishment_id = kwargs.get("establishment_id")

        try:
            establishment = establishment_service.get_establishment(establishment_id)
        except NotFoundError:
            return jsonify({"error": "Establishment not found"}), 404

        if not establishment.is_active:
            return jsonify({"error": "Establishment is inactive"}), 403

        g.establishment = establishment
        g.establishment_id = establishment.id

        return f(*args, **kwargs)

    return decorated_function
