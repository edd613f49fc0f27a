from flask import request

from biblioteca.errors.domain import ValidationError


def json_object():
    """Return the request's JSON body, which must be an object when present."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
