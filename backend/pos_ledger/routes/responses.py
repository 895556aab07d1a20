# Overview: Shared helpers turning request bodies and service Results into JSON responses.

from flask import jsonify, request

from ..errors import ValidationError
from ..results import Result


def respond(result: Result, success_status: int = 200):
    status = success_status if result.success else result.http_status
    return jsonify(result.to_dict()), status


def json_object() -> dict | None:
    """
    Request body as a dict. A missing or unparsable body counts as {}.
    Returns None when the body is valid JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def invalid_body():
    return respond(Result.fail(ValidationError("Request body must be a JSON object")))
