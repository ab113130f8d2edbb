# Overview: Maps engine errors to JSON responses shared by the API blueprints.

from flask import jsonify

from ..validation import ConflictError, NotFoundError, UpstreamUnavailable, ValidationError

DOMAIN_ERRORS = (ValidationError, ConflictError, NotFoundError, UpstreamUnavailable)


def domain_error(exc: Exception):
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc), **exc.details}), 409
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    return jsonify({"error": "Data store unavailable, try again"}), 503


def with_warnings(body: dict, warnings) -> dict:
    if warnings:
        body["warnings"] = [w.to_dict() for w in warnings]
    return body
