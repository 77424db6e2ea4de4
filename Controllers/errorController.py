from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from Utils.appError import AppError
from Utils.config import is_production

error_bp = Blueprint('errors', __name__)


@error_bp.app_errorhandler(AppError)
def handle_app_error(err):
    """Operational errors raised by controllers and services."""
    log = current_app.logger.error if err.status_code >= 500 else current_app.logger.warning
    log(f"AppError {err.status_code} at {request.method} {request.path}: {err}")
    return jsonify(err.to_json()), err.status_code


@error_bp.app_errorhandler(404)
def not_found_error(e):
    current_app.logger.warning(
        f"404 Not Found: {request.url} | Method: {request.method} | IP: {request.remote_addr}"
    )
    return jsonify({"status": "fail", "message": "Resource not found"}), 404


@error_bp.app_errorhandler(405)
def method_not_allowed(e):
    return jsonify({"status": "fail", "message": "Method not allowed"}), 405


@error_bp.app_errorhandler(429)
def ratelimit_handler(e):
    current_app.logger.warning(f"Rate limit exceeded: {request.remote_addr} {request.path}")
    return jsonify({"status": "fail", "message": "Rate limit exceeded. Please slow down."}), 429


@error_bp.app_errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return jsonify({"status": "fail" if e.code < 500 else "error", "message": e.description}), e.code

    # This includes traceback automatically
    current_app.logger.exception(
        f"Unexpected Application Error: {e} | URL: {request.url} | Method: {request.method} | IP: {request.remote_addr}"
    )

    payload = {"status": "error", "message": "Something went wrong on the server."}
    if not is_production(current_app.config):
        payload["detail"] = str(e)
    return jsonify(payload), 500
