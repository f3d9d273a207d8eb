from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Raised by routes and services for a request that cannot be served."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def api_error(e):
        return jsonify(error=e.message), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify(error=e.description or e.name), e.code

    @app.errorhandler(Exception)
    def server_error(e):
        current_app.logger.exception("Unhandled exception: %s", e)
        return jsonify(error="Internal Server Error"), 500
