"""
API Blueprint - upload processing endpoint

POST /api/process takes a multipart body with `file` and `prompt` and answers
{"success": true, "output": ...} or {"success": false, "error": ...}.
"""
from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .errors import ProcessingError, UpstreamError, ValidationError
from .services import get_processor
from .uploads import format_size, stored_upload, validate_upload

api_bp = Blueprint('api', __name__)


def error_response(message: str, status: int, **extra):
    return jsonify({"success": False, "error": message, **extra}), status


@api_bp.errorhandler(ProcessingError)
def handle_processing_error(err: ProcessingError):
    if isinstance(err, ValidationError):
        current_app.logger.info("Rejected upload: %s", err.message)
    else:
        current_app.logger.error("Processing error: %s", err.message)
    extra = {}
    if isinstance(err, UpstreamError) and err.upstream_status is not None:
        extra["upstream_status"] = err.upstream_status
    return error_response(err.message, err.status_code, **extra)


@api_bp.errorhandler(RequestEntityTooLarge)
def handle_too_large(err: RequestEntityTooLarge):
    # a body under MAX_CONTENT_LENGTH can only trip the form-field limit
    body_limit = current_app.config.get("MAX_CONTENT_LENGTH")
    length = request.content_length
    if body_limit is not None and length is not None and length <= body_limit:
        limit = format_size(current_app.config["MAX_FORM_MEMORY_SIZE"])
        return error_response(f"Prompt too long. Maximum size is {limit}.", 400)
    limit = format_size(current_app.config["MAX_UPLOAD_BYTES"])
    return error_response(f"File too large. Maximum size is {limit}.", 400)


@api_bp.errorhandler(HTTPException)
def handle_http_error(err: HTTPException):
    # malformed multipart bodies and the like
    return error_response(err.description or err.name, err.code or 400)


@api_bp.errorhandler(Exception)
def handle_unexpected(err: Exception):
    current_app.logger.exception("Unexpected processing error")
    if current_app.config.get("VERBOSE_ERRORS", True):
        return error_response(f"{type(err).__name__}: {err}", 500)
    return error_response("Internal Server Error", 500)


@api_bp.route("/api/process", methods=["POST"])
def process():
    processor = get_processor(current_app)
    file = request.files.get("file")
    prompt = (request.form.get("prompt") or "").strip()

    size = validate_upload(file, prompt, processor.settings)
    processor.check_configuration()

    with stored_upload(file, size, processor.settings) as upload:
        current_app.logger.info("Processing upload %s (%s, %d bytes)", upload.original_name, upload.mime_type, upload.size)
        output = processor.process(upload, prompt)

    return jsonify({"success": True, "output": output}), 200
