# web/imports.py
import logging
import os
import tempfile

from flask import Blueprint, current_app, jsonify, request

from dealerbooks.domain.errors import ImportFailedError, UploadValidationError, ValidationError
from dealerbooks.domain.importer import QuickBooksImportService
from dealerbooks.domain.uploads import CSV_EXTENSIONS, JSON_EXTENSIONS, validate_upload
from dealerbooks.web import get_db

logger = logging.getLogger(__name__)

imports_bp = Blueprint("imports", __name__)


def _flag(name: str) -> bool:
    return str(request.form.get(name) or request.args.get(name) or "").strip().lower() in ("1", "true", "yes", "on")


def _run_upload(allowed_extensions, run):
    """Validate the multipart "file" field, spool it to disk and import it."""
    upload = request.files.get("file")
    fd, path = tempfile.mkstemp(suffix=".upload")
    os.close(fd)
    try:
        if upload is not None:
            upload.save(path)
        validate_upload(
            upload.filename if upload is not None else None,
            os.path.getsize(path),
            allowed_extensions,
            current_app.config["MAX_UPLOAD_KB"],
        )
        result = run(QuickBooksImportService(get_db()), path)
    except UploadValidationError as e:
        return jsonify({"message": str(e), "errors": e.errors}), 422
    except ValidationError as e:
        return jsonify({"message": str(e), "errors": {"file": [str(e)]}}), 422
    except ImportFailedError as e:
        return jsonify({"message": "Import failed", "error": str(e), "errors": e.errors}), 500
    finally:
        os.unlink(path)

    return jsonify(result), 200


@imports_bp.get("/health")
def health():
    return jsonify({"status": "ok"})


@imports_bp.post("/accounting/import/<import_type>")
def import_quickbooks(import_type: str):
    import_as = request.form.get("import_as") or None
    dry_run = _flag("dry_run")

    def run(service, path):
        return service.import_file(import_type, path, import_as=import_as, dry_run=dry_run)

    return _run_upload(CSV_EXTENSIONS, run)


@imports_bp.post("/import/json")
def import_json():
    table_name = request.form.get("table") or None
    dry_run = _flag("dry_run")

    def run(service, path):
        return service.restore_json(path, table_name=table_name, dry_run=dry_run)

    return _run_upload(JSON_EXTENSIONS, run)
