"""
OTP BACKEND API ROUTES - FLASK BLUEPRINT

JSON view of the live OTP session. Every handler turns the request into a
scheduler event and waits for the reply, so HTTP threads never read or
write the session directly.

EXAMPLES:
curl http://127.0.0.1:5000/api/state
curl http://127.0.0.1:5000/api/providers
curl -X POST http://127.0.0.1:5000/api/providers -H "Content-Type: application/json" -d '{"name": "work", "secret": "JBSWY3DPEHPK3PXP"}'
curl -X POST http://127.0.0.1:5000/api/select/0
curl "http://127.0.0.1:5000/api/browse?path=/home/me"
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from otp_auth.core.errors import (
    BrowseError,
    OTPAuthError,
    SaveError,
    SecretReadError,
    ValidationError,
)
from otp_auth.core.events import (
    AddProvider,
    ListProviders,
    ProviderForm,
    RemoveProvider,
    SelectProvider,
    Snapshot,
)
from otp_auth.core.file_picker import list_directory
from otp_auth.core.secret_source import read_secret_from_file

logger = logging.getLogger(__name__)

otp_bp = Blueprint("otp", __name__, url_prefix="/api")


def _engine():
    return current_app.extensions["otp_engine"]


def _status_for(error: OTPAuthError) -> int:
    if isinstance(error, SaveError):
        return 500
    if isinstance(error, SecretReadError):
        return 404
    return 400


def _reply_json(reply, status: int = 200):
    if reply.error is not None:
        body = {"error": str(reply.error), "state": reply.model.to_dict()}
        return jsonify(body), _status_for(reply.error)
    return jsonify(reply.model.to_dict()), status


def _json_fields(*keys):
    """
    String fields of the JSON object body; a missing or null field is "".

    Raises:
        ValidationError: body is not a JSON object or a field is not a string
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    values = []
    for key in keys:
        value = data.get(key)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValidationError(f"Field '{key}' must be a string")
        values.append(value)
    return values


@otp_bp.route("/state", methods=["GET"])
def get_state():
    """
    CURRENT RENDER MODEL

      curl http://127.0.0.1:5000/api/state
    """
    return _reply_json(_engine().call(Snapshot()))


@otp_bp.route("/providers", methods=["GET"])
def list_providers():
    reply = _engine().call(ListProviders())
    return jsonify([{"index": i, "name": name} for i, name in enumerate(reply.value)])


@otp_bp.route("/providers", methods=["POST"])
def add_provider():
    """
    ADD A PROVIDER

    Body: {"name": "...", "secret": "BASE32"} or {"name": "...", "file_path": "..."}
    201 on success, 400 on invalid input, 500 when providers.json cannot be written.
    """
    try:
        name, secret, file_path = _json_fields("name", "secret", "file_path")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    form = ProviderForm(name=name, secret=secret, file_path=file_path)
    return _reply_json(_engine().call(AddProvider(form)), status=201)


@otp_bp.route("/providers/<int:index>", methods=["DELETE"])
def remove_provider(index):
    return _reply_json(_engine().call(RemoveProvider(index)))


@otp_bp.route("/select/<int:index>", methods=["POST"])
def select_provider(index):
    """
    SELECT A PROVIDER AND GENERATE ITS CODE

      curl -X POST http://127.0.0.1:5000/api/select/0

    An out-of-range index clears the selection (no error).
    """
    return _reply_json(_engine().call(SelectProvider(index)))


@otp_bp.route("/read_secret", methods=["POST"])
def read_secret():
    """Read and validate a secret file. Body: {"file_path": "..."}"""
    try:
        (file_path,) = _json_fields("file_path")
        secret = read_secret_from_file(file_path)
    except OTPAuthError as e:
        return jsonify({"error": str(e)}), _status_for(e)
    return jsonify({"secret": secret})


@otp_bp.route("/browse", methods=["GET"])
def browse():
    """
    LIST A DIRECTORY IN PICKER ORDER

      curl "http://127.0.0.1:5000/api/browse?path=."
    """
    path = request.args.get("path") or None
    try:
        entries = list_directory(path)
    except BrowseError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([
        {"name": e.name, "path": e.path, "is_dir": e.is_dir, "is_parent": e.is_parent}
        for e in entries
    ])
