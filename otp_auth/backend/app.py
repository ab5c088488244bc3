"""
FLASK APP - LOCAL OTP API
=========================

Builds the Flask app that exposes the live OTP session as JSON.

MAIN FEATURES
- create_app(engine): app factory, engine = running EngineThread
- CORS enabled so a local frontend can call the API
- /api routes registered from otp_auth/backend/routes.py
- Index page listing the endpoints

The server binds to 127.0.0.1 unless told otherwise; it is a local view
of providers.json, not a shared secret store.
"""

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from otp_auth.backend.routes import otp_bp


def create_app(engine) -> Flask:
    app = Flask(__name__)
    app.extensions["otp_engine"] = engine

    # Allow a frontend on another local port to call the API
    CORS(app)

    app.register_blueprint(otp_bp)

    @app.errorhandler(HTTPException)
    def http_error(e):
        # JSON instead of the default HTML error page
        return jsonify({"error": e.description}), e.code

    @app.route("/", methods=["GET"])
    def index():
        """Basic info and the list of available endpoints."""
        return jsonify({
            "service": "otp-auth",
            "endpoints": {
                "GET /api/state": "current provider, code and remaining seconds",
                "GET /api/providers": "list providers",
                "POST /api/providers": "add a provider {name, secret | file_path}",
                "DELETE /api/providers/<index>": "remove a provider",
                "POST /api/select/<index>": "select a provider",
                "POST /api/read_secret": "read a secret file {file_path}",
                "GET /api/browse?path=": "list a directory",
            },
        })

    return app
