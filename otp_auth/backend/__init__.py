"""
BACKEND PACKAGE

Local Flask JSON API on top of the refresh engine.
"""

from otp_auth.backend.app import create_app
from otp_auth.backend.engine_thread import EngineThread

__all__ = ["create_app", "EngineThread"]
