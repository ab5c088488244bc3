"""
otp_auth package
================

Terminal TOTP authenticator: named providers in providers.json, a live
code display that follows the 30-second window, and a local JSON API.

──────────────────────────────────────────────
Layout
──────────────────────────────────────────────
- otp_auth.core      code derivation, session state, refresh scheduler,
                     secret files, file picker, terminal UI and CLI
- otp_auth.database  providers.json persistence
- otp_auth.backend   Flask JSON API

──────────────────────────────────────────────
Quick example
──────────────────────────────────────────────
>>> from otp_auth.core import otp_engine
>>> otp_engine.generate("GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ", now=59)
'287082'
>>> otp_engine.remaining_seconds(59)
1
"""

__version__ = "1.0.0"
