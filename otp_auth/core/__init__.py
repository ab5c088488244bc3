"""Core of otp_auth: OTP engine, session state and the refresh scheduler."""
