"""One-time code issue and verification."""

from governance.otp.authenticator import OTPAuthenticator, hash_code

__all__ = ["OTPAuthenticator", "hash_code"]
