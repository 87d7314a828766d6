"""HTTP API for the verification service."""
from .routes import audit, prior_auth, verifications

__all__ = ["audit", "prior_auth", "verifications"]
