"""API route modules."""
from . import audit, prior_auth, verifications

__all__ = ["audit", "prior_auth", "verifications"]
