"""
Domain Services Package

Architectural Intent:
- Contains domain services implementing engine-level logic
"""

from keel.domain.services.secret_resolver import SecretResolver

__all__ = ["SecretResolver"]
