"""
Missions blueprint package.

Exposes the Blueprint object; routes live in routes.py.
"""

from .routes import missions_bp  # noqa: F401
