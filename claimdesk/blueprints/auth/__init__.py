"""
Auth blueprint package.

This file just exposes the Blueprint object to be imported in claimdesk.__init__.
The actual routes are in routes.py.
"""

from .routes import auth_bp  # noqa: F401
