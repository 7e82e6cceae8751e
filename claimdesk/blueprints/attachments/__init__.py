"""Attachments blueprint package (photos and documents of a mission)."""

from .routes import attachments_bp  # noqa: F401
