"""HTTP blueprints."""

from .admin import admin_bp
from .routes import api_bp

__all__ = ["admin_bp", "api_bp"]
