from .routes import audit_bp

__all__ = ["audit_bp"]
