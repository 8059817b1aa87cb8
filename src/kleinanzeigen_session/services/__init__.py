"""Service layer shared by the API and CLI."""

from kleinanzeigen_session.services.session_service import SessionService


__all__ = ["SessionService"]
