"""HTTP API package for the session manager."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from fastapi import FastAPI


def create_app() -> FastAPI:
    """Lazy import of create_app to avoid circular imports."""
    from kleinanzeigen_session.api.main import create_app as _create_app

    return _create_app()


__all__ = ["create_app"]
