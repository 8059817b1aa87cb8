"""Utility modules."""

from kleinanzeigen_session.utils.accounts import account_key
from kleinanzeigen_session.utils.config import Settings, get_settings
from kleinanzeigen_session.utils.constants import BASE_URL, LOGIN_URL, SELECTORS
from kleinanzeigen_session.utils.logging import get_logger, mask_email, setup_logging


__all__ = [
    "BASE_URL",
    "LOGIN_URL",
    "SELECTORS",
    "Settings",
    "account_key",
    "get_logger",
    "get_settings",
    "mask_email",
    "setup_logging",
]
