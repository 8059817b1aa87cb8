"""Account key derivation."""

from __future__ import annotations

import re


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def account_key(email: str) -> str:
    """
    Normalize an e-mail address into a storage key.

    Lowercases and collapses every run of non-alphanumeric characters into a
    single underscore, so ``Max.Muster@Web.de`` becomes ``max_muster_web_de``.

    Raises:
        ValueError: If the e-mail is empty or has no alphanumeric characters
    """
    key = _NON_ALNUM.sub("_", email.strip().lower()).strip("_")
    if not key:
        raise ValueError(f"Cannot derive account key from {email!r}")
    return key
