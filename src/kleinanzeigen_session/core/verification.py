"""E-mail verification collaborator interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from kleinanzeigen_session.models.outcomes import VerificationResult


@runtime_checkable
class EmailVerifier(Protocol):
    """
    Completes a secondary e-mail confirmation for an account.

    Implementations read the mailbox (IMAP, OAuth APIs, ...) and follow the
    confirmation link. They report failure through ``VerificationResult``
    instead of raising.
    """

    async def verify(self, account_key: str, timeout: float) -> VerificationResult:
        ...
