"""Password lookup for accounts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kleinanzeigen_session.utils.accounts import account_key


if TYPE_CHECKING:
    from pydantic import SecretStr

    from kleinanzeigen_session.utils.config import MarketplaceSettings


class CredentialProvider:
    """
    Resolve the password for an e-mail.

    Per-account entries are matched by account key, so the lookup ignores
    case and punctuation differences in the address. The default password
    applies to accounts without an entry.
    """

    def __init__(
        self,
        credentials: dict[str, str] | None = None,
        default_password: str | None = None,
    ) -> None:
        self._by_key = {account_key(k): v for k, v in (credentials or {}).items()}
        self._default = default_password or None

    @classmethod
    def from_settings(cls, settings: MarketplaceSettings) -> CredentialProvider:
        def reveal(secret: SecretStr | None) -> str | None:
            return secret.get_secret_value() if secret else None

        return cls(
            credentials={k: v.get_secret_value() for k, v in settings.credentials.items()},
            default_password=reveal(settings.password),
        )

    def password_for(self, email: str) -> str | None:
        return self._by_key.get(account_key(email)) or self._default
