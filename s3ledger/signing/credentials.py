"""
Credential Providers

The store never reads ambient credential state itself. It asks an injected
provider for credentials before signing each request, so rotated or
short-lived credentials are picked up without reopening the store.

Providers:
- StaticCredentialProvider: fixed credentials (tests, explicit config)
- BotocoreCredentialProvider: botocore's resolver chain (environment
  variables, shared credentials file, container/instance role)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from s3ledger.core.errors import SigningError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Credentials:
    """
    Short-lived request credentials.

    Never persisted by the store; __repr__ masks the secret parts.
    """
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.access_key_id) and bool(self.secret_access_key)

    def __repr__(self) -> str:
        return (
            f"Credentials(access_key_id={self.access_key_id[:4]}..., "
            f"session_token={'set' if self.session_token else 'unset'})"
        )


@runtime_checkable
class CredentialProvider(Protocol):
    """Supplies credentials on demand."""

    async def credentials(self) -> Credentials:
        """
        Return current credentials.

        Raises:
            SigningError: If no complete credentials are available.
        """
        ...


class StaticCredentialProvider:
    """Always returns the same credentials."""

    __slots__ = ("_credentials",)

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        session_token: Optional[str] = None,
    ) -> None:
        self._credentials = Credentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=session_token,
        )

    async def credentials(self) -> Credentials:
        if not self._credentials.is_complete():
            raise SigningError.missing_credentials("static credentials are incomplete")
        return self._credentials


class BotocoreCredentialProvider:
    """
    Resolve credentials through botocore's default provider chain.

    Resolution may hit the instance metadata service, so it runs in a worker
    thread. botocore refreshes expiring role credentials itself; each call
    takes a frozen snapshot so access key, secret and token always belong to
    the same generation.
    """

    __slots__ = ("_session", "_resolved")

    def __init__(self, profile: Optional[str] = None, session: Any = None) -> None:
        if session is None:
            import botocore.session

            session = botocore.session.Session(profile=profile)
        self._session = session
        self._resolved: Any = None

    def _snapshot(self) -> Credentials:
        from botocore.exceptions import BotoCoreError

        try:
            if self._resolved is None:
                self._resolved = self._session.get_credentials()
            if self._resolved is None:
                raise SigningError.missing_credentials(
                    "no credentials found in environment, shared credentials file, "
                    "or instance metadata"
                )
            # Refreshes expiring role credentials; may call STS or IMDS
            frozen = self._resolved.get_frozen_credentials()
        except BotoCoreError as e:
            raise SigningError.missing_credentials(str(e), cause=e) from e
        return Credentials(
            access_key_id=frozen.access_key or "",
            secret_access_key=frozen.secret_key or "",
            session_token=frozen.token,
        )

    async def credentials(self) -> Credentials:
        creds = await asyncio.to_thread(self._snapshot)
        if not creds.is_complete():
            raise SigningError.missing_credentials("resolved credentials are incomplete")
        return creds
