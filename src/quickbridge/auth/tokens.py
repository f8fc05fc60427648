"""
Token set and credential store.

The bridge holds exactly one QuickBooks token set at a time. The store is an
explicit object handed to whoever needs it (auth gate, connectors) so tests
can swap in their own and a per-tenant store can replace it later.

Two stores are provided:
- ``InMemoryCredentialStore``: process-lifetime slot, lost on restart.
- ``EncryptedFileCredentialStore``: same slot, mirrored to a Fernet-encrypted
  file so a restart does not force a new login.
"""

from __future__ import annotations

import base64
import json
import logging
import os
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger("quickbridge.auth.tokens")


def _mask(value: str) -> str:
    if not value:
        return "''"
    return f"'{value[:4]}…'" if len(value) > 8 else "'***'"


@dataclass(frozen=True)
class TokenSet:
    """QuickBooks OAuth2 credentials for one company (realm)."""

    access_token: str
    refresh_token: str
    realm_id: str

    @property
    def is_valid(self) -> bool:
        """True when all three fields are non-empty strings."""
        return all(
            isinstance(value, str) and value
            for value in (self.access_token, self.refresh_token, self.realm_id)
        )

    def with_tokens(self, access_token: str, refresh_token: str) -> TokenSet:
        """Return a new set with both tokens replaced and the same realm."""
        return TokenSet(
            access_token=access_token,
            refresh_token=refresh_token,
            realm_id=self.realm_id,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "realm_id": self.realm_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenSet:
        return cls(
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token", ""),
            realm_id=str(data.get("realm_id") or data.get("realmId") or ""),
        )

    def __repr__(self) -> str:
        return (
            f"TokenSet(access_token={_mask(self.access_token)}, "
            f"refresh_token={_mask(self.refresh_token)}, realm_id={self.realm_id!r})"
        )

    __str__ = __repr__


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class CredentialStore(ABC):
    """Single-slot holder of the live token set.

    ``set`` replaces the slot wholesale (last write wins, no merging).
    ``get`` never raises; it returns ``None`` when the slot is empty.
    """

    @abstractmethod
    def get(self) -> TokenSet | None:
        ...

    @abstractmethod
    def set(self, token_set: TokenSet) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    def has(self) -> bool:
        """True iff a token set is stored and it is valid."""
        current = self.get()
        return current is not None and current.is_valid


class InMemoryCredentialStore(CredentialStore):
    """Keeps the token set in process memory. Resets on restart."""

    def __init__(self) -> None:
        self._slot: TokenSet | None = None

    def get(self) -> TokenSet | None:
        return self._slot

    def set(self, token_set: TokenSet) -> None:
        self._slot = token_set

    def clear(self) -> None:
        self._slot = None


# ---------------------------------------------------------------------------
# Encryption helpers
# ---------------------------------------------------------------------------


def derive_machine_key(salt_file: Path) -> bytes:
    """Derive a Fernet key bound to this machine.

    Uses the hostname plus a random salt stored next to the token file, so
    the file is only readable on the host that wrote it.
    """
    if salt_file.exists():
        salt = salt_file.read_bytes()
    else:
        salt = os.urandom(16)
        salt_file.parent.mkdir(parents=True, exist_ok=True)
        salt_file.write_bytes(salt)
        salt_file.chmod(0o600)

    password = socket.gethostname().encode() + b"quickbridge-v1"

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=480000,
    )
    return base64.urlsafe_b64encode(kdf.derive(password))


class EncryptedFileCredentialStore(CredentialStore):
    """Single-slot store mirrored to an encrypted JSON file.

    Usage::

        store = EncryptedFileCredentialStore(Path("~/.quickbridge/tokens.enc"))
        store.set(TokenSet("a1", "r1", "999"))
        # ... process restarts ...
        store = EncryptedFileCredentialStore(Path("~/.quickbridge/tokens.enc"))
        assert store.has()

    Args:
        path: File holding the encrypted token set.
        key: Fernet key. When omitted, one is derived from the machine.
    """

    def __init__(self, path: Path, key: str | bytes | None = None) -> None:
        self.path = Path(path).expanduser()
        if key is None:
            key = derive_machine_key(self.path.with_name(self.path.name + ".salt"))
        self._fernet = Fernet(key)
        self._slot: TokenSet | None = self._load()

    def _load(self) -> TokenSet | None:
        if not self.path.exists():
            return None
        try:
            decrypted = self._fernet.decrypt(self.path.read_bytes())
            token_set = TokenSet.from_dict(json.loads(decrypted))
        except (InvalidToken, OSError, ValueError, AttributeError) as e:
            # ValueError: bad JSON or encoding. AttributeError: payload is not an object
            logger.warning("Ignoring unreadable token file %s: %s", self.path, type(e).__name__)
            return None
        logger.info("Loaded stored QuickBooks tokens for realm %s", token_set.realm_id)
        return token_set

    def _save(self, token_set: TokenSet) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(token_set.to_dict()).encode()
        self.path.write_bytes(self._fernet.encrypt(payload))
        self.path.chmod(0o600)
        logger.debug("Saved QuickBooks tokens to %s", self.path)

    def get(self) -> TokenSet | None:
        return self._slot

    def set(self, token_set: TokenSet) -> None:
        self._slot = token_set
        self._save(token_set)

    def clear(self) -> None:
        self._slot = None
        if self.path.exists():
            self.path.unlink()
            logger.info("Deleted stored QuickBooks tokens")
