"""User accounts and identity token verification."""
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

import yaml

from quiz_tracker.db import get_connection
from quiz_tracker.errors import AuthenticationError, UserNotFound
from quiz_tracker.models import User


@dataclass(frozen=True)
class Identity:
    """A verified identity as issued by the identity provider."""
    uid: str
    email: str = ""
    display_name: str = ""


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Identity:
        """Return the identity behind `token` or raise AuthenticationError."""
        ...


class StaticTokenVerifier:
    """Verifier backed by a fixed token table.

    The table maps each bearer token to `{uid, email, display_name}`. Useful
    for local deployments and tests where no identity provider is reachable.
    """

    def __init__(self, tokens: dict):
        self._tokens = {
            token: Identity(
                uid=str(info["uid"]),
                email=info.get("email", ""),
                display_name=info.get("display_name", ""),
            )
            for token, info in tokens.items()
        }

    @classmethod
    def from_file(cls, path: str) -> "StaticTokenVerifier":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return cls(data.get("tokens", {}))

    def verify(self, token: str) -> Identity:
        identity = self._tokens.get(token)
        if identity is None:
            raise AuthenticationError("Invalid token")
        return identity


def _row_to_user(row) -> User:
    return User(id=row["id"], email=row["email"], display_name=row["display_name"], created_at=row["created_at"])


def login(db_path: str, identity: Identity) -> User:
    """Create the user on first login, otherwise refresh email and display name."""
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO users (id, email, display_name, created_at) VALUES (?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET email = excluded.email, display_name = excluded.display_name""",
        (identity.uid, identity.email, identity.display_name, datetime.now().isoformat()),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM users WHERE id = ?", (identity.uid,)).fetchone()
    conn.close()
    return _row_to_user(row)


def get_user(db_path: str, user_id: str) -> User:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    if not row:
        raise UserNotFound(user_id)
    return _row_to_user(row)


def delete_user(db_path: str, user_id: str) -> None:
    """Delete the account row. Progress is removed separately by the store."""
    conn = get_connection(db_path)
    cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
    conn.commit()
    conn.close()
    if cursor.rowcount == 0:
        raise UserNotFound(user_id)
