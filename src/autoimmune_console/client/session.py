"""Explicit authentication session passed to the service clients.

A SessionContext is created at login, handed to every client that needs
credentials, and ended at logout. Nothing reads it from global state.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from autoimmune_console.config.logging_config import get_logger

logger = get_logger("session")


@dataclass
class SessionContext:
    """Bearer token and user profile for one console session."""

    token: Optional[str] = None
    user: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """True between start() and end()."""
        return bool(self.token)

    @property
    def role(self) -> Optional[str]:
        return self.user.get("role")

    def start(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Begin a session with the token issued at login."""
        if not token:
            raise ValueError("A session token is required")
        self.token = token
        self.user = dict(user or {})
        self.started_at = datetime.now()
        logger.info(f"Session started for {self.user.get('username', 'unknown user')}")

    def end(self) -> None:
        """Tear the session down at logout."""
        if self.is_active:
            logger.info(f"Session ended for {self.user.get('username', 'unknown user')}")
        self.token = None
        self.user = {}
        self.started_at = None

    def auth_headers(self) -> Dict[str, str]:
        """Headers to attach to authenticated requests."""
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "token": self.token,
            "user": self.user,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionContext":
        """Create from dictionary."""
        return cls(
            token=data.get("token"),
            user=data.get("user") or {},
            started_at=datetime.fromisoformat(data["started_at"]) if data.get("started_at") else None,
        )

    def save(self, path: Path) -> None:
        """Persist the session so later CLI invocations can reuse it."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path) -> "SessionContext":
        """
        Load a persisted session.

        Returns an inactive session when the file is missing or unreadable.
        """
        if not path.exists():
            return cls()
        try:
            with open(path, "r") as f:
                return cls.from_dict(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not load session state: {e}")
            return cls()

    @staticmethod
    def discard(path: Path) -> None:
        """Remove a persisted session file."""
        if path.exists():
            path.unlink()
