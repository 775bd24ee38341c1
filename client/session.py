"""File-backed session store for the HealthOps client."""
import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

HEALTHOPS_HOME = os.getenv("HEALTHOPS_HOME", os.path.join(os.path.expanduser("~"), ".healthops"))
SESSION_FILE = "session.json"


@dataclass
class Session:
    token: str
    role: str
    name: str
    user_id: Optional[int] = None


class SessionStore:
    """Token, role and display name. Set on login, cleared on logout."""

    def __init__(self, home: Optional[str] = None):
        self.path = Path(home or HEALTHOPS_HOME) / SESSION_FILE

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(session)))
        # Token grants API access
        os.chmod(self.path, 0o600)

    def load(self) -> Optional[Session]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
            return Session(**data)
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
