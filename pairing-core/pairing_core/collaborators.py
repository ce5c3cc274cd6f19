"""
External Collaborators
======================
Interfaces the engine consumes from the rest of the system, with
in-memory implementations for development and testing.
"""

import secrets
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import structlog

from pairing_core.models import Credential

logger = structlog.get_logger(__name__)


def new_session_id() -> str:
    """Generate a fresh session identifier (``WA_`` + 16 hex chars)."""
    return f"WA_{secrets.token_hex(8).upper()}"


def derive_session_id(session_id: str) -> str:
    """Derive a refreshed identifier from an existing session."""
    base = session_id.split("_R", 1)[0]
    return f"{base}_R{secrets.token_hex(3).upper()}"


class SessionDirectory(ABC):
    """Read access to session metadata."""

    @abstractmethod
    async def resolve_email(self, session_id: str) -> Optional[str]:
        """Return the email registered for a session, if any."""


class StaticSessionDirectory(SessionDirectory):
    """Session directory backed by a dict with an optional default address."""

    def __init__(
        self,
        emails: Optional[Dict[str, str]] = None,
        default_email: Optional[str] = None,
    ):
        self.emails = dict(emails or {})
        self.default_email = default_email

    async def resolve_email(self, session_id: str) -> Optional[str]:
        return self.emails.get(session_id, self.default_email)


class ProtocolClient(ABC):
    """Messaging connection established once a credential is verified."""

    @abstractmethod
    async def connect(self, session_id: str, phone: str, credential: Credential) -> Any:
        """Open a connection and return a handle."""


class SupportDesk(ABC):
    """Support ticketing system."""

    @abstractmethod
    async def open_ticket(
        self,
        session_id: str,
        phone: str,
        reason: str,
        severity: str,
    ) -> str:
        """Open a ticket and return its id."""


class SessionService(ABC):
    """Creates and resets pairing sessions."""

    @abstractmethod
    async def create_session(self, phone: str) -> str:
        """Create a brand-new session and return its id."""

    @abstractmethod
    async def refresh_session(self, session_id: str) -> str:
        """Replace a stale session and return the new id."""

    @abstractmethod
    async def reset_state(self, session_id: str) -> bool:
        """Reset any cached connection state for a session."""


class AlternativeAuth(ABC):
    """Hands a pairing attempt off to email or 2FA authentication."""

    @abstractmethod
    async def initiate(self, session_id: str, phone: str) -> Dict[str, Any]:
        """Start the handoff and return next-step details."""


class InMemorySupportDesk(SupportDesk):
    """Records tickets in ``tickets``."""

    def __init__(self):
        self.tickets: List[Dict[str, Any]] = []

    async def open_ticket(self, session_id: str, phone: str, reason: str, severity: str) -> str:
        ticket_id = f"TKT-{uuid.uuid4().hex[:8].upper()}"
        self.tickets.append({
            "id": ticket_id,
            "session_id": session_id,
            "reason": reason,
            "severity": severity,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })
        logger.info("support_ticket_opened", ticket_id=ticket_id, session_id=session_id)
        return ticket_id


class InMemorySessionService(SessionService):
    """Tracks created, refreshed and reset sessions."""

    def __init__(self):
        self.created: List[str] = []
        self.refreshed: Dict[str, str] = {}
        self.resets: List[str] = []

    async def create_session(self, phone: str) -> str:
        session_id = new_session_id()
        self.created.append(session_id)
        return session_id

    async def refresh_session(self, session_id: str) -> str:
        new_id = derive_session_id(session_id)
        self.refreshed[session_id] = new_id
        return new_id

    async def reset_state(self, session_id: str) -> bool:
        self.resets.append(session_id)
        return True


class EmailHandoffAuth(AlternativeAuth):
    """Directs the user to finish pairing with an emailed code."""

    def __init__(self, directory: SessionDirectory):
        self.directory = directory

    async def initiate(self, session_id: str, phone: str) -> Dict[str, Any]:
        address = await self.directory.resolve_email(session_id)
        if not address:
            raise LookupError("No email registered for this session")
        return {
            "method": "email",
            "next_steps": [
                "Request a code with the email method",
                "Enter the code from your inbox to complete pairing",
            ],
        }
