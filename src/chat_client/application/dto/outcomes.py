from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of a network-facing controller operation."""

    ok: bool = True
    error: str | None = None
    auth_expired: bool = False


@dataclass(frozen=True, slots=True)
class SendOutcome(Outcome):
    message: Message | None = None
    restored_text: str | None = None
