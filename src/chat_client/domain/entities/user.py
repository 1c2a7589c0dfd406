from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class UserRef:
    id: UserId
    username: str = ""
    display_name: str = ""
    avatar: str | None = None
    status: str | None = None
