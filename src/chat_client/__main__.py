"""Entrypoint: python -m chat_client

Runs a headless session for USER_ID / ACCESS_TOKEN and logs what the
reconciled view looks like after every change.
"""
from __future__ import annotations

import asyncio
import logging

from chat_client.application.dto.view import ChatViewState
from chat_client.config import settings
from chat_client.services.conversation_display import conversation_title
from chat_client.session import ChatSession

logger = logging.getLogger("chat_client")


def _log_view(view: ChatViewState) -> None:
    titles = [
        f"{conversation_title(c, settings.USER_ID)} ({c.unread_count})"
        for c in view.conversations[:5]
    ]
    logger.info(
        "conversations=%s open=%s messages=%d online=%d connected=%s",
        titles,
        view.selected_conversation_id,
        len(view.messages),
        len(view.online_user_ids),
        view.connected,
    )


async def run_session() -> None:
    stop = asyncio.Event()
    async with ChatSession(
        settings.USER_ID,
        settings.ACCESS_TOKEN,
        on_change=_log_view,
        on_auth_expired=stop.set,
    ):
        await stop.wait()
    logger.info("Session expired, exiting")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not settings.USER_ID or not settings.ACCESS_TOKEN:
        raise SystemExit("USER_ID and ACCESS_TOKEN must be set")
    try:
        asyncio.run(run_session())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
