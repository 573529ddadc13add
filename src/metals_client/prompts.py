"""Server-initiated prompts: ``metals/inputBox`` and ``metals/quickPick``."""

from __future__ import annotations

from typing import Any

from metals_client.logging import LogLevel
from metals_client.protocol import METALS_INPUT_BOX, METALS_QUICK_PICK, to_plain
from metals_client.session import Session

__all__ = ["PromptHandler"]


class PromptHandler:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._host = session.host
        self._logger = session.logger

    def subscribe(self) -> None:
        self._session.connection.on_request(METALS_INPUT_BOX, self.input_box)
        self._session.connection.on_request(METALS_QUICK_PICK, self.quick_pick)

    async def input_box(self, params: Any) -> dict:
        options = to_plain(params) or {}
        value = await self._host.show_input_box(options)
        if value is None:
            return {"cancelled": True}
        return {"value": value}

    async def quick_pick(self, params: Any) -> dict:
        data = to_plain(params) or {}
        items = data.get("items") or []
        options = {key: value for key, value in data.items() if key != "items"}
        choice = await self._host.show_quick_pick(items, options)
        if choice is None:
            return {"cancelled": True}
        if "id" not in choice:
            self._logger.log(LogLevel.WARN, f"Quick pick item without id: {choice}")
            return {"cancelled": True}
        return {"itemId": choice["id"]}
