"""The two host interfaces the bridge core talks through.

``drivers.napcat.NapCatDriver`` implements :class:`ChatPort` and
``drivers.game.GameDriver`` implements :class:`GamePort`; tests use
in-memory fakes of both.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from services.message import CommandResult, MemberInfo, QuotedMessage


class ChatPort(Protocol):

    async def send(self, channel_id: int, text: str) -> None:
        """Send *text* to one group."""

    async def broadcast(self, channel_ids: Iterable[int], text: str) -> None:
        """Send *text* to every group in *channel_ids*."""

    async def get_member_info(self, channel_id: int, user_id: str) -> MemberInfo | None:
        """Look up a group member; ``None`` when unknown."""

    async def get_quote(self, message_id: str) -> QuotedMessage | None:
        """Fetch the message a reply points at; ``None`` when unavailable."""


class GamePort(Protocol):

    async def broadcast(self, text: str) -> None:
        """Show *text* to every player on the server."""

    async def run_command(self, command: str) -> CommandResult:
        """Run a console command and capture its output."""


@dataclass(frozen=True)
class RenderContext:
    """The group a transformation runs in, with lookups scoped to it."""
    chat: ChatPort
    channel_id: int

    async def get_member_info(self, user_id) -> MemberInfo | None:
        return await self.chat.get_member_info(self.channel_id, str(user_id))

    async def get_quote(self, message_id) -> QuotedMessage | None:
        return await self.chat.get_quote(str(message_id))
