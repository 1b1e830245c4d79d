"""Run game-server commands sent from the group chat.

A message whose text starts with ``cmd_prefix`` is a command.  Superusers may
run anything; everyone else only what matches one of the ``allow_cmd``
patterns.  A message equal to ``cmd_status`` is a status query open to all.
"""
from __future__ import annotations

import re
from typing import Awaitable, Callable, Iterable

import services.logger as log
import services.util as u
from services.config_schema import BridgeConfig
from services.error import BridgeError
from services.message import CommandResult, Segment
from services.ports import GamePort

l = log.get_logger()

# §-prefixed Minecraft formatting codes
COLOR_CODE = re.compile(r"§[0123456789abcdefglonmkr]")

PERMISSION_DENIED = "权限不足"

Reply = Callable[[str], Awaitable[None]]


def strip_color_codes(text: str) -> str:
    return COLOR_CODE.sub("", text)


def flatten_text(segments: Iterable[Segment]) -> str:
    """Join the text segments of a message with single spaces."""
    return " ".join(str(seg) for seg in segments if seg.is_text)


class CommandGate:

    def __init__(self, config: BridgeConfig, game: GamePort):
        self.config = config
        self.game = game
        self._allow = [re.compile(p) for p in config.allow_cmd]

    def is_superuser(self, user_id) -> bool:
        try:
            return int(user_id) in self.config.superusers
        except (TypeError, ValueError):
            return False

    def is_allowed(self, cmd: str) -> bool:
        return any(pattern.search(cmd) for pattern in self._allow)

    async def run(self, cmd: str) -> CommandResult:
        try:
            res = await self.game.run_command(cmd)
        except BridgeError as e:
            l.error(f"Command {cmd!r} could not be run: {e}")
            return CommandResult(success=False, output=str(e))
        return CommandResult(success=res.success, output=strip_color_codes(res.output))

    async def handle(self, text: str, user_id, reply: Reply) -> bool:
        """Execute *text* as a command if it carries the prefix.

        Returns True when the message was a command (allowed or not).
        """
        prefix = self.config.cmd_prefix
        if not text.startswith(prefix):
            return False

        cmd = u.replace_first(text, prefix)
        if not (self.is_superuser(user_id) or self.is_allowed(cmd)):
            l.info(f"Command {cmd!r} from {user_id} denied")
            await reply(PERMISSION_DENIED)
            return True

        res = await self.run(cmd)
        status = "成功" if res.success else "失败"
        l.info(f"执行指令 {cmd} {status}\n{res.output}")
        await reply(f"执行{status}\n{res.output}")
        return True

    async def handle_status(self, text: str, reply: Reply) -> bool:
        if not self.config.cmd_status or text.strip() != self.config.cmd_status:
            return False
        await self.status(reply)
        return True

    async def status(self, reply: Reply) -> None:
        res = await self.run(self.config.status_cmd)
        if res.success:
            await reply(res.output)
        else:
            await reply(f"查询失败\n{res.output}")
