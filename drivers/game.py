# Game side via the server's bridge plugin (JSON over WebSocket).
#
# Receive: the plugin pushes one frame per lifecycle event:
#            {"event": "chat",     "player": "Steve", "message": "hi"}
#            {"event": "pre_join", "player": "Steve"}
#            {"event": "join",     "player": "Steve"}
#            {"event": "left",     "player": "Steve"}
#            {"event": "die",      "player": "Steve", "source": "Zombie"}
#
# Send:    {"action": "broadcast",   "params": {"text": "..."}}
#          {"action": "run_command", "params": {"command": "list"}, "echo": "<uuid>"}
#          The plugin answers run_command with
#            {"echo": "<uuid>", "success": true, "output": "..."}
#
# Config keys (under game):
#   ws_url         – WebSocket URL of the plugin, e.g. "ws://127.0.0.1:8765"
#   ws_token       – Optional bearer token
#   action_timeout – Seconds to wait for a command result (default 10)

import asyncio
import json
import uuid

import aiohttp

import services.logger as log
from services.config_schema import GameConfig
from services.error import ActionError, GameError
from services.message import CommandResult, GameEvent, GameEventKind
from drivers import RECONNECT_DELAY, BaseDriver

l = log.get_logger()


def parse_event(data: dict) -> GameEvent | None:
    """Build a GameEvent from a plugin frame; None for unknown events."""
    try:
        kind = GameEventKind(data.get("event"))
    except ValueError:
        return None
    return GameEvent(
        kind=kind,
        player=str(data.get("player") or ""),
        message=str(data.get("message") or ""),
        source=str(data.get("source") or ""),
    )


class GameDriver(BaseDriver[GameConfig]):
    """Bridge-plugin client implementing :class:`services.ports.GamePort`."""

    name = "game"

    def __init__(self, config: GameConfig, bridge):
        super().__init__(config, bridge)
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._pending: dict[str, asyncio.Future] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        self.bridge.register_game(self)

        headers = {}
        if self.config.ws_token:
            headers["Authorization"] = f"Bearer {self.config.ws_token}"
        self._session = aiohttp.ClientSession(headers=headers)

        l.info(f"Game connecting to {self.config.ws_url}")

        try:
            while True:
                try:
                    async with self._session.ws_connect(self.config.ws_url, heartbeat=30) as ws:
                        self._ws = ws
                        l.info("Game connected")
                        await self._listen(ws)
                except aiohttp.ClientError as e:
                    l.error(f"Game connection error: {e}")
                finally:
                    self._ws = None
                    self._fail_pending("connection closed")

                l.info(f"Game reconnecting in {RECONNECT_DELAY} s…")
                await asyncio.sleep(RECONNECT_DELAY)
        finally:
            await self._session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def _listen(self, ws):
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except json.JSONDecodeError:
                    l.warning("Game invalid JSON received")
                    continue
                await self._on_frame(data)
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.ERROR,
                aiohttp.WSMsgType.CLOSED,
            ):
                break

    async def _on_frame(self, data: dict):
        if "echo" in data:
            fut = self._pending.get(str(data["echo"]))
            if fut is not None and not fut.done():
                fut.set_result(data)
            return

        event = parse_event(data)
        if event is None:
            l.debug(f"Game ignored frame: {data}")
            return
        try:
            await self.bridge.on_game_event(event)
        except Exception as e:
            l.error(f"Game event handler error: {e}")

    def _fail_pending(self, reason: str):
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(ActionError(reason))
        self._pending.clear()

    # ------------------------------------------------------------------
    # GamePort
    # ------------------------------------------------------------------

    async def _post(self, payload: dict):
        if self._ws is None or self._ws.closed:
            raise GameError("game server not connected")
        try:
            await self._ws.send_json(payload)
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise GameError(f"send failed: {e}") from e

    async def broadcast(self, text: str):
        await self._post({"action": "broadcast", "params": {"text": text}})

    async def run_command(self, command: str) -> CommandResult:
        echo = str(uuid.uuid4())
        fut = asyncio.get_running_loop().create_future()
        self._pending[echo] = fut
        try:
            await self._post({"action": "run_command", "params": {"command": command}, "echo": echo})
            resp = await asyncio.wait_for(fut, self.config.action_timeout)
        except asyncio.TimeoutError as e:
            raise ActionError(f"run_command: no result within {self.config.action_timeout} s") from e
        finally:
            self._pending.pop(echo, None)
        return CommandResult(success=bool(resp.get("success")), output=str(resp.get("output") or ""))
