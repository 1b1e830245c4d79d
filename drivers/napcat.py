# QQ side via NapCat (OneBot 11 WebSocket protocol).
# NapCat acts as a WebSocket server; this driver connects as a client,
# receives push events, and sends actions over the same connection.
#
# Config keys (under napcat):
#   ws_url         – WebSocket URL, e.g. "ws://127.0.0.1:3001"
#   ws_token       – Optional access token
#   action_timeout – Seconds to wait for an action response (default 10)

import asyncio
import json
import uuid
from typing import Iterable

import websockets
import websockets.exceptions

import services.logger as log
from services.config_schema import NapCatConfig
from services.error import ActionError, catch_and_log
from services.message import ChatMessage, MemberInfo, QuotedMessage, Segment, parse_message
from drivers import RECONNECT_DELAY, BaseDriver

l = log.get_logger()


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class NapCatDriver(BaseDriver[NapCatConfig]):
    """OneBot 11 client implementing :class:`services.ports.ChatPort`."""

    name = "napcat"

    def __init__(self, config: NapCatConfig, bridge):
        super().__init__(config, bridge)
        self._ws = None
        self._pending: dict[str, asyncio.Future] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        self.bridge.register_chat(self)

        ws_url = self.config.ws_url
        token = self.config.ws_token
        if token:
            sep = "&" if "?" in ws_url else "?"
            ws_url = f"{ws_url}{sep}access_token={token}"

        l.info(f"NapCat connecting to {ws_url}")

        while True:
            try:
                async with websockets.connect(ws_url) as ws:
                    self._ws = ws
                    l.info("NapCat connected")
                    await self._listen(ws)
            except websockets.exceptions.ConnectionClosedOK:
                l.info("NapCat connection closed normally")
            except Exception as e:
                l.error(f"NapCat connection error: {e}")
            finally:
                self._ws = None
                self._fail_pending("connection closed")

            l.info(f"NapCat reconnecting in {RECONNECT_DELAY} s…")
            await asyncio.sleep(RECONNECT_DELAY)

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def _listen(self, ws):
        async for raw in ws:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                l.warning("NapCat invalid JSON received")
                continue

            # Action responses carry an "echo" field and no post_type
            if data.get("post_type") is None:
                self._resolve(data)
                continue

            # Handlers await action responses read by this same loop, so
            # they must not run inline. A message waiting on a member lookup
            # may therefore reach the game after a later plain-text one.
            self._spawn(self._handle(data))

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            l.error(f"NapCat handler error: {exc}")

    async def _handle(self, data: dict):
        post_type = data.get("post_type")

        if post_type == "message" and data.get("message_type") == "group":
            await self.bridge.on_chat_message(self.parse_group_message(data))

        elif (
            post_type == "notice"
            and data.get("notice_type") == "notify"
            and data.get("sub_type") == "poke"
            and data.get("group_id") is not None
        ):
            await self.bridge.on_poke(
                channel_id=data.get("group_id"),
                user_id=data.get("user_id"),
                target_id=data.get("target_id"),
                self_id=data.get("self_id"),
            )

    @staticmethod
    def parse_group_message(event: dict) -> ChatMessage:
        sender = event.get("sender") or {}
        return ChatMessage(
            message_id=str(event.get("message_id", "")),
            channel_id=_to_int(event.get("group_id")) or 0,
            user_id=_to_int(event.get("user_id")) or 0,
            self_id=_to_int(event.get("self_id")) or 0,
            segments=parse_message(event.get("message", event.get("raw_message"))),
            nickname=sender.get("nickname") or "",
            card=sender.get("card") or "",
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _resolve(self, data: dict):
        fut = self._pending.get(str(data.get("echo")))
        if fut is not None and not fut.done():
            fut.set_result(data)

    def _fail_pending(self, reason: str):
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(ActionError(reason))
        self._pending.clear()

    async def _post(self, action: str, params: dict, echo: str | None = None):
        if self._ws is None:
            raise ActionError(f"{action}: not connected")
        payload = {"action": action, "params": params, "echo": echo or str(uuid.uuid4())}
        try:
            await self._ws.send(json.dumps(payload, ensure_ascii=False))
        except websockets.exceptions.ConnectionClosed as e:
            raise ActionError(f"{action}: connection closed") from e

    async def call_action(self, action: str, **params) -> dict:
        """Send an action and wait for its response ``data``."""
        echo = str(uuid.uuid4())
        fut = asyncio.get_running_loop().create_future()
        self._pending[echo] = fut
        try:
            await self._post(action, params, echo)
            resp = await asyncio.wait_for(fut, self.config.action_timeout)
        except asyncio.TimeoutError as e:
            raise ActionError(f"{action}: no response within {self.config.action_timeout} s") from e
        finally:
            self._pending.pop(echo, None)

        if resp.get("status") == "failed" or resp.get("retcode", 0) != 0:
            detail = resp.get("wording") or resp.get("message") or resp.get("msg") or ""
            raise ActionError(f"{action} failed (retcode={resp.get('retcode')}) {detail}".rstrip())
        return resp.get("data") or {}

    # ------------------------------------------------------------------
    # ChatPort
    # ------------------------------------------------------------------

    async def send(self, channel_id: int, text: str):
        if not text:
            return
        message = [{"type": "text", "data": {"text": text}}]
        await self._post("send_group_msg", {"group_id": int(channel_id), "message": message})

    async def broadcast(self, channel_ids: Iterable[int], text: str):
        for channel_id in channel_ids:
            with catch_and_log(f"NapCat send to group {channel_id}"):
                await self.send(channel_id, text)

    async def get_member_info(self, channel_id: int, user_id: str) -> MemberInfo | None:
        uid = _to_int(user_id)
        if uid is None:
            return None
        data = await self.call_action(
            "get_group_member_info", group_id=int(channel_id), user_id=uid, no_cache=False
        )
        if not data:
            return None
        return MemberInfo(card=data.get("card") or "", nickname=data.get("nickname") or "")

    async def get_quote(self, message_id: str) -> QuotedMessage | None:
        mid = _to_int(message_id)
        data = await self.call_action("get_msg", message_id=mid if mid is not None else message_id)
        sender = data.get("sender") or {}
        author = sender.get("user_id", data.get("user_id"))
        if author is None:
            return None
        segments: list[Segment] = parse_message(data.get("message", data.get("raw_message")))
        return QuotedMessage(author_id=str(author), segments=segments)
