from functools import partial

import services.logger as log
from services.command import CommandGate, flatten_text
from services.config_schema import BridgeConfig
from services.error import catch_and_log
from services.message import ChatMessage, GameEvent
from services.ports import ChatPort, GamePort, RenderContext
from services.render import GAME_EVENT_KINDS, EventKind, EventRenderer
from services.transform import Transformer

l = log.get_logger()


class Bridge:
    """
    Core routing engine.

    The chat driver registers itself via ``register_chat`` and the game
    driver via ``register_game``.  Inbound group messages arrive through
    ``on_chat_message`` (and pokes through ``on_poke``); game events arrive
    through ``on_game_event``.  Each is rendered and handed to the opposite
    side without waiting for or retrying delivery.
    """

    def __init__(self, config: BridgeConfig, chat: ChatPort | None = None, game: GamePort | None = None):
        self.config = config
        self.transformer = Transformer(config)
        self.renderer = EventRenderer(config)
        self.chat: ChatPort | None = None
        self.game: GamePort | None = None
        self.commands: CommandGate | None = None
        if chat is not None:
            self.register_chat(chat)
        if game is not None:
            self.register_game(game)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def register_chat(self, chat: ChatPort):
        self.chat = chat
        l.debug(f"Registered chat side: {type(chat).__name__}")

    def register_game(self, game: GamePort):
        self.game = game
        self.commands = CommandGate(self.config, game)
        l.debug(f"Registered game side: {type(game).__name__}")

    def is_enabled(self, channel_id) -> bool:
        try:
            return int(channel_id) in self.config.enable_groups
        except (TypeError, ValueError):
            return False

    # ------------------------------------------------------------------
    # Chat → game
    # ------------------------------------------------------------------

    async def on_chat_message(self, msg: ChatMessage):
        if not self.is_enabled(msg.channel_id) or msg.user_id == msg.self_id:
            return
        if self.chat is None or self.game is None:
            l.warning("Group message dropped: bridge is not fully connected")
            return

        reply = partial(self._reply, msg.channel_id)
        text = flatten_text(msg.segments)
        if not await self.commands.handle(text, msg.user_id, reply):
            await self.commands.handle_status(text, reply)

        await self._relay_to_game(msg)

    async def _relay_to_game(self, msg: ChatMessage):
        if self.renderer.template_for(EventKind.GROUP_CHAT) is None:
            return

        ctx = RenderContext(self.chat, msg.channel_id)
        message = await self.transformer.transform(msg.segments, ctx)
        rendered = self.renderer.render(
            EventKind.GROUP_CHAT,
            session={
                "platform":   msg.platform,
                "channel_id": msg.channel_id,
                "user_id":    msg.user_id,
                "message_id": msg.message_id,
                "self_id":    msg.self_id,
            },
            message=message,
            name=msg.nickname or msg.card or "未知",
        )
        l.debug(f"Group {msg.channel_id} → game: {rendered}")
        with catch_and_log("broadcast to game"):
            await self.game.broadcast(rendered)

    async def on_poke(self, channel_id, user_id, target_id, self_id):
        """Reply with the server status when someone pokes the bot."""
        if not self.config.poke_status or not self.is_enabled(channel_id):
            return
        if str(target_id) != str(self_id) or str(user_id) == str(self_id):
            return
        if self.chat is None or self.commands is None:
            return
        await self.commands.status(partial(self._reply, int(channel_id)))

    async def _reply(self, channel_id: int, text: str):
        with catch_and_log(f"reply to group {channel_id}"):
            await self.chat.send(channel_id, text)

    # ------------------------------------------------------------------
    # Game → chat
    # ------------------------------------------------------------------

    async def on_game_event(self, event: GameEvent):
        kind = GAME_EVENT_KINDS[event.kind]
        rendered = self.renderer.render(
            kind,
            player=event.player,
            message=event.message,
            source=event.source,
        )
        if rendered is None:
            return
        if self.chat is None:
            l.warning(f"Game event '{event.kind.value}' dropped: chat side not connected")
            return
        if not self.config.enable_groups:
            l.debug("No enabled groups; game event not forwarded")
            return

        l.debug(f"Game → groups {list(self.config.enable_groups)}: {rendered}")
        with catch_and_log("broadcast to groups"):
            await self.chat.broadcast(self.config.enable_groups, rendered)
