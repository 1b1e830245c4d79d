from enum import Enum

import chevron

from services.config_schema import BridgeConfig
from services.message import GameEventKind


class EventKind(str, Enum):
    """Every templated event, named after the config field that holds its template."""
    GROUP_CHAT = "group_chat"
    PLAYER_CHAT = "player_chat"
    PLAYER_PRE_JOIN = "player_pre_join"
    PLAYER_JOIN = "player_join"
    PLAYER_LEFT = "player_left"
    PLAYER_DIE = "player_die"

    @property
    def template_field(self) -> str:
        return f"{self.value}_template"


# Variables each template may reference
EVENT_VARIABLES: dict[EventKind, tuple[str, ...]] = {
    EventKind.GROUP_CHAT:      ("session", "message", "name"),
    EventKind.PLAYER_CHAT:     ("player", "message"),
    EventKind.PLAYER_PRE_JOIN: ("player",),
    EventKind.PLAYER_JOIN:     ("player",),
    EventKind.PLAYER_LEFT:     ("player",),
    EventKind.PLAYER_DIE:      ("player", "source"),
}

GAME_EVENT_KINDS: dict[GameEventKind, EventKind] = {
    GameEventKind.CHAT:     EventKind.PLAYER_CHAT,
    GameEventKind.PRE_JOIN: EventKind.PLAYER_PRE_JOIN,
    GameEventKind.JOIN:     EventKind.PLAYER_JOIN,
    GameEventKind.LEFT:     EventKind.PLAYER_LEFT,
    GameEventKind.DIE:      EventKind.PLAYER_DIE,
}


def render_template(template: str, variables: dict) -> str:
    """Mustache render; unknown variables render as empty strings."""
    return chevron.render(template, variables)


class EventRenderer:

    def __init__(self, config: BridgeConfig):
        self.config = config

    def template_for(self, kind: EventKind) -> str | None:
        return getattr(self.config, kind.template_field) or None

    def render(self, kind: EventKind, **variables) -> str | None:
        """Render *kind*'s template, or return None when it is not configured.

        Only the variables listed in ``EVENT_VARIABLES`` for *kind* are
        exposed; anything else passed in is ignored.
        """
        template = self.template_for(kind)
        if template is None:
            return None
        allowed = EVENT_VARIABLES[kind]
        return render_template(template, {k: v for k, v in variables.items() if k in allowed})
