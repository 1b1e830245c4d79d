import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# [CQ:type,key=value,...]
_CQ_CODE = re.compile(r"\[CQ:([A-Za-z0-9_.\-]+)((?:,[^\]]*)?)\]")

_CQ_TEXT_ESCAPES = (("&", "&amp;"), ("[", "&#91;"), ("]", "&#93;"))
_CQ_PARAM_ESCAPES = _CQ_TEXT_ESCAPES + ((",", "&#44;"),)


def cq_escape(text: str, *, param: bool = False) -> str:
    for raw, escaped in (_CQ_PARAM_ESCAPES if param else _CQ_TEXT_ESCAPES):
        text = text.replace(raw, escaped)
    return text


def cq_unescape(text: str) -> str:
    # "&amp;" last so "&amp;#91;" decodes to "&#91;", not "["
    for raw, escaped in reversed(_CQ_PARAM_ESCAPES):
        text = text.replace(escaped, raw)
    return text


@dataclass(frozen=True)
class Segment:
    """One OneBot 11 message segment, e.g. ``{"type": "at", "data": {"qq": "123"}}``."""
    type: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    def __str__(self) -> str:
        if self.is_text:
            return str(self.data.get("text", ""))
        params = "".join(
            f",{k}={cq_escape(str(v), param=True)}" for k, v in self.data.items()
        )
        return f"[CQ:{self.type}{params}]"

    @classmethod
    def text(cls, text: str) -> "Segment":
        return cls("text", {"text": text})

    @classmethod
    def from_dict(cls, raw: dict) -> "Segment":
        return cls(str(raw.get("type", "")), dict(raw.get("data") or {}))


def _parse_cq_string(message: str) -> list[Segment]:
    segments: list[Segment] = []
    pos = 0
    for match in _CQ_CODE.finditer(message):
        if match.start() > pos:
            segments.append(Segment.text(cq_unescape(message[pos:match.start()])))
        data: dict[str, str] = {}
        for pair in match.group(2).split(",")[1:]:
            key, _, value = pair.partition("=")
            data[key] = cq_unescape(value)
        segments.append(Segment(match.group(1), data))
        pos = match.end()
    if pos < len(message):
        segments.append(Segment.text(cq_unescape(message[pos:])))
    return segments


def parse_message(message) -> list[Segment]:
    """Parse a OneBot ``message`` field (segment array or CQ-code string)."""
    if message is None:
        return []
    if isinstance(message, str):
        return _parse_cq_string(message)
    if isinstance(message, dict):
        return [Segment.from_dict(message)]
    return [Segment.from_dict(seg) for seg in message if isinstance(seg, dict)]


@dataclass(frozen=True)
class MemberInfo:
    """Group member profile as returned by ``get_group_member_info``."""
    card: str = ""      # group-specific display name
    nickname: str = ""  # global QQ nickname


@dataclass(frozen=True)
class QuotedMessage:
    """The message a ``reply`` segment points at."""
    author_id: str
    segments: list[Segment] = field(default_factory=list)


@dataclass(frozen=True)
class ChatMessage:
    """Inbound group message, already split into segments."""
    message_id: str
    channel_id: int
    user_id: int
    self_id: int
    segments: list[Segment]
    nickname: str = ""
    card: str = ""
    platform: str = "onebot"


class GameEventKind(str, Enum):
    CHAT = "chat"
    PRE_JOIN = "pre_join"
    JOIN = "join"
    LEFT = "left"
    DIE = "die"


@dataclass(frozen=True)
class GameEvent:
    """A lifecycle event pushed by the game server."""
    kind: GameEventKind
    player: str
    message: str = ""
    source: str = ""


@dataclass(frozen=True)
class CommandResult:
    success: bool
    output: str = ""
