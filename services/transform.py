"""Flatten OneBot message segments into one line of in-game text.

Every segment type maps to at most one rule.  A rule is one of three
variants:

* :class:`Constant` – a fixed label (``face`` → ``表情``)
* :class:`SyncRule` – ``func(data, segment, ctx) -> str``
* :class:`AsyncRule` – ``async func(data, segment, ctx) -> str`` for rules
  that need a lookup through the :class:`~services.ports.RenderContext`

Whatever the variant, :meth:`Transformer._apply` wraps the produced label in
``special_attr_prefix`` / ``special_attr_suffix``.  Text segments are emitted
verbatim and segments without a rule fall back to their CQ code, both
unwrapped.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Union

import services.logger as log
import services.util as u
from services.config_schema import BridgeConfig
from services.error import ActionError
from services.message import Segment
from services.ports import RenderContext

l = log.get_logger()


@dataclass(frozen=True)
class Constant:
    text: str


@dataclass(frozen=True)
class SyncRule:
    func: Callable[[dict, Segment, RenderContext], str]


@dataclass(frozen=True)
class AsyncRule:
    func: Callable[[dict, Segment, RenderContext], Awaitable[str]]


TransformRule = Union[Constant, SyncRule, AsyncRule]


async def resolve_member_name(ctx: RenderContext, user_id) -> str:
    """Group card, else nickname, else the raw id."""
    try:
        info = await ctx.get_member_info(user_id)
    except ActionError as e:
        l.debug(f"Member lookup for {user_id} in {ctx.channel_id} failed: {e}")
        info = None
    if info is None:
        return str(user_id)
    return info.card or info.nickname or str(user_id)


# ---------------------------------------------------------------------------
# Rule bodies
# ---------------------------------------------------------------------------

def _share(data, _seg, _ctx) -> str:
    return f"分享：{data.get('title', '')}"


def _redbag(data, _seg, _ctx) -> str:
    return f"红包：{data.get('title', '')}"


def _record(data, _seg, _ctx) -> str:
    return f"{'变声' if u.is_truthy(data.get('magic')) else ''}语音"


def _contact(data, _seg, _ctx) -> str:
    kind = "好友" if data.get("type") == "qq" else "群"
    return f"推荐{kind}：{data.get('id', '')}"


def _image(data, _seg, _ctx) -> str:
    image_type = data.get("type")
    if image_type == "flash":
        return "闪照"
    if image_type == "show":
        return "秀图"
    # A missing subtype counts as a plain picture, not a sticker
    sub_type = data.get("subType", data.get("sub_type"))
    if sub_type is None or str(sub_type) == "0":
        return "图片"
    return "动画表情"


async def _at(data, _seg, ctx) -> str:
    target = data.get("qq", data.get("id", ""))
    if str(target) == "all":
        return " @全体成员"
    return f" @{await resolve_member_name(ctx, target)}"


async def _gift(data, _seg, ctx) -> str:
    return f"礼物 @{await resolve_member_name(ctx, data.get('qq', ''))}"


DEFAULT_RULES: dict[str, TransformRule] = {
    "face":      Constant("表情"),
    "video":     Constant("视频"),
    "rps":       Constant("猜拳"),
    "dice":      Constant("扔骰子"),
    "shake":     Constant("戳一戳"),
    "anonymous": Constant("匿名"),
    "location":  Constant("位置"),
    "music":     Constant("音乐"),
    "poke":      Constant("戳一戳"),
    "forward":   Constant("合并转发"),
    "node":      Constant("合并转发"),
    "xml":       Constant("XML卡片消息"),
    "json":      Constant("JSON卡片消息"),
    "cardimage": Constant("XML卡片消息"),
    "tts":       Constant("TTS语音"),
    "share":     SyncRule(_share),
    "redbag":    SyncRule(_redbag),
    "record":    SyncRule(_record),
    "contact":   SyncRule(_contact),
    "image":     SyncRule(_image),
    "at":        AsyncRule(_at),
    "gift":      AsyncRule(_gift),
}


class Transformer:
    """Turns a segment list into text using a per-type rule table."""

    def __init__(self, config: BridgeConfig, rules: Mapping[str, TransformRule] | None = None):
        self.config = config
        self.rules: dict[str, TransformRule] = {
            **DEFAULT_RULES,
            "reply": AsyncRule(self._reply),
            **(rules or {}),
        }
        # Replies inside a quoted message are not fetched again
        self._quote_rules = {**self.rules, "reply": Constant("回复")}

    def wrap(self, text: str) -> str:
        return f"{self.config.special_attr_prefix}{text}{self.config.special_attr_suffix}"

    async def transform(
        self,
        segments: list[Segment],
        ctx: RenderContext,
        rules: Mapping[str, TransformRule] | None = None,
    ) -> str:
        rules = self.rules if rules is None else rules
        # gather() keeps results in argument order, whatever order lookups finish in
        parts = await asyncio.gather(*(self._render(seg, ctx, rules) for seg in segments))
        return "".join(parts)

    async def _render(self, seg: Segment, ctx: RenderContext, rules) -> str:
        if seg.is_text:
            return str(seg)
        rule = rules.get(seg.type)
        if rule is None:
            return str(seg)
        return await self._apply(rule, seg, ctx)

    async def _apply(self, rule: TransformRule, seg: Segment, ctx: RenderContext) -> str:
        if isinstance(rule, Constant):
            text = rule.text
        elif isinstance(rule, SyncRule):
            text = rule.func(seg.data, seg, ctx)
        elif isinstance(rule, AsyncRule):
            text = await rule.func(seg.data, seg, ctx)
        else:
            raise TypeError(f"Unknown transform rule {rule!r} for segment '{seg.type}'")
        return self.wrap(text)

    async def _reply(self, data, _seg, ctx: RenderContext) -> str:
        message_id = data.get("id")
        quote = None
        if message_id:
            try:
                quote = await ctx.get_quote(message_id)
            except ActionError as e:
                l.debug(f"Fetching quoted message {message_id} failed: {e}")
        if quote is None:
            return "回复"
        name = await resolve_member_name(ctx, quote.author_id)
        content = await self.transform(quote.segments, ctx, self._quote_rules)
        return f"回复 @{name}： {content}"
