from __future__ import annotations

import re
from typing import Annotated

from chevron.tokenizer import ChevronError, tokenize
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Reusable coercions
# ---------------------------------------------------------------------------

def _coerce_bool(v: object) -> object:
    if isinstance(v, str):
        return v.lower() in ("true", "1", "yes")
    return v


def _coerce_optional_str(v: object) -> object:
    # An empty template means "feature disabled", same as leaving it out
    if isinstance(v, str) and not v:
        return None
    return v


TEMPLATE_FIELDS = (
    "group_chat_template",
    "player_chat_template",
    "player_pre_join_template",
    "player_join_template",
    "player_left_template",
    "player_die_template",
)


CoercedBool = Annotated[bool, BeforeValidator(_coerce_bool)]
Template = Annotated[str | None, BeforeValidator(_coerce_optional_str)]


# ---------------------------------------------------------------------------
# Base for every config block — unknown keys are a validation error and the
# validated object is read-only for the rest of the process
# ---------------------------------------------------------------------------

class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class BridgeConfig(_Section):
    superusers:              tuple[int, ...] = ()
    enable_groups:           tuple[int, ...] = ()
    cmd_prefix:              str             = Field("/", min_length=1)
    cmd_status:              str             = "查询"
    status_cmd:              str             = "list"
    poke_status:             CoercedBool     = True
    allow_cmd:               tuple[str, ...] = ()

    group_chat_template:     Template        = None
    player_chat_template:    Template        = None
    player_pre_join_template: Template       = None
    player_join_template:    Template        = None
    player_left_template:    Template        = None
    player_die_template:     Template        = None

    special_attr_prefix:     str             = ""
    special_attr_suffix:     str             = ""

    @model_validator(mode="after")
    def _check_allow_cmd(self) -> BridgeConfig:
        for pattern in self.allow_cmd:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"allow_cmd pattern {pattern!r} is not a valid regex: {e}")
        return self

    @model_validator(mode="after")
    def _check_templates(self) -> BridgeConfig:
        for name in TEMPLATE_FIELDS:
            template = getattr(self, name)
            if template is None:
                continue
            try:
                list(tokenize(template))
            except ChevronError as e:
                raise ValueError(f"{name} is not a valid mustache template: {e}")
        return self


class NapCatConfig(_Section):
    ws_url:         str   = "ws://127.0.0.1:3001"
    ws_token:       str   = ""
    action_timeout: float = Field(10.0, gt=0)


class GameConfig(_Section):
    ws_url:         str   = "ws://127.0.0.1:8765"
    ws_token:       str   = ""
    action_timeout: float = Field(10.0, gt=0)


# ---------------------------------------------------------------------------
# Top-level application config
# ---------------------------------------------------------------------------

class AppConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    bridge: BridgeConfig = BridgeConfig()
    napcat: NapCatConfig = NapCatConfig()
    game:   GameConfig   = GameConfig()

    def secrets(self) -> frozenset[str]:
        return frozenset(t for t in (self.napcat.ws_token, self.game.ws_token) if t)
