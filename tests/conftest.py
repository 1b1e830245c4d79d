"""
Shared fixtures: in-memory chat / game ports and a config factory.
"""

import asyncio

import pytest

from services.config_schema import BridgeConfig
from services.message import CommandResult


class FakeChat:
    """ChatPort backed by dicts; records everything sent."""

    def __init__(self, members=None, quotes=None, delays=None):
        self.members = members or {}
        self.quotes = quotes or {}
        self.delays = delays or {}
        self.sent: list[tuple[int, str]] = []
        self.broadcasts: list[tuple[list[int], str]] = []
        self.member_lookups: list[str] = []
        self.quote_lookups: list[str] = []
        self.fail_sends = None

    async def send(self, channel_id, text):
        if self.fail_sends is not None:
            raise self.fail_sends
        self.sent.append((channel_id, text))

    async def broadcast(self, channel_ids, text):
        if self.fail_sends is not None:
            raise self.fail_sends
        self.broadcasts.append((list(channel_ids), text))

    async def get_member_info(self, channel_id, user_id):
        self.member_lookups.append(user_id)
        await asyncio.sleep(self.delays.get(user_id, 0))
        info = self.members.get(user_id)
        if isinstance(info, Exception):
            raise info
        return info

    async def get_quote(self, message_id):
        self.quote_lookups.append(message_id)
        quote = self.quotes.get(message_id)
        if isinstance(quote, Exception):
            raise quote
        return quote


class FakeGame:
    """GamePort that returns a canned command result."""

    def __init__(self, result=None):
        self.result = result if result is not None else CommandResult(True, "")
        self.commands: list[str] = []
        self.broadcasts: list[str] = []
        self.fail_broadcast = None

    async def broadcast(self, text):
        if self.fail_broadcast is not None:
            raise self.fail_broadcast
        self.broadcasts.append(text)

    async def run_command(self, command):
        self.commands.append(command)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def make_config():
    """Build a BridgeConfig with test-friendly defaults."""
    def _make(**overrides):
        values = {
            "superusers": [10001],
            "enable_groups": [123],
            "special_attr_prefix": "[",
            "special_attr_suffix": "]",
        }
        values.update(overrides)
        return BridgeConfig(**values)
    return _make


@pytest.fixture
def chat():
    return FakeChat()


@pytest.fixture
def game():
    return FakeGame()
