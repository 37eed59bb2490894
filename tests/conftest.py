"""Shared fixtures: in-memory stores, a router that records navigation and a
scripted intent source."""

from typing import Dict, List, Optional, Tuple

import pytest

from moneywise.intent_source import IntentOutput
from moneywise.router import CommandRouter
from moneywise.storage import MemoryStore, StoreAccessor
from moneywise.stores import Stores

COMPANY = "Padaria Pão Quente"


class ScriptedIntents:
    """Intent source answering from a fixed phrase table."""

    def __init__(self, script: Optional[Dict[str, Tuple[str, Optional[str]]]] = None,
                 error: Optional[Exception] = None):
        self.script = script or {}
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    async def _answer(self, channel: str, command: str) -> IntentOutput:
        self.calls.append((channel, command))
        if self.error:
            raise self.error
        action, parameters = self.script.get(command.lower(), ("unknownCommand", None))
        # model_construct lets a script hand back a mapping, as some model
        # providers do
        return IntentOutput.model_construct(action=action, parameters=parameters)

    async def interpret_text(self, command: str) -> IntentOutput:
        return await self._answer("text", command)

    async def interpret_voice(self, command: str) -> IntentOutput:
        return await self._answer("voice", command)


@pytest.fixture
def substrate():
    return MemoryStore()


@pytest.fixture
def stores(substrate):
    return Stores(StoreAccessor(substrate))


@pytest.fixture
def navigation():
    return []


@pytest.fixture
def router(stores, navigation):
    return CommandRouter(stores, navigate=navigation.append)


@pytest.fixture
def company():
    return COMPANY


@pytest.fixture
def scripted():
    return ScriptedIntents
