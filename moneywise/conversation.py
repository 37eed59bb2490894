"""Conversation shell: transcript, intent lookup, routing and speech.

The shell owns the chat transcript only. It asks the intent source what a
command means, hands the result to :class:`~moneywise.router.CommandRouter`
and records (and optionally speaks) the router's answer.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Protocol

from moneywise.intent_source import IntentSource
from moneywise.models import ChatMessage, Sender
from moneywise.router import CommandRouter

log = logging.getLogger(__name__)

PROCESSING_ERROR = "Desculpe, não consegui processar o seu comando. Tente novamente em instantes."


class ShellBusyError(RuntimeError):
    """A command is still being processed."""


class Speaker(Protocol):
    async def speak(self, text: str) -> Any:
        ...


def _parameters_json(parameters: Any) -> Optional[str]:
    # text flows may hand back a mapping instead of a JSON string
    if parameters is None or isinstance(parameters, str):
        return parameters
    return json.dumps(parameters, ensure_ascii=False)


class ConversationShell:
    def __init__(self, router: CommandRouter, intents: IntentSource,
                 company: Optional[str] = None, speaker: Optional[Speaker] = None,
                 speak_responses: bool = True):
        self.router = router
        self.intents = intents
        self.company = company
        self.speaker = speaker
        self.speak_responses = speak_responses
        self.transcript: List[ChatMessage] = []
        self.busy = False

    def _append(self, sender: Sender, text: str) -> ChatMessage:
        message = ChatMessage(sender=sender, text=text)
        self.transcript.append(message)
        return message

    async def submit_text(self, text: str) -> Optional[ChatMessage]:
        return await self._submit(text, voice=False)

    async def submit_transcribed_text(self, text: str) -> Optional[ChatMessage]:
        return await self._submit(text, voice=True)

    async def _submit(self, text: str, voice: bool) -> Optional[ChatMessage]:
        """Run one command and return the assistant's transcript entry.

        Blank input is ignored and returns ``None``.
        """
        if not text or not text.strip():
            return None
        if self.busy:
            raise ShellBusyError("A command is already in progress")
        self.busy = True
        self._append(Sender.USER, text.strip())
        try:
            try:
                if voice:
                    intent = await self.intents.interpret_voice(text.strip())
                else:
                    intent = await self.intents.interpret_text(text.strip())
            except Exception:
                log.exception("Intent source failed for %r", text)
                reply = self._append(Sender.ASSISTANT, PROCESSING_ERROR)
            else:
                response = self.router.execute(
                    self.company, intent.action, _parameters_json(intent.parameters))
                reply = self._append(Sender.ASSISTANT, response)
        finally:
            self.busy = False
        await self._speak(reply.text or "")
        return reply

    async def _speak(self, text: str) -> None:
        if not (self.speak_responses and self.speaker):
            return
        try:
            await self.speaker.speak(text)
        except Exception:
            log.exception("Speaking the response failed")

    def clear(self) -> None:
        self.transcript.clear()
