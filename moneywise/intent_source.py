"""Intent extraction with an OpenAI compatible chat model.

The model is asked for structured output, ``{"action": ..., "parameters": ...}``,
where ``parameters`` is a JSON string. Nothing here is trusted: the router
validates both fields.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.utils import convert_to_secret_str
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from moneywise import config

log = logging.getLogger(__name__)

PROMPT_PATH = os.path.join(os.path.dirname(__file__), "resources", "system_prompt.md")


class IntentOutput(BaseModel):
    action: str = Field(description="The action to perform, or 'unknownCommand' if unclear.")
    parameters: Optional[str] = Field(
        default=None,
        description="A JSON object encoded as a string with the extracted parameters.",
    )


class IntentSource(Protocol):
    async def interpret_text(self, command: str) -> IntentOutput:
        ...

    async def interpret_voice(self, command: str) -> IntentOutput:
        ...


def load_system_prompt(path: str = PROMPT_PATH) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


class LLMIntentSource:
    """Interpret typed or transcribed commands with a chat model."""

    def __init__(
        self,
        model: str = config.OPENAI_MODEL,
        endpoint: str = config.OPENAI_ENDPOINT,
        api_key: str = config.OPENAI_API_KEY,
        temperature: float = 0.0,
        system_prompt: Optional[str] = None,
    ):
        self.system_prompt = system_prompt or load_system_prompt()
        self.llm = ChatOpenAI(
            model=model,
            base_url=endpoint,
            api_key=convert_to_secret_str(api_key),
            temperature=temperature,
        )
        self._structured = self.llm.with_structured_output(IntentOutput)

    async def _interpret(self, command: str, channel: str) -> IntentOutput:
        messages = [
            SystemMessage(self.system_prompt),
            HumanMessage(f"{channel}: {command}"),
        ]
        output = await self._structured.ainvoke(messages)
        if isinstance(output, dict):
            output = IntentOutput.model_validate(output)
        log.info("Interpreted %r as %s %s", command, output.action, output.parameters)
        return output

    async def interpret_text(self, command: str) -> IntentOutput:
        return await self._interpret(command, "Comando de texto")

    async def interpret_voice(self, command: str) -> IntentOutput:
        return await self._interpret(command, "Comando de voz")
