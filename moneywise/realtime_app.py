"""Hands-free assistant loop.

Listens on the microphone (or reads typed commands when no microphone is
available), runs each command for the company in ``MONEYWISE_COMPANY`` and
speaks the answer back. The microphone is paused while speaking to avoid
feedback.
"""

import asyncio
import logging

from moneywise import config
from moneywise.conversation import ConversationShell
from moneywise.intent_source import LLMIntentSource
from moneywise.router import CommandRouter
from moneywise.storage import JsonFileStore, StoreAccessor
from moneywise.stores import Stores
from moneywise.voice_input import SpeechRecognizer
from moneywise.voice_output import SpeechSynthesizer

log = logging.getLogger(__name__)


def build_shell(company: str, speaker: SpeechSynthesizer) -> ConversationShell:
    stores = Stores(StoreAccessor(JsonFileStore(config.DATA_DIR)))
    stores.notifier.on_notify = lambda n: print(f"[{n.title}] {n.description}")
    router = CommandRouter(stores, navigate=lambda path: print(f"-> {path}"))
    return ConversationShell(router, LLMIntentSource(), company=company or None, speaker=speaker)


async def process_text(shell: ConversationShell, text: str, voice: bool) -> None:
    """Run one command and print the exchange."""
    print(f"USER: {text}")
    if voice:
        reply = await shell.submit_transcribed_text(text)
    else:
        reply = await shell.submit_text(text)
    if reply:
        print(f"AI: {reply.text}")


async def run(company: str) -> None:
    speaker = SpeechSynthesizer.from_config()
    recognizer = SpeechRecognizer.from_config()
    shell = build_shell(company, speaker)
    if company:
        # prints "Lembretes de Fiado" through the notifier, once a day
        shell.router.stores.credit_entries.remind_due(company)
    if not speaker.available:
        print("Speech output unavailable, answers will only be printed.")

    loop = asyncio.get_running_loop()
    print("Listening" if recognizer.available else "Type a command (Ctrl+C to exit)")
    while True:
        if recognizer.available:
            text = await recognizer.listen_async()
            if text:
                await process_text(shell, text, voice=True)
        else:
            text = await loop.run_in_executor(None, input, "> ")
            await process_text(shell, text, voice=False)


def main() -> None:
    config.setup_logging()
    if not config.DEFAULT_COMPANY:
        log.warning("MONEYWISE_COMPANY is not set; commands will ask you to log in")
    try:
        asyncio.run(run(config.DEFAULT_COMPANY))
    except (KeyboardInterrupt, EOFError):
        print("\nInterrupted by user, exiting.")


if __name__ == "__main__":
    main()
