"""Kokoro speech synthesis with an explicit playback state machine.

``SpeechSynthesizer`` moves ``IDLE -> SPEAKING -> IDLE`` and tells its
listeners how each utterance finished (``ENDED``, ``CANCELLED`` or ``ERROR``).
A new ``speak`` call cancels the utterance that is still playing.

Without a voice model (or without an audio device) the synthesizer is
unavailable and ``speak`` does nothing, so the assistant keeps working in
text-only mode.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

import nltk

from moneywise import config

log = logging.getLogger(__name__)


class SynthesisState(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"


class SynthesisEvent(str, Enum):
    STARTED = "started"
    ENDED = "ended"
    CANCELLED = "cancelled"
    ERROR = "error"


class Engine(Protocol):
    def create(self, text: str, voice: str, speed: float, lang: str) -> Tuple[Any, int]:
        ...


class Player(Protocol):
    def play(self, samples: Any, sample_rate: int) -> None:
        ...

    def wait(self) -> None:
        ...

    def stop(self) -> None:
        ...


class SoundDevicePlayer:
    """Plays sample buffers on the default output device."""

    def __init__(self):
        import sounddevice as sd

        self._sd = sd

    def play(self, samples: Any, sample_rate: int) -> None:
        self._sd.play(samples, sample_rate)

    def wait(self) -> None:
        self._sd.wait()

    def stop(self) -> None:
        self._sd.stop()


def load_kokoro(model_path: str = config.KOKORO_ONNX_PATH,
                voices_path: str = config.KOKORO_VOICES_PATH) -> Optional[Engine]:
    if not (os.path.exists(model_path) and os.path.exists(voices_path)):
        log.warning("Kokoro model files not found (%s, %s); speech output disabled",
                    model_path, voices_path)
        return None
    from kokoro_onnx import Kokoro

    return Kokoro(model_path, voices_path)


def sentences(text: str) -> List[str]:
    """Split ``text`` into sentences so playback can start early."""
    try:
        chunks = nltk.sent_tokenize(text, language="portuguese")
    except LookupError:
        log.warning("nltk punkt data missing; speaking the response in one piece")
        chunks = [text]
    return [chunk for chunk in chunks if chunk.strip()]


class SpeechSynthesizer:
    def __init__(
        self,
        engine: Optional[Engine] = None,
        player: Optional[Player] = None,
        voice: str = config.VOICE,
        lang: str = config.SPEECH_LOCALE.lower(),
        speed: float = 1.0,
    ):
        self.engine = engine
        self.player = player
        self.voice = voice
        self.lang = lang
        self.speed = speed
        self.state = SynthesisState.IDLE
        self._listeners: Dict[SynthesisEvent, List[Callable[[str], None]]] = defaultdict(list)
        self._generation = 0
        self._cancel = threading.Event()

    @classmethod
    def from_config(cls) -> "SpeechSynthesizer":
        try:
            engine = load_kokoro()
            player = SoundDevicePlayer() if engine else None
        except OSError as exc:
            # sounddevice raises OSError when PortAudio is missing
            log.warning("Audio output unavailable: %s", exc)
            engine, player = None, None
        return cls(engine=engine, player=player)

    @property
    def available(self) -> bool:
        return self.engine is not None and self.player is not None

    def on(self, event: SynthesisEvent, callback: Callable[[str], None]) -> None:
        self._listeners[event].append(callback)

    def _emit(self, event: SynthesisEvent, text: str) -> None:
        for callback in self._listeners[event]:
            try:
                callback(text)
            except Exception:
                log.exception("Synthesis listener for %s failed", event.value)

    def cancel(self) -> None:
        if self.state is not SynthesisState.SPEAKING:
            return
        self._cancel.set()
        if self.player:
            self.player.stop()

    async def speak(self, text: str) -> Optional[SynthesisEvent]:
        """Speak ``text`` and return how the utterance finished.

        Returns ``None`` when speech output is unavailable or ``text`` is blank.
        """
        if not self.available or not text.strip():
            return None
        self.cancel()
        self._generation += 1
        generation = self._generation
        cancel = self._cancel = threading.Event()
        self.state = SynthesisState.SPEAKING
        self._emit(SynthesisEvent.STARTED, text)

        loop = asyncio.get_running_loop()
        try:
            finished = await loop.run_in_executor(None, self._speak_sync, text, cancel)
            outcome = SynthesisEvent.ENDED if finished else SynthesisEvent.CANCELLED
        except Exception:
            log.exception("Speech synthesis failed")
            outcome = SynthesisEvent.ERROR
        if generation == self._generation:
            self.state = SynthesisState.IDLE
        self._emit(outcome, text)
        return outcome

    def _speak_sync(self, text: str, cancel: threading.Event) -> bool:
        for chunk in sentences(text):
            if cancel.is_set():
                return False
            samples, sample_rate = self.engine.create(  # type: ignore[union-attr]
                chunk, voice=self.voice, speed=self.speed, lang=self.lang)
            self.player.play(samples, sample_rate)  # type: ignore[union-attr]
            self.player.wait()  # type: ignore[union-attr]
        return not cancel.is_set()
