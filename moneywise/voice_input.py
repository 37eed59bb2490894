"""Microphone speech recognition.

``SpeechRecognizer`` wraps a RealtimeSTT ``AudioToTextRecorder`` in a small
state machine: ``IDLE -> LISTENING -> IDLE``, reporting each listening
session as a ``RESULT`` (transcribed text), an ``ERROR`` or ``STOPPED`` (the
user stopped it, or nothing was said).
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

log = logging.getLogger(__name__)


class RecognitionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


class RecognitionEvent(str, Enum):
    RESULT = "result"
    ERROR = "error"
    STOPPED = "stopped"


class Recorder(Protocol):
    def text(self) -> str:
        ...

    def abort(self) -> None:
        ...


def load_recorder(language: str = "pt", model: str = "small") -> Recorder:
    from RealtimeSTT import AudioToTextRecorder

    return AudioToTextRecorder(
        language=language,
        model=model,
        compute_type="int8",
        post_speech_silence_duration=0.6,
        enable_realtime_transcription=True,
        realtime_model_type="tiny",
        no_log_file=True,
        spinner=False,
    )


class SpeechRecognizer:
    """Single-flight speech capture.

    Usage::
        recognizer = SpeechRecognizer.from_config()
        recognizer.on(RecognitionEvent.RESULT, handle_text)
        recognizer.listen()
    """

    def __init__(self, recorder: Optional[Recorder] = None):
        self.recorder = recorder
        self.state = RecognitionState.IDLE
        self._listeners: Dict[RecognitionEvent, List[Callable[[Any], None]]] = defaultdict(list)
        self._stop_requested = False

    @classmethod
    def from_config(cls, language: str = "pt") -> "SpeechRecognizer":
        try:
            recorder = load_recorder(language)
        except OSError as exc:
            # no microphone / PortAudio
            log.warning("Speech recognition unavailable: %s", exc)
            recorder = None
        return cls(recorder)

    @property
    def available(self) -> bool:
        return self.recorder is not None

    def on(self, event: RecognitionEvent, callback: Callable[[Any], None]) -> None:
        self._listeners[event].append(callback)

    def _finish(self, event: RecognitionEvent, payload: Any) -> None:
        self.state = RecognitionState.IDLE
        for callback in self._listeners[event]:
            try:
                callback(payload)
            except Exception:
                log.exception("Recognition listener for %s failed", event.value)

    def listen(self) -> Optional[str]:
        """Capture one utterance; blocks until it ends.

        Returns the transcribed text, or ``None`` if the session was stopped,
        failed, or recognition is unavailable.
        """
        if not self.available:
            log.info("Speech recognition not available, use text commands")
            return None
        if self.state is RecognitionState.LISTENING:
            log.warning("Already listening, ignoring second start")
            return None
        self._stop_requested = False
        self.state = RecognitionState.LISTENING
        try:
            text = self.recorder.text()  # type: ignore[union-attr]
        except Exception as exc:
            log.exception("Speech recognition failed")
            self._finish(RecognitionEvent.ERROR, exc)
            return None
        text = (text or "").strip()
        if self._stop_requested or not text:
            self._finish(RecognitionEvent.STOPPED, None)
            return None
        self._finish(RecognitionEvent.RESULT, text)
        return text

    async def listen_async(self) -> Optional[str]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.listen)

    def stop(self) -> None:
        if self.state is not RecognitionState.LISTENING:
            return
        self._stop_requested = True
        self.recorder.abort()  # type: ignore[union-attr]
