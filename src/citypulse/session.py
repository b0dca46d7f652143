"""Multi-turn conversation session."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger

from citypulse.concurrency import GenerationCounter, Listeners, bind_run
from citypulse.credentials import CredentialHolder
from citypulse.errors import CityPulseError, MissingCredentialError, TransportError
from citypulse.generation import DEFAULT_MODEL, TextGenerator
from citypulse.types import Message, SessionState

DEFAULT_GREETING = "嗨👋 我是你的台北小助手，想知道什麼都可以問我喔！"
DEFAULT_STARTER = "今天松山新店線捷運壅擠程度?"
EMPTY_REPLY_PLACEHOLDER = "[No content]"
QUICK_PROMPTS = (
    "今天台北有什麼免費展覽？",
    "怎麼從台北車站到古亭捷運站",
    "台北市有什麼好吃的美食",
)


class ConversationSession:
    """Owns one transcript and drives at most one generation request at a time.

    The generation service is stateless, so every request carries the whole
    transcript. Consumers read ``state`` or ``subscribe`` to snapshots.
    """

    def __init__(
        self,
        generator: TextGenerator,
        *,
        model_name: str = DEFAULT_MODEL,
        credentials: CredentialHolder | None = None,
    ) -> None:
        self._generator = generator
        self._credentials = credentials
        self._runs = GenerationCounter()
        self._listeners: Listeners[SessionState] = Listeners()
        self._model_name = model_name
        self._transcript: list[Message] = []
        self._pending: int | None = None
        self._error: Exception | None = None
        self._draft = ""

    @property
    def state(self) -> SessionState:
        return SessionState(
            model_name=self._model_name,
            transcript=tuple(self._transcript),
            loading=self._pending is not None,
            error=self._error,
            draft=self._draft,
        )

    @property
    def loading(self) -> bool:
        return self._pending is not None

    @property
    def model_name(self) -> str:
        return self._model_name

    @model_name.setter
    def model_name(self, value: str) -> None:
        self._model_name = value
        self._notify()

    def subscribe(self, listener: Callable[[SessionState], None]) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    def set_draft(self, text: str) -> None:
        self._draft = text
        self._notify()

    def start(self, greeting: str = DEFAULT_GREETING, seed_input: str = DEFAULT_STARTER) -> None:
        """Replace all state with a transcript holding only the greeting."""
        self._runs.advance()
        self._transcript = [Message.model(greeting)]
        self._pending = None
        self._error = None
        self._draft = seed_input or ""
        logger.debug("session.start run={}", self._runs.current)
        self._notify()

    async def send(
        self,
        text: str | None = None,
        credential: str | None = None,
        model_name: str | None = None,
    ) -> Message | None:
        """Run one exchange; returns the appended model message, or ``None``.

        ``None`` covers every outcome that appends no reply: empty text, a
        request already pending, a missing credential, a failed request, or
        a request superseded by ``start``. Failures are surfaced in ``state.error``.
        """
        content = (self._draft if text is None else text).strip()
        if not content or self._pending is not None:
            return None

        key = credential if credential is not None else self._credential()
        if not key:
            self._error = MissingCredentialError()
            self._notify()
            return None

        model = model_name or self._model_name
        token = self._runs.advance()
        self._pending = token
        self._error = None
        self._transcript.append(Message.user(content))
        self._draft = ""
        self._notify()

        with bind_run(f"session:{token}"):
            try:
                reply = await self._generator.generate(model, tuple(self._transcript), key)
            except asyncio.CancelledError:
                if self._runs.is_current(token):
                    self._pending = None
                    self._notify()
                raise
            except CityPulseError as exc:
                return self._fail(token, exc)
            except Exception as exc:
                logger.exception("session.generate.error")
                return self._fail(token, TransportError(str(exc) or type(exc).__name__))

            if not self._runs.is_current(token):
                logger.debug("session.reply.stale run={}", token)
                return None
            self._pending = None
            message = Message.model(reply or EMPTY_REPLY_PLACEHOLDER)
            self._transcript.append(message)
            logger.info("session.reply chars={} turns={}", len(message.text), len(self._transcript))
            self._notify()
            return message

    def _fail(self, token: int, exc: Exception) -> None:
        if not self._runs.is_current(token):
            logger.debug("session.error.stale run={} error={}", token, exc)
            return None
        logger.warning("session.error error={}", exc)
        self._error = exc
        self._pending = None
        self._notify()
        return None

    def _credential(self) -> str:
        if self._credentials is None:
            return ""
        return self._credentials.value

    def _notify(self) -> None:
        self._listeners.publish(self.state)
