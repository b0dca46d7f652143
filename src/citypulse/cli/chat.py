"""Interactive chat loop driven by session state snapshots."""

from __future__ import annotations

from citypulse.cli.render import Renderer
from citypulse.credentials import CredentialHolder
from citypulse.session import QUICK_PROMPTS, ConversationSession
from citypulse.types import SessionState, Transcript

QUIT_COMMANDS = frozenset({"/quit", "/exit", "/q"})
USAGE = f"Commands: /reset, /model <name>, /key <value>, /remember on|off, /1-/{len(QUICK_PROMPTS)}, /quit"


class InteractiveChat:
    """Reads lines from the terminal and renders whatever the session publishes."""

    def __init__(
        self,
        session: ConversationSession,
        renderer: Renderer,
        credentials: CredentialHolder,
        *,
        credential: str | None = None,
    ) -> None:
        self._session = session
        self._renderer = renderer
        self._credentials = credentials
        self._credential = credential
        self._shown: Transcript = ()
        self._shown_error: Exception | None = None
        session.subscribe(self._on_state)

    async def run(self) -> None:
        self._renderer.welcome()
        self._renderer.usage_info(
            model=self._session.model_name,
            has_credential=bool(self._credential or self._credentials.value),
            remember=self._credentials.remember,
        )
        self._session.start()
        self._renderer.suggestions(QUICK_PROMPTS)
        while True:
            try:
                line = await self._renderer.get_user_input(default=self._session.state.draft)
            except (KeyboardInterrupt, EOFError):
                self._renderer.info("\nGoodbye!")
                return
            if not await self.handle(line):
                self._renderer.info("Goodbye!")
                return

    async def handle(self, line: str) -> bool:
        """Handle one input line; returns False when the user asked to leave."""
        command, _, argument = line.strip().partition(" ")
        if command in QUIT_COMMANDS:
            return False
        if command == "/reset":
            self._session.start(seed_input="")
            return True
        if command == "/model":
            if argument.strip():
                self._session.model_name = argument.strip()
            self._renderer.info(f"Model: {self._session.model_name}")
            return True
        if command == "/key":
            if argument.strip():
                self._credentials.update(argument.strip())
                self._renderer.info("API key updated.")
            else:
                self._credentials.forget()
                self._renderer.info("API key cleared.")
            self._credential = None
            return True
        if command == "/remember":
            self._credentials.set_remember(argument.strip().lower() not in {"off", "no", "false", "0"})
            self._renderer.info(f"Remember API key: {'on' if self._credentials.remember else 'off'}")
            return True

        text = _quick_prompt(command)
        if text is None:
            if command.startswith("/"):
                self._renderer.info(USAGE)
                return True
            text = line
        self._session.set_draft("")
        with self._renderer.thinking():
            await self._session.send(text, credential=self._credential)
        return True

    def _on_state(self, state: SessionState) -> None:
        transcript = state.transcript
        if transcript[: len(self._shown)] != self._shown:
            self._shown = ()
        for message in transcript[len(self._shown) :]:
            self._renderer.message(message)
        self._shown = transcript

        if state.error is not None and state.error is not self._shown_error:
            self._renderer.error(str(state.error))
        self._shown_error = state.error


def _quick_prompt(command: str) -> str | None:
    if not command.startswith("/") or not command[1:].isdigit():
        return None
    position = int(command[1:])
    if 1 <= position <= len(QUICK_PROMPTS):
        return QUICK_PROMPTS[position - 1]
    return None
