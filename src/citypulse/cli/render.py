"""CLI renderer for citypulse."""

from collections.abc import Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console, Group
from rich.json import JSON as RichJSON
from rich.markup import escape
from rich.panel import Panel

from citypulse.types import DashboardState, Failed, Loading, Message, Success


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None

    def info(self, message: str) -> None:
        """Render an info message."""
        self.console.print(message)

    def error(self, message: str) -> None:
        """Render an error message."""
        self.console.print(f"[bold red]⚠[/bold red] {escape(message)}")

    def welcome(self, message: str = "[bold blue]💬 台北市小助手[/bold blue]") -> None:
        """Render welcome message."""
        self.console.print(message)

    def usage_info(self, model: str = "", has_credential: bool = False, remember: bool = True) -> None:
        """Render model and credential status."""
        if model:
            self.console.print(f"[bold]Model:[/bold] [magenta]{escape(model)}[/magenta]")
        key_status = "[green]configured[/green]" if has_credential else "[red]missing[/red]"
        stored = " (remembered)" if has_credential and remember else ""
        self.console.print(f"[bold]Gemini API Key:[/bold] {key_status}{stored}")
        self.console.print("[dim]/reset restarts the chat, /quit exits, /1-/3 send a suggestion[/dim]")

    def suggestions(self, prompts: Sequence[str]) -> None:
        for idx, prompt in enumerate(prompts, start=1):
            self.console.print(f"[dim]/{idx}[/dim] {escape(prompt)}")

    def message(self, message: Message) -> None:
        """Render one transcript message."""
        if message.role == "user":
            self.console.print(f"[bold cyan]🧍 你:[/bold cyan] {escape(message.text)}")
        else:
            self.console.print(f"[bold yellow]🤖 Gemini:[/bold yellow] {escape(message.text)}")

    def thinking(self) -> Any:
        """Status spinner shown while a reply is pending."""
        return self.console.status("正在思考中… 💭")

    def json(self, payload: object, *, title: str | None = None) -> None:
        self.console.print(Panel(RichJSON.from_data(payload, ensure_ascii=False), title=title, expand=False))

    def dashboard(self, state: DashboardState) -> None:
        """Render every component of a dashboard in resolution order."""
        query = state.query
        if query is not None:
            self.console.print(
                f"[bold]Dashboard Index Viewer[/bold] city: {escape(query.city)}, index: {escape(query.index)}"
            )
        if isinstance(state.index_state, Loading):
            self.console.print("[dim]Loading…[/dim]")
            return
        if isinstance(state.index_state, Failed):
            self.error(f"Error: {state.index_state.error}")
            return
        if not state.components:
            self.console.print("[dim]No components found.[/dim]")
            return

        for ref in state.components:
            fetch = state.state_of(ref.id)
            title = f"Component #{ref.id}"
            if isinstance(fetch, Success):
                body: Any = RichJSON.from_data(fetch.data, ensure_ascii=False)
            elif isinstance(fetch, Failed):
                body = f"[red]Error: {escape(str(fetch.error))}[/red]"
            else:
                body = f"[dim]{fetch.status}…[/dim]"
            self.console.print(Panel(Group(body), title=title, border_style="blue", expand=False))

    async def get_user_input(self, default: str = "") -> str:
        """Prompt user for input."""
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return await self._prompt_session.prompt_async("> ", default=default)


def create_cli_renderer() -> Renderer:
    """Create and return a Renderer instance."""
    return Renderer()
