from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

import pytest

from citypulse.credentials import CredentialHolder, MemoryKeyValueStore
from citypulse.errors import MissingCredentialError, TransportError
from citypulse.session import DEFAULT_GREETING, DEFAULT_STARTER, EMPTY_REPLY_PLACEHOLDER, ConversationSession
from citypulse.types import Message, SessionState


@dataclass
class ScriptedGenerator:
    replies: list[str | Exception]
    calls: list[tuple[str, tuple[Message, ...], str]] = field(default_factory=list)

    async def generate(self, model_name: str, contents: Sequence[Message], credential: str) -> str:
        self.calls.append((model_name, tuple(contents), credential))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@dataclass
class BlockingGenerator:
    """Each call waits until the test hands it a reply."""

    calls: list[tuple[Message, ...]] = field(default_factory=list)
    futures: list[asyncio.Future[str]] = field(default_factory=list)

    async def generate(self, model_name: str, contents: Sequence[Message], credential: str) -> str:
        self.calls.append(tuple(contents))
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self.futures.append(future)
        return await future


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def test_start_resets_to_greeting_and_seeds_draft() -> None:
    session = ConversationSession(ScriptedGenerator(replies=[]))

    session.start()

    state = session.state
    assert state.transcript == (Message.model(DEFAULT_GREETING),)
    assert state.draft == DEFAULT_STARTER
    assert state.loading is False
    assert state.error is None


@pytest.mark.asyncio
async def test_start_again_replaces_prior_transcript() -> None:
    session = ConversationSession(ScriptedGenerator(replies=["first reply"]))
    session.start(greeting="hi")
    await session.send("hello", credential="key")

    session.start(greeting="welcome back", seed_input="")

    assert session.state.transcript == (Message.model("welcome back"),)
    assert session.state.draft == ""


@pytest.mark.asyncio
async def test_send_appends_user_message_before_reply_arrives() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")

    task = asyncio.create_task(session.send("  hello  ", credential="key"))
    await _settle()

    assert session.state.transcript == (Message.model("hi"), Message.user("hello"))
    assert session.state.loading is True

    generator.futures[0].set_result("hey there")
    reply = await task

    assert reply == Message.model("hey there")
    assert session.state.transcript[-1] == Message.model("hey there")
    assert session.state.loading is False


@pytest.mark.asyncio
async def test_user_message_is_published_synchronously() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")
    published: list[SessionState] = []
    session.subscribe(published.append)

    task = asyncio.create_task(session.send("hello", credential="key"))
    await _settle()

    assert published[0].transcript[-1] == Message.user("hello")
    assert published[0].loading is True
    assert generator.calls == [(Message.model("hi"), Message.user("hello"))]

    generator.futures[0].set_result("ok")
    await task
    assert published[-1].loading is False


@pytest.mark.asyncio
async def test_every_request_carries_the_full_transcript() -> None:
    generator = ScriptedGenerator(replies=["answer one", "answer two"])
    session = ConversationSession(generator, model_name="gemini-2.5-pro")
    session.start(greeting="hi")

    await session.send("question one", credential="key")
    await session.send("question two", credential="key")

    model, contents, credential = generator.calls[1]
    assert model == "gemini-2.5-pro"
    assert credential == "key"
    assert contents == (
        Message.model("hi"),
        Message.user("question one"),
        Message.model("answer one"),
        Message.user("question two"),
    )


@pytest.mark.asyncio
async def test_second_send_while_pending_is_a_no_op() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")

    first = asyncio.create_task(session.send("one", credential="key"))
    await _settle()
    second = await session.send("two", credential="key")

    assert second is None
    assert len(generator.calls) == 1
    assert len(session.state.transcript) == 2

    generator.futures[0].set_result("reply")
    await first
    assert [message.text for message in session.state.transcript] == ["hi", "one", "reply"]


@pytest.mark.asyncio
async def test_empty_reply_uses_placeholder() -> None:
    session = ConversationSession(ScriptedGenerator(replies=[""]))
    session.start()

    reply = await session.send("hello", credential="key")

    assert reply is not None
    assert reply.text == EMPTY_REPLY_PLACEHOLDER
    assert session.state.transcript[-1] == Message.model(EMPTY_REPLY_PLACEHOLDER)


@pytest.mark.asyncio
async def test_missing_credential_sends_nothing_and_leaves_transcript() -> None:
    generator = ScriptedGenerator(replies=["never"])
    session = ConversationSession(generator)
    session.start()
    before = session.state.transcript

    reply = await session.send("hello", "", "gemini-2.5-flash")

    assert reply is None
    assert generator.calls == []
    assert session.state.transcript == before
    assert isinstance(session.state.error, MissingCredentialError)
    assert session.state.loading is False


@pytest.mark.asyncio
async def test_failure_keeps_user_message_and_surfaces_error() -> None:
    generator = ScriptedGenerator(replies=[TransportError("API key not valid. Please pass a valid API key.")])
    session = ConversationSession(generator)
    session.start(greeting="hi")

    reply = await session.send("hello", credential="bad")

    assert reply is None
    assert session.state.transcript == (Message.model("hi"), Message.user("hello"))
    assert str(session.state.error) == "API key not valid. Please pass a valid API key."
    assert session.state.loading is False


@pytest.mark.asyncio
async def test_new_send_clears_previous_error() -> None:
    generator = ScriptedGenerator(replies=[TransportError("boom"), "recovered"])
    session = ConversationSession(generator)
    session.start(greeting="hi")

    await session.send("first", credential="key")
    assert session.state.error is not None
    await session.send("again", credential="key")

    assert session.state.error is None
    assert [message.text for message in session.state.transcript] == ["hi", "first", "again", "recovered"]


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_transport_error() -> None:
    session = ConversationSession(ScriptedGenerator(replies=[ValueError("bad json")]))
    session.start()

    await session.send("hello", credential="key")

    assert isinstance(session.state.error, TransportError)
    assert str(session.state.error) == "bad json"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_text_is_ignored(text: str) -> None:
    generator = ScriptedGenerator(replies=[])
    session = ConversationSession(generator)
    session.start(seed_input="")

    assert await session.send(text, credential="key") is None
    assert generator.calls == []
    assert len(session.state.transcript) == 1
    assert session.state.error is None


@pytest.mark.asyncio
async def test_send_without_text_uses_draft() -> None:
    generator = ScriptedGenerator(replies=["crowded"])
    session = ConversationSession(generator)
    session.start()

    await session.send(credential="key")

    assert session.state.transcript[1] == Message.user(DEFAULT_STARTER)
    assert session.state.draft == ""


@pytest.mark.asyncio
async def test_credential_holder_supplies_default_credential() -> None:
    holder = CredentialHolder(MemoryKeyValueStore({"gemini_api_key": "stored-key"}))
    holder.load()
    generator = ScriptedGenerator(replies=["ok"])
    session = ConversationSession(generator, credentials=holder)
    session.start()

    await session.send("hello")

    assert generator.calls[0][2] == "stored-key"


@pytest.mark.asyncio
async def test_restart_while_pending_drops_the_late_reply() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")

    task = asyncio.create_task(session.send("hello", credential="key"))
    await _settle()
    session.start(greeting="fresh", seed_input="")
    assert session.state.loading is False

    generator.futures[0].set_result("late reply")
    assert await task is None
    assert session.state.transcript == (Message.model("fresh"),)


@pytest.mark.asyncio
async def test_restart_while_pending_drops_the_late_error() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")

    task = asyncio.create_task(session.send("hello", credential="key"))
    await _settle()
    session.start(greeting="fresh", seed_input="")

    generator.futures[0].set_exception(TransportError("late failure"))
    await task
    assert session.state.error is None


@pytest.mark.asyncio
async def test_send_is_accepted_again_after_restart() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")

    stale = asyncio.create_task(session.send("old", credential="key"))
    await _settle()
    session.start(greeting="fresh", seed_input="")
    current = asyncio.create_task(session.send("new", credential="key"))
    await _settle()

    generator.futures[1].set_result("new reply")
    generator.futures[0].set_result("old reply")
    await asyncio.gather(stale, current)

    assert [message.text for message in session.state.transcript] == ["fresh", "new", "new reply"]


@pytest.mark.asyncio
async def test_cancelled_request_clears_loading() -> None:
    generator = BlockingGenerator()
    session = ConversationSession(generator)
    session.start(greeting="hi")

    task = asyncio.create_task(session.send("hello", credential="key"))
    await _settle()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert session.state.loading is False
    assert session.state.transcript[-1] == Message.user("hello")
