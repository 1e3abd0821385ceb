"""Tests for the interactive CLI session."""

import asyncio

import pytest

from conftest import ScriptedEngine, text_step, tool_step
from toolchat.errors import InferenceEngineError
from toolchat.interactive import InteractiveCLI, render_event
from toolchat.models import validate_transcript
from toolchat.orchestration import Errored, TextDelta, ToolResultReady
from toolchat.orchestration.engine import TextChunk


@pytest.fixture
def make_cli():
    """Build CLIs around scripted engines and close them afterwards."""
    created = []

    def build(*steps, enabled=None):
        cli = InteractiveCLI(engine=ScriptedEngine(list(steps)), enabled=enabled, echo=False)
        created.append(cli)
        return cli

    yield build
    for cli in created:
        cli.cleanup()


def _respond(cli, query, abort_event=None):
    return cli._loop.run_until_complete(cli.respond(query, abort_event))


class TestInteractiveCLI:
    """Tests for InteractiveCLI."""

    def test_defaults_to_catalog_defaults(self, make_cli):
        cli = make_cli(text_step("hi"))
        assert "weather" in cli.enabled
        assert "notes" not in cli.enabled

    def test_respond_appends_turn(self, make_cli):
        cli = make_cli(text_step("Hello", "!"), enabled=[])

        assert _respond(cli, "hi") == "stop"

        assert [m.role for m in cli.transcript] == ["user", "assistant"]
        assert cli.transcript[1].text == "Hello!"
        assert cli.last_finish_reason == "stop"

    def test_tool_turn_round_trips(self, make_cli):
        cli = make_cli(
            tool_step(("c1", "calculator", {"expression": "6 * 7"})),
            text_step("42"),
            text_step("Anytime."),
            enabled=["calculator"],
        )

        _respond(cli, "6 times 7?")
        _respond(cli, "thanks")

        validate_transcript(cli.transcript)
        assert [m.role for m in cli.transcript] == ["user", "assistant", "assistant", "user", "assistant"]
        assert cli.transcript[-1].text == "Anytime."

    def test_abort_keeps_partial_text(self, make_cli):
        cli = make_cli([TextChunk(text="partial"), ScriptedEngine.HANG])

        async def run():
            abort = asyncio.Event()
            asyncio.get_running_loop().call_later(0.05, abort.set)
            return await cli.respond("go", abort)

        assert cli._loop.run_until_complete(run()) == "aborted"
        assert cli.transcript[-1].text == "partial"
        validate_transcript(cli.transcript)

    def test_engine_error(self, make_cli):
        cli = make_cli([InferenceEngineError("no route to host")])
        assert _respond(cli, "hi") == "error"
        assert [m.role for m in cli.transcript] == ["user"]

    def test_enable_disable(self, make_cli, capsys):
        cli = make_cli(text_step("x"), enabled=["weather"])

        cli.enable("calculator")
        cli.enable("calculator")
        cli.disable("weather")
        cli.disable("weather")

        assert cli.enabled == ["calculator"]
        assert "is not enabled" in capsys.readouterr().out

    def test_enable_unknown_tool_warns(self, make_cli, capsys):
        cli = make_cli(text_step("x"), enabled=[])
        cli.enable("teleport")
        assert cli.enabled == ["teleport"]
        assert "will be ignored" in capsys.readouterr().out

    def test_clear_history(self, make_cli):
        cli = make_cli(text_step("x"), enabled=[])
        _respond(cli, "hi")
        cli.clear_history()
        assert cli.transcript == []

    def test_cleanup_closes_engine(self):
        engine = ScriptedEngine([text_step("x")])
        cli = InteractiveCLI(engine=engine, enabled=[], echo=False)
        cli.cleanup()
        assert engine.closed is True
        cli.cleanup()


class TestRenderEvent:
    """Tests for render_event output."""

    def test_text_and_results(self, capsys):
        render_event(TextDelta(text="Hi"))
        render_event(ToolResultReady(call_id="c", tool_name="weather", output={"t": 1}))
        render_event(ToolResultReady(call_id="c", tool_name="weather", error="boom"))
        render_event(Errored(cause="down"))

        out = capsys.readouterr().out
        assert out.startswith("Hi")
        assert '← weather: {"t": 1}' in out
        assert "✗ weather: boom" in out
        assert "Error: down" in out
