#!/usr/bin/env python3
"""
toolchat Interactive CLI

A command-line chat client that runs the turn loop in-process and renders
the same event stream the API sends to remote callers.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import Optional

from .config import config
from .config_loader import load_capabilities
from .models import Message
from .orchestration import (
    Aborted,
    Errored,
    Finished,
    OpenAIEngine,
    StreamAdapter,
    StreamEvent,
    TextDelta,
    ToolCallReady,
    ToolResultReady,
    TranscriptAccumulator,
    TurnLoop,
)
from .orchestration.engine import InferenceEngine
from .tools import select_tools

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    banner = """
╔════════════════════════════════════════════════════════════════╗
║                      toolchat Interactive                       ║
║                                                                 ║
║  Streaming chat with selectable tools                           ║
╚════════════════════════════════════════════════════════════════╝

Available commands:
  /help          - Show this help message
  /tools         - List tools and whether they are enabled
  /enable <id>   - Enable a tool
  /disable <id>  - Disable a tool
  /transcript    - Print the conversation as JSON
  /clear         - Clear conversation history
  /quit          - Exit the CLI

Press Ctrl+C while a response is streaming to stop it.
"""
    print(banner)


def _short(value, limit: int = 200) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text if len(text) <= limit else text[:limit] + "..."


def render_event(event: StreamEvent) -> None:
    """Print one stream event as it arrives."""
    if isinstance(event, TextDelta):
        print(event.text, end="", flush=True)
    elif isinstance(event, ToolCallReady):
        print(f"\n  → {event.tool_name}({_short(event.input)})", flush=True)
    elif isinstance(event, ToolResultReady):
        if event.error is not None:
            print(f"  ✗ {event.tool_name}: {event.error}", flush=True)
        else:
            print(f"  ← {event.tool_name}: {_short(event.output)}", flush=True)
    elif isinstance(event, Finished):
        print()
        if event.finish_reason == "length":
            print("(Stopped after reaching the step limit)")
    elif isinstance(event, Errored):
        print(f"\nError: {event.cause}\n")
    elif isinstance(event, Aborted):
        print("\n(Response stopped)\n")


class InteractiveCLI:
    """Interactive CLI session: transcript, enabled tools and the engine."""

    def __init__(
        self,
        engine: Optional[InferenceEngine] = None,
        enabled: Optional[list[str]] = None,
        max_steps: Optional[int] = None,
        verbose: bool = False,
        echo: bool = True,
    ):
        self.engine = engine or OpenAIEngine()
        self.capabilities = load_capabilities()
        if enabled is None:
            enabled = [c.id for c in self.capabilities if c.default_enabled]
        self.enabled: list[str] = list(dict.fromkeys(enabled))
        self.max_steps = max_steps
        self.verbose = verbose
        self.echo = echo
        self.transcript: list[Message] = []
        self.last_finish_reason: Optional[str] = None
        self._loop = asyncio.new_event_loop()

    def print_tools(self) -> None:
        """Print the catalog with enabled markers."""
        print("\nTools:")
        print("─" * 64)
        known = set()
        for capability in self.capabilities:
            known.add(capability.id)
            mark = "x" if capability.id in self.enabled else " "
            print(f"[{mark}] {capability.id.ljust(12)} - {capability.description}")
        for tool_id in self.enabled:
            if tool_id not in known:
                print(f"[x] {tool_id.ljust(12)} - (not in catalog)")
        print()

    def enable(self, tool_id: str) -> None:
        if tool_id not in self.enabled:
            self.enabled.append(tool_id)
        if not select_tools([tool_id]):
            print(f"\nNote: no tool is registered as '{tool_id}', it will be ignored.\n")
        else:
            print(f"\nEnabled {tool_id}\n")

    def disable(self, tool_id: str) -> None:
        if tool_id in self.enabled:
            self.enabled.remove(tool_id)
            print(f"\nDisabled {tool_id}\n")
        else:
            print(f"\n{tool_id} is not enabled\n")

    def clear_history(self) -> None:
        """Clear the conversation transcript."""
        self.transcript = []
        print("\nConversation history cleared.\n")

    def print_transcript(self) -> None:
        print(json.dumps([m.to_wire() for m in self.transcript], indent=2))

    async def respond(self, query: str, abort_event: Optional[asyncio.Event] = None) -> str:
        """
        Run one user turn and append its messages to the transcript.

        Returns:
            The terminal finish reason: a loop finish reason, ``error`` or
            ``aborted``.
        """
        abort_event = abort_event or asyncio.Event()
        self.transcript.append(Message.user(query))
        tools = select_tools(self.enabled)
        loop = TurnLoop(self.engine, max_steps=self.max_steps)
        accumulator = TranscriptAccumulator()

        async for event in StreamAdapter().adapt(loop.run(self.transcript, tools, abort_event)):
            accumulator.add(event)
            if self.echo:
                render_event(event)
            if event.is_terminal:
                self.transcript.extend(event.messages)

        self.last_finish_reason = accumulator.finish_reason
        return accumulator.finish_reason or "error"

    def process_query(self, query: str) -> str:
        """Run ``respond`` with Ctrl+C bound to the abort event."""
        abort_event = asyncio.Event()

        def _abort(signum, frame) -> None:
            if abort_event.is_set():
                raise KeyboardInterrupt
            logger.debug("Abort requested")
            self._loop.call_soon_threadsafe(abort_event.set)

        previous = signal.signal(signal.SIGINT, _abort)
        try:
            return self._loop.run_until_complete(self.respond(query, abort_event))
        finally:
            signal.signal(signal.SIGINT, previous)

    def run(self) -> None:
        """Run the interactive CLI loop."""
        print_banner()

        while True:
            try:
                user_input = input(">>> ").strip()

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    command, _, argument = user_input.partition(" ")
                    command = command.lower()
                    argument = argument.strip()

                    if command in ("/quit", "/exit", "/q"):
                        print("\nGoodbye!\n")
                        break
                    elif command in ("/help", "/h", "/?"):
                        print_banner()
                    elif command == "/tools":
                        self.print_tools()
                    elif command in ("/enable", "/disable") and argument:
                        if command == "/enable":
                            self.enable(argument)
                        else:
                            self.disable(argument)
                    elif command == "/transcript":
                        self.print_transcript()
                    elif command == "/clear":
                        self.clear_history()
                    else:
                        print(f"\nUnknown command: {user_input}")
                        print("Type /help for available commands.\n")
                else:
                    print()
                    self.process_query(user_input)
                    print()

            except KeyboardInterrupt:
                print("\n\nType /quit to exit.\n")
            except EOFError:
                print("\nGoodbye!\n")
                break

        self.cleanup()

    def cleanup(self) -> None:
        """Close the engine and the event loop."""
        close = getattr(self.engine, "close", None)
        try:
            if close is not None and not self._loop.is_closed():
                self._loop.run_until_complete(close())
        except Exception as e:
            logger.debug(f"Error closing engine: {e}")
        finally:
            if not self._loop.is_closed():
                self._loop.close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="toolchat Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Start interactive mode
  %(prog)s -v                           # Start with verbose logging
  %(prog)s -q "What is 2+2?"            # Run a single query
  %(prog)s -q "Weather?" --tools weather --json

Use /tools in interactive mode to see available tools.
""",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "-q",
        "--query",
        type=str,
        help="Run a single query and exit",
    )

    parser.add_argument(
        "--tools",
        type=str,
        default=None,
        help="Comma-separated tool ids to enable (default: catalog defaults)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"Chat model (default: from CHAT_MODEL env or {config.inference.model})",
    )

    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help=f"OpenAI-compatible endpoint URL (default: from OPENAI_BASE_URL env or {config.inference.base_url})",
    )

    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help=f"Maximum model steps per turn (default: {config.inference.max_steps})",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output the final transcript as JSON (for scripting)",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)

    enabled = None
    if args.tools is not None:
        enabled = [t.strip() for t in args.tools.split(",") if t.strip()]

    cli = InteractiveCLI(
        engine=OpenAIEngine(base_url=args.base_url, model=args.model),
        enabled=enabled,
        max_steps=args.max_steps,
        verbose=args.verbose,
        echo=not args.json,
    )

    try:
        if args.query:
            finish_reason = cli.process_query(args.query)
            if args.json:
                output = {
                    "query": args.query,
                    "finishReason": finish_reason,
                    "messages": [m.to_wire() for m in cli.transcript],
                }
                print(json.dumps(output, indent=2))
            if finish_reason == "error":
                sys.exit(1)
        else:
            cli.run()
    finally:
        cli.cleanup()


if __name__ == "__main__":
    main()
