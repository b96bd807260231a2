"""switchboard - command line entry point

Streams one prompt through the configured providers and prints the answer.

    python -m switchboard --model openai:gpt-4o-mini "What is 2+2?"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.live import Live
from rich.text import Text

from switchboard.agent.message import ChatRequest, Message
from switchboard.config import build_registry, load_config
from switchboard.errors import SwitchboardError

_console = Console()


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="switchboard", description=__doc__.splitlines()[0])
    parser.add_argument("prompt", help="User prompt")
    parser.add_argument("--config", help="Path to the YAML config file")
    parser.add_argument("--model", help="provider:model, defaults to default_model from the config")
    parser.add_argument("--system", help="Optional system prompt")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    registry = build_registry(config)

    messages = [Message.system(args.system)] if args.system else []
    messages.append(Message.user(args.prompt))
    request = ChatRequest(model=config.model(args.model), messages=messages)

    try:
        with Live(Text(""), console=_console, refresh_per_second=12) as live:
            async for snapshot in registry.stream(request):
                live.update(Text(snapshot.text))
    finally:
        await registry.aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except SwitchboardError as e:
        _console.print(f"[red]{type(e).__name__}:[/red] {e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
