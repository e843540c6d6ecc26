"""Command-line entry point: illustrate a message, test a search or list models."""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from config.config import IllustrationConfig, SearchPreference
from context.transcript_store import InMemoryTranscriptStore
from models.errors import ConfigurationError, IllustrationError
from models.illustration import Annotation, Candidate, SourceHint
from orchestrator.collaborators import BaseApprover, BaseRenderer, format_caption
from orchestrator.core import IllustrationOrchestrator
from tools.search import create_search_aggregator
from utils.logger import get_logger

logger = get_logger(__name__)


class ConsoleRenderer(BaseRenderer):
    """Prints the loading indicator and the chosen image to stdout."""

    def __init__(self, show_caption: bool = True):
        self.show_caption = show_caption
        self._rendered: dict[int, Annotation] = {}

    def show_loading(self, message_id: int) -> None:
        sys.stdout.write(f"\r\033[93mLooking for an illustration for message {message_id}...\033[0m")
        sys.stdout.flush()

    def clear_loading(self, message_id: int) -> None:
        sys.stdout.write("\r" + " " * 70 + "\r")
        sys.stdout.flush()

    async def render_annotation(self, message_id: int, annotation: Annotation) -> None:
        self._rendered[message_id] = annotation
        print(f"\n\033[92mImage:\033[0m {annotation.url}")
        if annotation.title:
            print(f"Title: {annotation.title}")
        if self.show_caption:
            print(format_caption(annotation))

    def withdraw_annotation(self, message_id: int) -> None:
        if self._rendered.pop(message_id, None) is not None:
            print("\033[91mImage could not be saved and was discarded.\033[0m")

    def has_rendered(self, message_id: int) -> bool:
        return message_id in self._rendered


class ConsoleApprover(BaseApprover):
    """Asks on the terminal whether the selected image should be attached."""

    async def present_for_approval(self, candidate: Candidate, *, message_id: int) -> bool:
        print(f"\nProposed image for message {message_id}:")
        print(f"  {candidate.title or '(untitled)'} [{candidate.source_tag}]")
        print(f"  {candidate.url}")
        answer = await asyncio.to_thread(input, "Attach this image? [y/N]: ")
        return answer.strip().lower() in ("y", "yes")


def _load_config(args: argparse.Namespace) -> IllustrationConfig:
    config = IllustrationConfig.from_env(args.env_file)
    overrides = {"enabled": True}
    if getattr(args, "preference", None):
        overrides["search_preference"] = SearchPreference.parse(args.preference)
    if getattr(args, "max_queries", None):
        overrides["max_queries"] = args.max_queries
    if getattr(args, "confirm", False):
        overrides["auto_mode"] = False
    if getattr(args, "min_length", None) is not None:
        overrides["min_message_length"] = args.min_length
    return config.with_overrides(**overrides)


async def _illustrate(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if not config.validate():
        print("Configuration incomplete; see the log for details.")

    if args.file:
        with open(args.file, encoding="utf-8") as f:
            text = f.read()
    else:
        text = " ".join(args.text)

    store = InMemoryTranscriptStore()
    message_id = store.add_message(args.role, text)
    renderer = ConsoleRenderer(show_caption=config.show_caption)
    approver = None if config.auto_mode else ConsoleApprover()
    orchestrator = IllustrationOrchestrator.from_config(config, store, renderer, approver=approver)

    outcome = await orchestrator.run(message_id)
    print(f"\nResult: {outcome.state.value} ({outcome.reason})")
    print(f"Queries: {outcome.query_count}  Candidates: {outcome.candidate_count}")
    if outcome.error:
        print(f"Error: {outcome.error}")
    return 0 if outcome.annotated else 1


async def _search(args: argparse.Namespace) -> int:
    config = _load_config(args)
    hint = SourceHint.parse(args.source) or SourceHint.EITHER
    aggregator = create_search_aggregator(config)

    candidates = await aggregator.search_once(args.query, hint)
    if not candidates:
        print("No images found.")
        return 1

    print(f"\n=== {len(candidates)} result(s) for '{args.query}' via {hint.value} ===")
    for i, candidate in enumerate(candidates):
        size = f"{candidate.width}x{candidate.height}" if candidate.width else "?"
        print(f"{i:2d}. [{candidate.source_tag}] {candidate.title or '(untitled)'} ({size})")
        print(f"    {candidate.url}")
    return 0


async def _models(args: argparse.Namespace) -> int:
    from api.openai_client import OpenAIClient

    config = _load_config(args)
    try:
        client = OpenAIClient.from_config(config)
        models = await client.list_models()
    except ConfigurationError as e:
        print(f"Not configured: {e}")
        return 2
    except IllustrationError as e:
        print(f"Model listing failed: {e}")
        return 1

    print(f"\n=== {len(models)} model(s) available ===")
    for model in models:
        marker = " (current)" if model == config.ai_model else ""
        print(f"  {model}{marker}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Attach illustrative images to chat messages")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    illustrate = sub.add_parser("illustrate", help="Run the pipeline for one message")
    illustrate.add_argument("text", nargs="*", help="Message text")
    illustrate.add_argument("--file", help="Read the message text from a file")
    illustrate.add_argument("--role", default="assistant", help="Message role")
    illustrate.add_argument("--confirm", action="store_true", help="Ask before attaching")
    illustrate.add_argument("--preference", choices=[p.value for p in SearchPreference])
    illustrate.add_argument("--max-queries", type=int)
    illustrate.add_argument("--min-length", type=int)
    illustrate.set_defaults(handler=_illustrate)

    search = sub.add_parser("search", help="Test a single image search")
    search.add_argument("query", help="Search phrase")
    search.add_argument("--source", default="either", help="encyclopedic, web or either")
    search.set_defaults(handler=_search)

    models = sub.add_parser("models", help="List models offered by the completion backend")
    models.set_defaults(handler=_models)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "illustrate" and not args.text and not args.file:
        parser.error("illustrate needs message text or --file")

    try:
        return asyncio.run(args.handler(args))
    except KeyboardInterrupt:
        print("\nExiting...")
        return 130


if __name__ == "__main__":
    sys.exit(main())
