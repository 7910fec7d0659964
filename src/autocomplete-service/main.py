#!/usr/bin/env python3
"""
Caption Autocomplete Service - Main Entry Point
Word autocomplete for image caption datasets, backed by a local Ollama
server with a local lexicon fallback.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional
from config import settings
from services.autocomplete_engine import AutocompleteEngine
from services.dataset_session import DatasetSession
from services.local_lexicon import suggest_local_completion
from services.settings_store import SettingsStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stderr)  # stdout carries the JSON output
    ]
)

logger = logging.getLogger(__name__)


def get_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Caption dataset autocomplete")
    parser.add_argument("--settings-path", help="Autocomplete settings JSON file",
                        type=str, default=settings.settings_path)
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Check Ollama and the configured model")
    subparsers.add_parser("models", help="List installed Ollama models")

    suggest = subparsers.add_parser("suggest", help="Suggest a completion for TEXT")
    suggest.add_argument("text", type=str)
    suggest.add_argument("--cursor", help="Cursor offset (default: end of text)", type=int, default=None)
    suggest.add_argument("--folder", help="Dataset folder used as local lexicon corpus", type=str, default=None)
    suggest.add_argument("--scan-mode", help="How --folder is scanned", choices=["recursive", "top-level"], default="recursive")

    settings_cmd = subparsers.add_parser("settings", help="Show, update or reset settings")
    settings_cmd.add_argument("action", choices=["show", "set", "reset"])
    settings_cmd.add_argument("pairs", nargs="*", help="KEY=VALUE updates for 'set'")

    return parser.parse_args(argv)


def parse_pairs(pairs: List[str]) -> Dict[str, Any]:
    """Parse KEY=VALUE arguments, decoding JSON values where possible"""
    updates: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Expected KEY=VALUE, got '{pair}'")
        try:
            updates[key.strip()] = json.loads(value)
        except ValueError:
            updates[key.strip()] = value
    return updates


def print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


async def run(args: argparse.Namespace) -> int:
    engine = AutocompleteEngine(SettingsStore(args.settings_path))
    try:
        if args.command == "health":
            status = await engine.health()
            print_json(status.model_dump(exclude_none=True))
            return 0 if status.ok else 1

        if args.command == "models":
            print_json(await engine.list_models())
            return 0

        if args.command == "suggest":
            cursor = len(args.text) if args.cursor is None else args.cursor
            corpus = [args.text]
            if args.folder:
                corpus += DatasetSession.from_folder(args.folder, args.scan_mode).texts()

            local = suggest_local_completion(corpus, args.text, cursor, engine.get_settings().mode)
            response = await engine.suggest(args.text, cursor)
            print_json({
                "local": local,
                "remote": response.model_dump(exclude_none=True),
            })
            return 0

        if args.action == "show":
            print_json(engine.get_settings().model_dump(by_alias=True))
        elif args.action == "reset":
            print_json(engine.reset_settings().model_dump(by_alias=True))
        else:
            print_json(engine.update_settings(parse_pairs(args.pairs)).model_dump(by_alias=True))
        return 0
    finally:
        await engine.close()


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = get_args(argv)
    logger.debug(f"Starting {settings.service_name} ({args.command})")

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.info("\nReceived keyboard interrupt, shutting down...")
    except ValueError as e:
        logger.error(f"Invalid arguments: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
