"""CLI entry point for searchbind administration."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import sys
from pathlib import Path
from typing import Any


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from searchbind.config.settings import Settings
    from searchbind.observability.logging import setup_logging

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        settings = Settings.from_yaml(config_path)
    else:
        settings = Settings()

    if args.log_level:
        settings.observability.log_level = args.log_level
    setup_logging(settings.observability)

    sys.exit(asyncio.run(_run(args, settings)))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="searchbind",
        description="searchbind — entity-to-OpenSearch index management",
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (overrides config)",
    )
    parser.add_argument("--version", action="version", version=f"searchbind {_get_version()}")

    entities = argparse.ArgumentParser(add_help=False)
    entities.add_argument(
        "--entities",
        "-e",
        nargs="+",
        required=True,
        metavar="PACKAGE",
        help="Packages scanned for @searchable entity types",
    )
    store = argparse.ArgumentParser(add_help=False)
    store.add_argument(
        "--store",
        "-s",
        required=True,
        metavar="MODULE:ATTR",
        help="Primary store instance, or a factory returning one",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    mapping = commands.add_parser("mapping", parents=[entities], help="Print the derived index mappings")
    mapping.add_argument("--type", "-t", dest="type_name", default=None, help="Only print this document type")
    commands.add_parser("ensure", parents=[entities], help="Create and map every index")
    commands.add_parser("rebuild", parents=[entities, store], help="Drop, recreate and reindex every index")
    index_all = commands.add_parser("index-all", parents=[entities, store], help="Reindex one document type")
    index_all.add_argument("type_name", metavar="TYPE", help="Document type name")
    return parser


async def _run(args: argparse.Namespace, settings: Any) -> int:
    from searchbind.backends.store import InMemoryStore
    from searchbind.core.engine import SearchBindEngine

    store = _load_object(args.store) if getattr(args, "store", None) else InMemoryStore()
    engine = SearchBindEngine(settings, store)
    engine.scan(*args.entities)

    try:
        if args.command == "mapping":
            return _print_mappings(engine, args.type_name)
        await engine.initialize()
        if args.command == "rebuild":
            report = await engine.rebuild()
            print(report.model_dump_json(indent=2))
            return 0 if report.succeeded else 1
        if args.command == "index-all":
            result = await engine.index_all(args.type_name)
            print(result.model_dump_json(indent=2))
            return 0 if result.failed == 0 else 1
        return 0
    finally:
        await engine.shutdown()


def _print_mappings(engine: Any, type_name: str | None) -> int:
    names = [type_name] if type_name else engine.registry.type_names
    output: dict[str, Any] = {}
    for name in names:
        mapping = engine.registry.mapping_for(name)
        if mapping is None:
            print(f"Error: Unknown document type: {name}", file=sys.stderr)
            return 1
        output[name] = {"index": engine.registry.index_name_for(name), "mapping": mapping.to_mapping()}
    print(json.dumps(output, indent=2))
    return 0


def _load_object(path: str) -> Any:
    """Import ``'package.module:attr'``; callables that are not stores are called."""
    from searchbind.backends.store import PrimaryStore

    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        print(f"Error: Expected MODULE:ATTR, got '{path}'", file=sys.stderr)
        sys.exit(1)
    try:
        obj = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        print(f"Error: Cannot load '{path}': {e}", file=sys.stderr)
        sys.exit(1)
    if isinstance(obj, type) or (callable(obj) and not isinstance(obj, PrimaryStore)):
        obj = obj()
    return obj


def _get_version() -> str:
    """Get the package version."""
    try:
        from searchbind import __version__

        return __version__
    except ImportError:
        return "unknown"


if __name__ == "__main__":
    main()
