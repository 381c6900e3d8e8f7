from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv
from sqlalchemy import MetaData

from recordsync.adapters.sqlalchemy.unit_of_work import shutdown
from recordsync.app import OPERATIONS, build_sqlalchemy_service
from recordsync.config import configure_logging
from recordsync.domain.registry import TypeRegistry

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType, ModuleType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run recordsync protocol operations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    call = subparsers.add_parser("call", help="Run one protocol operation")
    call.add_argument("operation", choices=OPERATIONS, help="Operation to run")
    call.add_argument(
        "--registry",
        type=str,
        required=True,
        help="Type registry to serve, as module:attribute",
    )
    call.add_argument(
        "--payload",
        type=str,
        help="JSON request payload file, or '-' to read stdin",
    )
    call.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy database URI (defaults to config)",
    )
    call.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables from the registry module's 'metadata' before running",
    )
    return parser.parse_args(list(argv))


def _split_target(target: str) -> tuple[ModuleType, str]:
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected module:attribute, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ValueError(f"Cannot import {module_name!r}: {exc}") from exc
    return module, attribute


def _load_registry(target: str) -> tuple[TypeRegistry, ModuleType]:
    module, attribute = _split_target(target)
    registry = getattr(module, attribute, None)
    if callable(registry) and not isinstance(registry, TypeRegistry):
        try:
            registry = registry()
        except TypeError as exc:
            raise ValueError(f"Cannot build a registry from {target!r}: {exc}") from exc
    if not isinstance(registry, TypeRegistry):
        raise ValueError(f"{target!r} is not a TypeRegistry")
    return registry, module


def _load_metadata(module: ModuleType) -> MetaData:
    metadata = getattr(module, "metadata", None)
    if not isinstance(metadata, MetaData):
        raise ValueError(f"Module {module.__name__!r} exposes no SQLAlchemy 'metadata'")
    return metadata


def _read_payload(source: str | None) -> dict[str, Any]:
    if source is None:
        return {}
    try:
        if source == "-":
            text = sys.stdin.read()
        else:
            with open(source, encoding="utf-8") as handle:
                text = handle.read()
    except OSError as exc:
        raise ValueError(f"Cannot read payload {source!r}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object")
    return payload


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        registry, module = _load_registry(parsed_args.registry)
        metadata = _load_metadata(module) if parsed_args.create_tables else None
        payload = _read_payload(parsed_args.payload)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        service = build_sqlalchemy_service(
            registry,
            database_uri=parsed_args.database_uri,
            metadata=metadata,
        )
        response = service.handle(parsed_args.operation, payload)
        print(json.dumps(response, default=str))  # noqa: T201
    except Exception:
        log.exception("Fatal error during %s", parsed_args.operation)
        sys.exit(1)
    finally:
        shutdown()


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
