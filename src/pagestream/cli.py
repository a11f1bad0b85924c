"""CLI entrypoint for pagestream."""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from pagestream.api.export import export_records, export_stream
from pagestream.config.loader import (
    DEFAULT_CONFIG_PATH,
    EXAMPLE_CONFIG,
    get_fetch_timeout,
    get_query_defaults,
    get_sqlite_path,
    load_config,
    resolve_owner_id,
)
from pagestream.database.sql_store import SqlDocumentStore
from pagestream.query.engine import PaginatedStream
from pagestream.query.mapping import document_to_record
from pagestream.records.models import Record
from pagestream.store.base import first_snapshot, owner_scoped_path
from pagestream.utils.logging import get_logger

logger = get_logger(__name__)


def _load_settings(args: argparse.Namespace) -> Dict[str, Any]:
    config_path = getattr(args, "config", None)
    config = load_config(config_path)
    return {
        "owner_id": resolve_owner_id(config, getattr(args, "owner", None)),
        "sqlite_path": get_sqlite_path(config),
        "fetch_timeout": get_fetch_timeout(config),
        "query_defaults": get_query_defaults(config),
    }


def _open_store(settings: Dict[str, Any]) -> SqlDocumentStore:
    return SqlDocumentStore.from_path(settings["sqlite_path"])


def _build_stream(args: argparse.Namespace, settings: Dict[str, Any]) -> PaginatedStream:
    return PaginatedStream(
        _open_store(settings),
        settings["owner_id"],
        Record,
        search_fields=args.search_field or [],
        fetch_timeout=settings["fetch_timeout"],
        query_defaults=settings["query_defaults"],
    )


def _query_options(args: argparse.Namespace) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "reverse": args.reverse,
        "prepend": args.prepend,
        "filter_enabled": not args.no_filter,
    }
    if args.page_size is not None:
        options["page_size"] = args.page_size
    if args.search:
        options["search_value"] = args.search
    return options


def _parse_data(raw: str) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"--data must be a JSON object: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("--data must be a JSON object")
    return data


async def _list_records(args: argparse.Namespace, settings: Dict[str, Any]) -> List[Record]:
    stream = _build_stream(args, settings)
    try:
        await stream.init(args.path, args.sort, _query_options(args))
        for _ in range(args.pages - 1):
            if stream.done.value:
                break
            await stream.load_more()
        if stream.error.value is not None:
            raise stream.error.value
        return stream.results
    finally:
        stream.close()


def cmd_list(args: argparse.Namespace) -> None:
    """List records page by page."""
    settings = _load_settings(args)
    records = asyncio.run(_list_records(args, settings))
    print(export_records(records, format="json"))


def cmd_get(args: argparse.Namespace) -> None:
    settings = _load_settings(args)
    store = _open_store(settings)
    path = owner_scoped_path(settings["owner_id"], args.path)

    async def _get() -> Optional[Record]:
        snapshot = await asyncio.wait_for(first_snapshot(store, path, args.doc_id), settings["fetch_timeout"])
        return document_to_record(snapshot, Record) if snapshot.exists else None

    record = asyncio.run(_get())
    if record is None:
        logger.error(f"Document not found: {args.path}/{args.doc_id}")
        return
    print(json.dumps(record.model_dump(mode="json"), indent=2, sort_keys=True))


def cmd_create(args: argparse.Namespace) -> None:
    settings = _load_settings(args)
    store = _open_store(settings)
    path = owner_scoped_path(settings["owner_id"], args.path)
    doc_id = asyncio.run(store.add_document(path, _parse_data(args.data)))
    print(doc_id)


def cmd_update(args: argparse.Namespace) -> None:
    settings = _load_settings(args)
    store = _open_store(settings)
    path = owner_scoped_path(settings["owner_id"], args.path)
    asyncio.run(store.set_document(path, args.doc_id, _parse_data(args.data)))
    print(f"Updated {args.path}/{args.doc_id}")


def cmd_delete(args: argparse.Namespace) -> None:
    settings = _load_settings(args)
    store = _open_store(settings)
    path = owner_scoped_path(settings["owner_id"], args.path)
    asyncio.run(store.delete_document(path, args.doc_id))
    print(f"Deleted {args.path}/{args.doc_id}")


def cmd_export(args: argparse.Namespace) -> None:
    """Load every page (or --max-pages more) and export the results."""
    settings = _load_settings(args)
    columns = [c.strip() for c in args.columns.split(",") if c.strip()] if args.columns else None

    async def _export() -> str:
        stream = _build_stream(args, settings)
        try:
            await stream.init(args.path, args.sort, _query_options(args))
            return await export_stream(
                stream,
                columns=columns,
                format=args.format,
                out=args.out,
                max_pages=args.max_pages,
            )
        finally:
            stream.close()

    result = asyncio.run(_export())
    print(result)


def cmd_init(args: argparse.Namespace) -> None:
    """Write an example config file."""
    config_path = args.config or DEFAULT_CONFIG_PATH
    if config_path.exists() and not args.force:
        print(f"⚠ {config_path} already exists, use --force to overwrite")
        return
    config_path.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    print(f"Created {config_path}")
    print("  Next steps:")
    print("  1. Set owner.id in the config")
    print("  2. Run: pagestream list <collection> --sort <field>")


def _add_query_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Collection path (relative to the owner)")
    parser.add_argument("--sort", required=True, help="Field to order by")
    parser.add_argument("--reverse", action="store_true", help="Sort descending")
    parser.add_argument(
        "--append",
        dest="prepend",
        action="store_false",
        help="Add new pages after loaded results (default: before)",
    )
    parser.add_argument("--page-size", type=int, default=None, help="Records per page (default from config, else 50)")
    parser.add_argument("--search", type=str, default=None, help="Case-insensitive search value")
    parser.add_argument(
        "--search-field",
        action="append",
        default=None,
        help="Field matched against --search (repeatable)",
    )
    parser.add_argument("--no-filter", action="store_true", help="Disable search filtering")


def main() -> None:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="pagestream",
        description="Paginated, searchable views over an owner-scoped document store",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to pagestream.config.yaml")
    parser.add_argument("--owner", type=str, default=None, help="Owner key (overrides owner.id)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # list command
    list_parser = subparsers.add_parser("list", help="List records of a collection")
    _add_query_arguments(list_parser)
    list_parser.add_argument("--pages", type=int, default=1, help="Number of pages to load (default: 1)")
    list_parser.set_defaults(func=cmd_list)

    # get command
    get_parser = subparsers.add_parser("get", help="Show one document")
    get_parser.add_argument("path", help="Collection path")
    get_parser.add_argument("doc_id", help="Document ID")
    get_parser.set_defaults(func=cmd_get)

    # create command
    create_parser = subparsers.add_parser("create", help="Add a document")
    create_parser.add_argument("path", help="Collection path")
    create_parser.add_argument("--data", required=True, help="Document body as a JSON object")
    create_parser.set_defaults(func=cmd_create)

    # update command
    update_parser = subparsers.add_parser("update", help="Replace a document")
    update_parser.add_argument("path", help="Collection path")
    update_parser.add_argument("doc_id", help="Document ID")
    update_parser.add_argument("--data", required=True, help="Document body as a JSON object")
    update_parser.set_defaults(func=cmd_update)

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("path", help="Collection path")
    delete_parser.add_argument("doc_id", help="Document ID")
    delete_parser.set_defaults(func=cmd_delete)

    # export command
    export_parser = subparsers.add_parser("export", help="Export all records of a collection")
    _add_query_arguments(export_parser)
    export_parser.add_argument(
        "--format",
        type=str,
        choices=["json", "csv"],
        default="json",
        help="Output format (default: json)",
    )
    export_parser.add_argument("--columns", type=str, default=None, help="Comma-separated CSV columns")
    export_parser.add_argument("--out", type=Path, default=None, help="Output file (default: stdout)")
    export_parser.add_argument("--max-pages", type=int, default=None, help="Stop after this many extra pages")
    export_parser.set_defaults(func=cmd_export)

    # init command
    init_parser = subparsers.add_parser("init", help="Create an example config file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing config")
    init_parser.set_defaults(func=cmd_init)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    try:
        args.func(args)
    except Exception as e:
        logger.error(f"Error running command '{args.command}': {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
