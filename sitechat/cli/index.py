# =============================================================================
# sitechat/cli/index.py - Indexing and retrieval CLI
# =============================================================================
#
# Operator tool for the site's vector store, for runs that should not go
# through the admin HTTP endpoints (first-time indexing of a large site,
# cron jobs, debugging retrieval).
#
# Supported subcommands:
#
#   index-all    - Index every published item in one pass
#   index-batch  - Drive start + next-batch until the queue is empty
#   index-item   - Re-index one item by CMS id
#   delete-item  - Remove one item's chunks
#   purge        - Delete every row stored for this site
#   search       - Run the hybrid retriever and print ranked passages
#   check        - Report provider configuration and store connectivity
#
# Usage examples:
#   python -m sitechat.cli index-all --batch-size 20
#   python -m sitechat.cli index-item 2401
#   python -m sitechat.cli search "price of remediation in PDF services"
#   python -m sitechat.cli purge --yes
# =============================================================================

"""Command-line indexing and retrieval tools for sitechat.

Usage::

    python -m sitechat.cli index-all
    python -m sitechat.cli search "what training do you offer" --limit 5
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from sitechat.config.loader import load_settings
from sitechat.config.settings import Settings

Handler = Callable[[argparse.Namespace, dict[str, Any]], Awaitable[int]]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_index_all(args: argparse.Namespace, components: dict[str, Any]) -> int:
    print("Indexing all published content...")
    summary = await components["indexing_service"].index_all(batch_size=args.batch_size)
    print(f"\n{summary.message}")
    for detail in summary.error_details:
        print(f"  - {detail}")
    return 0 if summary.success else 1


async def _handle_index_batch(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["indexing_service"]
    progress = await service.start_batch()
    print(progress.message)
    while not progress.is_complete:
        progress = await service.process_next_batch()
        stats = progress.stats
        print(
            f"  {stats.processed}/{stats.total} processed, "
            f"{stats.indexed} indexed, {stats.errors} errors, {stats.chunks} chunks"
        )
    print(f"\n{progress.message}")
    return 0


async def _handle_index_item(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["indexing_service"].index_item(args.item_id)
    if result.success:
        print(f"Indexed item {result.source_id}: {result.chunks} chunks")
        return 0
    print(f"Item {result.source_id} not indexed: {result.reason}", file=sys.stderr)
    return 1


async def _handle_delete_item(args: argparse.Namespace, components: dict[str, Any]) -> int:
    deleted = await components["indexing_service"].delete_item(args.item_id)
    print(f"{'Deleted' if deleted else 'Failed to delete'} chunks for item {args.item_id}")
    return 0 if deleted else 1


async def _handle_purge(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete every stored row of this site.  Asks first unless --yes."""
    site_url = components["settings"].site_url
    if not args.yes:
        confirm = input(f"  Delete every indexed chunk for {site_url}? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0
    deleted = await components["vector_store"].delete_all(site_url)
    print(f"{'Purged' if deleted else 'Failed to purge'} index for {site_url}")
    return 0 if deleted else 1


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    results = await components["retriever"].search(args.query, limit=args.limit)
    print(f"Results for: {args.query}")
    print("=" * 40)
    for rank, result in enumerate(results, start=1):
        print(f"{rank}. [{result.similarity:.2f}] {result.title}")
        if result.url:
            print(f"   {result.url}")
        snippet = " ".join(result.content.split())[:160]
        print(f"   {snippet}")
    return 0


async def _handle_check(args: argparse.Namespace, components: dict[str, Any]) -> int:
    app_settings: Settings = components["settings"]
    connected = await components["vector_store"].test_connection()
    print("Configuration")
    print("=" * 40)
    print(f"  Site:             {app_settings.site_url}")
    print(f"  OpenAI:           {'configured' if app_settings.is_openai_configured() else 'missing key'}")
    print(f"  Vector store:     {'reachable' if connected else 'unreachable'}")
    print(f"  Content source:   {components['content_source'].get_provider_name()}")
    print(f"  Indexing state:   {components['state_store'].get_provider_name()}")
    return 0 if connected and app_settings.is_openai_configured() else 1


_HANDLERS: dict[str, Handler] = {
    "index-all": _handle_index_all,
    "index-batch": _handle_index_batch,
    "index-item": _handle_index_item,
    "delete-item": _handle_delete_item,
    "purge": _handle_purge,
    "search": _handle_search,
    "check": _handle_check,
}


async def _run(handler: Handler, args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred: building the object graph imports httpx, openai and aiosqlite.
    from sitechat.main import build_components, initialize_components

    components = build_components(app_settings)
    try:
        await initialize_components(components)
        return await handler(args, components)
    finally:
        await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the indexing CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m sitechat.cli",
        description="Index CMS content and query the sitechat vector store.",
    )
    parser.add_argument(
        "--config", default="config/config.yaml", help="Path to the YAML config file"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    all_parser = subparsers.add_parser("index-all", help="Index every published item")
    all_parser.add_argument(
        "--batch-size", type=int, default=None, dest="batch_size",
        help="Cool down after every N items",
    )

    subparsers.add_parser("index-batch", help="Index in resumable batches")

    item_parser = subparsers.add_parser("index-item", help="Re-index one item")
    item_parser.add_argument("item_id", help="CMS item id")

    delete_parser = subparsers.add_parser("delete-item", help="Delete one item's chunks")
    delete_parser.add_argument("item_id", help="CMS item id")

    purge_parser = subparsers.add_parser("purge", help="Delete every row for this site")
    purge_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    search_parser = subparsers.add_parser("search", help="Run the hybrid retriever")
    search_parser.add_argument("query", help="Question to search for")
    search_parser.add_argument("--limit", type=int, default=5, help="Maximum results")

    subparsers.add_parser("check", help="Check configuration and connectivity")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = load_settings(args.config)

    from sitechat.utils.logging import bind_request_context, configure_logging

    configure_logging(log_level=app_settings.log_level, app_env=app_settings.app_env)
    bind_request_context(command=args.command)

    exit_code = asyncio.run(_run(_HANDLERS[args.command], args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
