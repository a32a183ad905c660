"""Command-line interface entry point for ozon-scout."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Iterable

from dotenv import load_dotenv
from pydantic import BaseModel

from ozon_scout.controller import SessionController
from ozon_scout.errors import (
    BlockedError,
    BrowserLaunchError,
    NavigationError,
    NotFoundError,
    ScraperError,
)
from ozon_scout.logging_config import configure_from_env, get_logger, set_level
from ozon_scout.retailers.ozon import SORT_MAP
from ozon_scout.settings import SessionPolicy, load_settings

LOGGER = get_logger(__name__)

EXIT_OK = 0
EXIT_BLOCKED = 2
EXIT_NAVIGATION = 3
EXIT_NOT_FOUND = 4
EXIT_BROWSER = 5
EXIT_FAILED = 1


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ozon-scout",
        description="Fetch Ozon search results, products and categories through a headless browser.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ozon-scout search "наушники" --sort price --limit 10
  ozon-scout product 1234567
  ozon-scout products 1234567 7654321 --policy long_lived
  ozon-scout categories --output categories.json
        """,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in SessionPolicy],
        default=None,
        help="Browser session lifecycle (default from settings)",
    )
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--output", type=Path, default=None, help="Write JSON here instead of stdout")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search products")
    search.add_argument("query")
    search.add_argument("--sort", choices=sorted(SORT_MAP), default="popular")
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--price-min", type=int, default=None)
    search.add_argument("--price-max", type=int, default=None)
    search.add_argument("--limit", type=int, default=20)

    product = commands.add_parser("product", help="Fetch one product page")
    product.add_argument("product", help="Product id or URL")

    products = commands.add_parser("products", help="Fetch several product pages")
    products.add_argument("ids", nargs="+", help="Product ids or URLs")

    commands.add_parser("categories", help="List homepage categories")

    filters = commands.add_parser("filters", help="Describe sort options and filters for a query")
    filters.add_argument("query")

    location = commands.add_parser("location", help="Set the delivery city")
    location.add_argument("city")

    return parser.parse_args(list(argv) if argv is not None else None)


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_jsonable(entry) for entry in value]
    return value


async def _dispatch(client: SessionController, args: argparse.Namespace) -> Any:
    if args.command == "search":
        return await client.search(
            args.query,
            sort=args.sort,
            page=args.page,
            price_min=args.price_min,
            price_max=args.price_max,
            limit=args.limit,
        )
    if args.command == "product":
        return await client.get_product_details(args.product)
    if args.command == "products":
        return await client.get_products_list(args.ids)
    if args.command == "categories":
        return await client.get_categories()
    if args.command == "filters":
        return await client.get_filters(args.query)
    if args.command == "location":
        return await client.set_location(args.city)
    raise ValueError(f"Unknown command: {args.command}")


def _emit(payload: Any, output: Path | None) -> None:
    text = json.dumps(_to_jsonable(payload), ensure_ascii=False, indent=2)
    if output is None:
        sys.stdout.write(text + "\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    LOGGER.info("Wrote %s", output)


async def _async_main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    configure_from_env()
    if args.verbose:
        set_level("DEBUG")

    settings = load_settings(args.config).with_overrides(
        policy=args.policy,
        headless=False if args.headful else None,
    )

    async with SessionController(settings) as client:
        try:
            payload = await _dispatch(client, args)
        except BlockedError as exc:
            LOGGER.error("Blocked: %s", exc)
            return EXIT_BLOCKED
        except NotFoundError as exc:
            LOGGER.error("Not found: %s", exc)
            return EXIT_NOT_FOUND
        except NavigationError as exc:
            LOGGER.error("Navigation failed: %s", exc)
            return EXIT_NAVIGATION
        except BrowserLaunchError as exc:
            LOGGER.error("%s", exc)
            return EXIT_BROWSER
        except ScraperError as exc:
            LOGGER.error("Failed: %s", exc)
            return EXIT_FAILED

    _emit(payload, args.output)
    return EXIT_OK


def main() -> None:
    sys.exit(asyncio.run(_async_main()))


if __name__ == "__main__":
    main()
