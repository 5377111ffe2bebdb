"""
Command line entry point for the retrieval layer.

Usage:
    python -m retrieval.cli setup
    python -m retrieval.cli index data/products_with_fit_insights.json
    python -m retrieval.cli query "flowy summer dress" --filters '{"gender": "women"}' --top-k 5
    python -m retrieval.cli similar <product_id>
    python -m retrieval.cli delete <product_id>

The backend comes from VECTOR_BACKEND (pinecone, chroma or memory).
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from config.database import get_supabase_client_optional
from config.settings import get_settings
from core.logging import configure_logging_from_settings
from retrieval.errors import NotFoundError, VectorStoreError
from retrieval.facade import RetrievalFacade, build_facade
from retrieval.indexer import ProductIndexer
from retrieval.models import Match
from retrieval.product_store import SupabaseProductStore

INDEXED_OUTPUT_NAME = "indexed_products.json"


def _print_matches(matches: List[Match]) -> None:
    if not matches:
        print("  No matches.")
        return
    for rank, match in enumerate(matches, 1):
        title = match.metadata.get("title") or ""
        brand = match.metadata.get("brand") or ""
        print(f"  {rank:>2}. {match.id}  score={match.score:.4f}  {brand} {title}".rstrip())


async def _setup(facade: RetrievalFacade) -> int:
    indexer = ProductIndexer(facade)
    print(f"Initializing {facade.backend} vector store...")
    if not await indexer.check_connections():
        print("  [FAILED] Could not initialize the vector store.")
        return 1
    print("Running smoke test...")
    result = await indexer.run_smoke_test()
    print(f"  Test product found: {result.found} ({len(result.matches)} matches, {result.latency_ms}ms)")
    return 0 if result.found else 1


async def _index(facade: RetrievalFacade, products_path: Path) -> int:
    if not products_path.exists():
        print(f"Error: {products_path} does not exist.")
        return 1

    products = json.loads(products_path.read_text(encoding="utf-8"))
    print(f"Loaded {len(products)} products from {products_path}")

    client = get_supabase_client_optional()
    if client is None:
        print("  [WARN] Supabase not configured; vector ids will not be recorded.")
    store = SupabaseProductStore(client=client) if client is not None else None

    indexer = ProductIndexer(facade, product_store=store)
    if not await indexer.check_connections():
        print("Vector store connection failed. Please check your configuration.")
        return 1

    report = await indexer.index_products(products)

    output_path = products_path.parent / INDEXED_OUTPUT_NAME
    output_path.write_text(json.dumps(report.indexed, indent=2, default=str), encoding="utf-8")

    print(f"\nIndexed {report.success_count} products ({report.failure_count} failed) in {report.duration_ms}ms")
    for product_id, reason in report.failed.items():
        print(f"  [FAILED] {product_id}: {reason}")
    print(f"Results saved to {output_path}")
    return 0


async def _query(facade: RetrievalFacade, text: str, filters: dict, top_k: Optional[int]) -> int:
    matches = await facade.query_similar_products_by_text(text, filters=filters, top_k=top_k)
    print(f"Top matches for {text!r} ({facade.backend}):")
    _print_matches(matches)
    return 0


async def _similar(facade: RetrievalFacade, product_id: str, filters: dict, top_k: Optional[int]) -> int:
    try:
        matches = await facade.query_similar_products_by_id(product_id, filters=filters, top_k=top_k)
    except NotFoundError:
        print(f"No embedding stored for {product_id}.")
        return 1
    print(f"Products similar to {product_id} ({facade.backend}):")
    _print_matches(matches)
    return 0


async def _delete(facade: RetrievalFacade, product_id: str) -> int:
    await facade.delete_product_embedding(product_id)
    print(f"Deleted embedding for {product_id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Product vector retrieval tools")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("setup", help="Initialize the active backend and run a smoke test")

    index = sub.add_parser("index", help="Index products from a JSON file")
    index.add_argument("products", type=Path, help="JSON array of enriched products")

    for name, help_text, arg, arg_help in (
        ("query", "Query products by free text", "text", "Query text"),
        ("similar", "Find products similar to an indexed product", "product_id", "Product id"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(arg, help=arg_help)
        cmd.add_argument("--filters", type=json.loads, default={}, help="Filters as a JSON object")
        cmd.add_argument("--top-k", type=int, default=None, help="Number of matches (default from settings)")

    delete = sub.add_parser("delete", help="Delete a product embedding")
    delete.add_argument("product_id", help="Product id")

    return parser


async def run(args: argparse.Namespace, facade: Optional[RetrievalFacade] = None) -> int:
    facade = facade or build_facade(get_settings())
    if args.command == "setup":
        return await _setup(facade)
    if args.command == "index":
        return await _index(facade, args.products)
    if args.command == "query":
        return await _query(facade, args.text, args.filters, args.top_k)
    if args.command == "similar":
        return await _similar(facade, args.product_id, args.filters, args.top_k)
    return await _delete(facade, args.product_id)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging_from_settings(get_settings())
    try:
        return asyncio.run(run(args))
    except VectorStoreError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
