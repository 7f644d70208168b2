"""Command-line entry point: crawl and index configured sites."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from teaser_crawler.config import CrawlerConfig
from teaser_crawler.index import FileIndex
from teaser_crawler.pipeline import run_site

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


def discover_sites(config_dir: Path) -> list[str]:
    return sorted(p.stem for p in config_dir.glob("*.yaml"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="teaser-crawler", description="Crawl sites and index their teasers")
    sub = parser.add_subparsers(dest="cmd", required=True)

    idx = sub.add_parser("index", help="Run the crawler for the given sites sequentially")
    idx.add_argument("sites", nargs="*", help="Site ids (default: every *.yaml in the config dir)")
    idx.add_argument("--config-dir", type=Path, default=Path("config/sites"), help="Directory of <site>.yaml files")
    idx.add_argument("--index-file", type=Path, default=Path("data/index.jsonl"), help="Document store file")
    idx.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def run_index(sites: Sequence[str], config_dir: Path, index_file: Path) -> int:
    if not sites:
        print("No sites configured.")
        return 0

    def indexer_factory(config: CrawlerConfig) -> FileIndex:
        return FileIndex(index_file, config)

    for site_id in sites:
        try:
            asyncio.run(run_site(site_id, config_dir=config_dir, indexer_factory=indexer_factory))
        except Exception as exc:
            print(f"Crawling failed for {site_id!r}: {exc}", file=sys.stderr)
            return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.cmd == "index":
        sites = list(args.sites) or discover_sites(args.config_dir)
        return run_index(sites, args.config_dir, args.index_file)

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
