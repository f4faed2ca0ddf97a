"""
Command line interface for the ebook index.

Usage:
    ebook-index build -d ~/Books                 # Index every ebook under a directory
    ebook-index build -f a.pdf b.epub            # Index specific files
    ebook-index update --max-files 500           # Incremental update from the data file
    ebook-index update --force --max-memory 8GB  # Full rebuild
    ebook-index search "neural networks" --fuzzy
    ebook-index summary --top 20
"""

import argparse
import re
import sys
from pathlib import Path

from .core import (
    load_config_or_default,
    reload_config,
    get_logger,
    ConfigurationError,
    EbookIndexError,
    IndexNotFoundError,
)
from .core.logger import set_level
from .extraction import FileScanner, TextExtractor
from .indexer import BuildOptions, BuildResult, IndexBuilder
from .search import QueryService

logger = get_logger(__name__)

_MEMORY_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(GB?|MB?)?$")


def parse_memory_value(value: str) -> int:
    """
    Parse a memory amount into MB.

    Accepts "2048", "8GB", "8G", "8192MB" (case-insensitive).

    Raises:
        ValueError: If the value is not understood.
    """
    match = _MEMORY_PATTERN.match(str(value).strip().upper())
    if not match:
        raise ValueError(f"Invalid memory value: {value}. Use format like 2048, 8GB, or 8192MB")

    amount = float(match.group(1))
    unit = match.group(2) or "MB"
    if unit.startswith("G"):
        amount *= 1024
    return round(amount)


def format_bytes(size: int) -> str:
    """Human-readable byte count, e.g. 1536 -> "1.5 kB"."""
    if size <= 0:
        return "0 B"

    units = ["B", "kB", "MB", "GB", "TB"]
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(units) - 1:
        value /= 1024
        unit += 1

    return f"{round(value, 2):g} {units[unit]}"


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="ebook-index",
        description="Full-text search index for PDF and EPUB collections"
    )

    parser.add_argument("--config", type=str, help="Path to custom config.json file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Index a directory or a list of files")
    source = build.add_mutually_exclusive_group(required=True)
    source.add_argument("-d", "--directory", type=str, help="Directory to scan recursively")
    source.add_argument("-f", "--files", nargs="+", help="Ebook files to index")
    build.add_argument("-i", "--index-file", type=str, help="Path to the search index file")
    build.add_argument("-p", "--pattern", type=str, help="Glob on file names, e.g. '*python*'")

    update = subparsers.add_parser("update", help="Update the index incrementally from the data file")
    update.add_argument("-i", "--index-file", type=str, help="Path to the search index file")
    update.add_argument("-d", "--data-file", type=str, help="Path to the data (manifest) file")
    update.add_argument("--force", action="store_true", help="Force a full rebuild")
    update.add_argument("--max-file-size", type=float, help="Maximum file size in MB to process")
    update.add_argument("--max-memory", type=str, help="Memory cap, e.g. 2048, 8GB, 8192MB")
    update.add_argument(
        "--no-skip-large", dest="skip_large_files", action="store_false", default=None,
        help="Process files above the size limit instead of skipping them"
    )
    update.add_argument(
        "--no-partial", dest="extract_partial_content", action="store_false", default=None,
        help="Do not keep partial content when a page or memory limit is hit"
    )
    update.add_argument("--max-pages", type=int, help="Maximum PDF pages to extract (0 = unlimited)")
    update.add_argument(
        "--batch", action=argparse.BooleanOptionalAction, default=None,
        help="Use batch processing"
    )
    update.add_argument("--batch-size", type=int, help="Files per batch")
    update.add_argument("--batch-dir", type=str, help="Directory for intermediate batch files")
    update.add_argument("--max-files", type=int, help="Maximum number of files to process")
    update.add_argument(
        "--no-rebuild-on-change", dest="rebuild_on_manifest_change", action="store_false", default=None,
        help="Update incrementally even when the data file changed"
    )

    search = subparsers.add_parser("search", help="Search the index")
    search.add_argument("query", type=str, help="Search query")
    search.add_argument("-i", "--index-file", type=str, help="Path to the search index file")
    search.add_argument("--fuzzy", action="store_true", help="Fall back to partial matches")
    search.add_argument("-l", "--limit", type=int, help="Maximum number of results")

    summary = subparsers.add_parser("summary", help="Show index statistics")
    summary.add_argument("-i", "--index-file", type=str, help="Path to the search index file")
    summary.add_argument("--top", type=int, help="Number of top terms to show")

    return parser.parse_args(argv)


def print_build_result(result: BuildResult, builder: IndexBuilder) -> None:
    """Print the per-run summary."""
    print("=" * 60)
    print("Full rebuild performed" if result.is_full_rebuild else "Incremental update performed")
    print("=" * 60)
    print(f"Files added:       {result.added:,}")
    print(f"Files modified:    {result.modified:,}")
    print(f"Files deleted:     {result.deleted:,}")
    print(f"Files unchanged:   {result.unchanged:,}")
    print(f"Files skipped:     {result.skipped:,}")
    print(f"Files failed:      {result.failed:,}")
    print(f"Total processed:   {result.total_processed:,}")
    print("-" * 60)
    print(f"Total documents:   {builder.index.document_count:,}")
    print(f"Inverted index terms: {result.term_count:,}")
    print(f"Index size:        {format_bytes(builder.index.persisted_size(builder.index_path))}")
    print(f"Index saved to:    {builder.index_path}")

    if result.top_terms:
        print("Top frequent terms:")
        for rank, term in enumerate(result.top_terms, start=1):
            print(f"  {rank}. \"{term.term}\" ({term.frequency} documents)")

    if result.failed_files:
        print(f"\nFailed files ({len(result.failed_files)}):")
        for path in result.failed_files[:20]:
            print(f"  - {path}")
        if len(result.failed_files) > 20:
            print(f"  ... and {len(result.failed_files) - 20} more")


def run_build(args, config) -> int:
    if args.directory:
        scanner = FileScanner(args.directory, config.extraction.supported_extensions, pattern=args.pattern)
        files = scanner.list_all()
    else:
        files = [Path(f) for f in args.files]

    if not files:
        print("No ebook files found.")
        return 0

    builder = IndexBuilder(index_path=args.index_file, config=config)
    result = builder.build_from_files(files)
    print_build_result(result, builder)
    return 0


def run_update(args, config) -> int:
    try:
        max_memory = parse_memory_value(args.max_memory) if args.max_memory else None
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    extractor = TextExtractor(
        max_file_size_mb=args.max_file_size,
        max_memory_mb=max_memory,
        skip_large_files=args.skip_large_files,
        extract_partial_content=args.extract_partial_content,
        max_pages=args.max_pages
    )

    options = BuildOptions(
        data_file=args.data_file,
        force=args.force,
        use_batch_processing=args.batch,
        batch_size=args.batch_size,
        batch_dir=args.batch_dir,
        max_files=args.max_files,
        rebuild_on_manifest_change=args.rebuild_on_manifest_change
    )

    builder = IndexBuilder(index_path=args.index_file, extractor=extractor, config=config)
    result = builder.build_incremental(options)
    print_build_result(result, builder)
    return 0


def run_search(args, config) -> int:
    service = QueryService(index_path=args.index_file, config=config)

    try:
        results, stats = service.search(args.query, limit=args.limit, fuzzy=args.fuzzy)
    except IndexNotFoundError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        print("Build the search index first using: ebook-index build -d <directory>", file=sys.stderr)
        return 1

    logger.debug(
        f"Search completed in {stats.search_time_ms}ms over {stats.total_documents} documents"
    )

    if not results:
        print(f"No results found for query: \"{args.query}\"")
        if not args.fuzzy:
            print("Try --fuzzy for approximate matches.")
        return 0

    label = " (fuzzy)" if stats.fuzzy_used else ""
    print(f"Results for \"{args.query}\"{label}:\n")

    for rank, result in enumerate(results, start=1):
        print(f"{rank}. {result.filename}")
        if result.title:
            print(f"   Title: {result.title}")
        if result.author:
            print(f"   Author: {result.author}")
        print(f"   Type: {result.type.value.upper()}")
        print(f"   Score: {result.score:g}")
        if result.word_count is not None:
            print(f"   Word Count: {result.word_count:,}")
        if result.token_count is not None:
            print(f"   Token Count: {result.token_count:,}")
        if result.excerpt:
            print(f"   Excerpt: {result.excerpt}")
        print(f"   Path: {result.file_path}\n")

    return 0


def run_summary(args, config) -> int:
    service = QueryService(index_path=args.index_file, config=config)
    summary = service.summary(args.top)
    stats = summary.statistics

    print("=" * 60)
    print("Search Index Summary")
    print("=" * 60)
    print(f"Index file:        {summary.index_path}{' (split)' if summary.is_split else ''}")
    print(f"Index size:        {format_bytes(summary.file_size_bytes)}")
    print(f"Total documents:   {stats.total_documents:,}")
    print(f"Total terms:       {stats.total_terms:,}")
    print(f"Total tokens:      {stats.total_tokens:,}")
    print(f"Avg document size: {stats.average_document_size:,} tokens")
    print(f"Avg term frequency: {stats.average_term_frequency} "
          f"({stats.average_term_frequency_without_singletons} without singletons)")
    print(f"Singleton terms:   {stats.singleton_terms_count:,} ({stats.singleton_terms_percentage}%)")
    print(f"Percentiles:       p25={stats.percentiles.p25} p50={stats.percentiles.p50} "
          f"p75={stats.percentiles.p75}")
    without = stats.percentiles_without_singletons
    print(f"  w/o singletons:  p25={without.p25} p50={without.p50} p75={without.p75}")

    if stats.top_terms:
        print("-" * 60)
        print("Top terms:")
        for rank, term in enumerate(stats.top_terms, start=1):
            print(f"  {rank:>3}. {term.term:<25} {term.frequency:>8,} docs ({term.percentage}%)")

    return 0


COMMANDS = {
    "build": run_build,
    "update": run_update,
    "search": run_search,
    "summary": run_summary,
}


def main(argv=None) -> int:
    """Main entry point for the ebook-index CLI."""
    args = parse_args(argv)

    try:
        if args.config:
            config_path = Path(args.config)
            if not config_path.exists():
                print(f"Error: Config file not found: {config_path}", file=sys.stderr)
                return 1
            config = reload_config(config_path)
        else:
            config = load_config_or_default()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    if args.verbose:
        set_level("DEBUG")

    try:
        return COMMANDS[args.command](args, config)
    except EbookIndexError as e:
        logger.error(f"{args.command} failed: {e.message}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error during {args.command}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
