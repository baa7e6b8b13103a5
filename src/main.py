# src/main.py — v2
"""CLI entry point: build, resolve-version, cache-key, merge-search, publish.

Usage:
    docspublisher build [--no-publish] [--strict-version]
    docspublisher resolve-version
    docspublisher cache-key
    docspublisher merge-search <local> [--remote URL] -o <out>
    docspublisher publish <site_dir> --version vX.Y.Z
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from docspublisher.config.settings import Settings, load_settings
from docspublisher.core.errors import DocsPublisherError
from docspublisher.logging.logger import setup_logging
from docspublisher.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except (DocsPublisherError, ValueError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except DocsPublisherError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docspublisher",
        description=f"docspublisher v{__version__}: build and publish versioned docs",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-C", "--project-root", type=Path, default=None,
        help="Docs project directory (default: PROJECT_ROOT or .)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- build ---
    p_build = subparsers.add_parser(
        "build", help="Resolve, render, merge search index and publish",
    )
    p_build.add_argument(
        "--no-publish", action="store_true",
        help="Stop after merging the search index",
    )
    p_build.add_argument(
        "--no-cache", action="store_true",
        help="Neither restore nor save build caches",
    )
    p_build.add_argument(
        "--strict-version", action="store_true",
        help="Fail when the upstream release list cannot be resolved",
    )
    p_build.set_defaults(func=_cmd_build)

    # --- resolve-version ---
    p_resolve = subparsers.add_parser(
        "resolve-version", help="Print the resolved docs version",
    )
    p_resolve.add_argument(
        "--strict-version", action="store_true",
        help="Fail when the upstream release list cannot be resolved",
    )
    p_resolve.set_defaults(func=_cmd_resolve_version)

    # --- cache-key ---
    p_key = subparsers.add_parser(
        "cache-key", help="Print the build cache keys",
    )
    p_key.set_defaults(func=_cmd_cache_key)

    # --- merge-search ---
    p_merge = subparsers.add_parser(
        "merge-search", help="Merge a site index with the main site's index",
    )
    p_merge.add_argument("local", type=Path, help="This site's search index")
    p_merge.add_argument(
        "--remote", default=None,
        help="Main-site index URL or path (default: MAIN_SEARCH_INDEX_URL)",
    )
    p_merge.add_argument(
        "-o", "--output", type=Path, required=True,
        help="Merged index output path",
    )
    p_merge.set_defaults(func=_cmd_merge_search)

    # --- publish ---
    p_publish = subparsers.add_parser(
        "publish", help="Publish an already rendered site",
    )
    p_publish.add_argument("site_dir", type=Path, help="Rendered site directory")
    p_publish.add_argument(
        "--version", dest="docs_version", required=True,
        help="Version directory to publish into, e.g. v0.36.2",
    )
    p_publish.add_argument(
        "--no-push", action="store_true",
        help="Commit locally without pushing",
    )
    p_publish.set_defaults(func=_cmd_publish)

    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    """Settings from .env / environment, with CLI flags on top."""
    overrides: dict[str, object] = {}
    if args.project_root is not None:
        overrides["project_root"] = args.project_root
    if getattr(args, "strict_version", False):
        overrides["strict_version"] = True
    if getattr(args, "no_publish", False):
        overrides["publish_enabled"] = False
    if getattr(args, "no_cache", False):
        overrides["cache_enabled"] = False
    if getattr(args, "no_push", False):
        overrides["publish_push"] = False
    return load_settings(**overrides)


async def _cmd_build(args: argparse.Namespace, settings: Settings) -> int:
    """Execute the full pipeline."""
    from docspublisher.pipeline.runner import PipelineRunner
    from docspublisher.pipeline.stages import build_context

    runner = PipelineRunner(build_context(settings))
    result = await runner.run()
    _print_run_summary(result)
    return 0 if result.success else 1


async def _cmd_resolve_version(args: argparse.Namespace, settings: Settings) -> int:
    """Resolve and print the docs version and the metadata gate."""
    from docspublisher.versions.github import GitHubReleaseClient
    from docspublisher.versions.resolver import VersionResolver

    client = GitHubReleaseClient(
        settings.upstream_repo,
        api_url=settings.github_api_url,
        token=settings.github_token,
        timeout_s=settings.http_timeout_s,
    )
    text = settings.resolve_path(settings.site_config_path).read_text(encoding="utf-8")
    resolution = VersionResolver(client, strict=settings.strict_version).resolve(text)
    print(json.dumps({
        "minor_version": resolution.minor_version,
        "version": resolution.version,
        "exact": resolution.is_exact,
        "latest_release": resolution.latest_release,
        "regenerate_metadata": resolution.regenerate_metadata,
    }, indent=2))
    return 0


async def _cmd_cache_key(args: argparse.Namespace, settings: Settings) -> int:
    """Print the freeze and dependency cache keys."""
    from docspublisher.cache.layer import build_cache_specs

    for spec in build_cache_specs(settings):
        print(f"{spec.name}: {spec.key.key}")
        for restore_key in spec.key.restore_keys:
            print(f"{spec.name} (restore): {restore_key}")
    return 0


async def _cmd_merge_search(args: argparse.Namespace, settings: Settings) -> int:
    """Merge two indices into a file."""
    from docspublisher.search.merger import (
        dump_index,
        fetch_main_index,
        load_index,
        merge_indices,
    )

    local = load_index(args.local)
    remote = fetch_main_index(
        args.remote or settings.main_search_index_url, timeout_s=settings.http_timeout_s
    )
    merged = merge_indices(local, remote, settings.search_url_prefix)
    dump_index(merged, args.output)
    logger.info("Wrote %d entries to %s", len(merged), args.output)
    return 0


async def _cmd_publish(args: argparse.Namespace, settings: Settings) -> int:
    """Publish a rendered site directory."""
    from docspublisher.publish.publisher import commit_message
    from docspublisher.pipeline.stages import build_publisher

    site_dir: Path = args.site_dir
    if not site_dir.is_dir():
        logger.error("Site directory not found: %s", site_dir)
        return 1
    publisher = build_publisher(settings)
    result = await publisher.publish(
        site_dir,
        args.docs_version,
        commit_message(settings.github_repository, settings.github_sha),
    )
    print(f"Published {result.version}, root mirrors {result.latest_version}")
    return 0


def _print_run_summary(result) -> None:
    """Print a short summary of a pipeline run."""
    state = result.state
    print(f"\n{'=' * 50}")
    print(f"Run:         {state.run_id}")
    print(f"Version:     {state.version or '?'}"
          f"{'' if state.version_is_exact else ' (best effort)'}")
    print(f"Latest:      {state.latest_release or 'unknown'}")
    print(f"Metadata:    {'regenerated' if state.metadata_scripts_run else 'unchanged'}")
    for name, restored in state.cache_restored.items():
        print(f"Cache {name:<7} {restored.hit_level or 'miss'}")
    print(f"Search:      {state.search_entries} entries")
    if state.published_version:
        print(f"Published:   {state.published_version} (root: {state.root_version})")
    print(f"Status:      {'success' if result.success else 'FAILED'}")
    for error in state.errors:
        print(f"  ! {error}")
    print(f"Duration:    {result.duration_ms}ms")
    print(f"{'=' * 50}")


if __name__ == "__main__":
    sys.exit(main())
