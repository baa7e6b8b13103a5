# src/pipeline/stages.py — v2
"""Stage functions of the publishing pipeline.

Each stage takes the shared PipelineState and the run's collaborators,
writes its results into the state and returns a StageResult. Expected
failures come back as results; the runner decides whether to continue.
"""

from __future__ import annotations

import logging
import tarfile
from dataclasses import dataclass
from pathlib import Path

from docspublisher.cache.layer import CacheLayer, CacheReport, build_cache_layer
from docspublisher.config.settings import Settings
from docspublisher.core.errors import DocsPublisherError
from docspublisher.metadata.generator import MetadataGenerator
from docspublisher.pipeline.state import PipelineState
from docspublisher.publish.git import GitRepository, remote_url
from docspublisher.publish.publisher import MultiVersionPublisher, commit_message
from docspublisher.publish.retry import RetryConfig
from docspublisher.render.renderer import SiteRenderer
from docspublisher.search.merger import SearchIndexMerger
from docspublisher.versions.github import GitHubReleaseClient
from docspublisher.versions.resolver import VersionResolver

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Outcome of a stage. ``fatal`` failures end the run."""

    ok: bool = True
    fatal: bool = False
    skipped: bool = False
    error: str | None = None

    @classmethod
    def failure(cls, error: Exception | str, fatal: bool = True) -> StageResult:
        return cls(ok=False, fatal=fatal, error=str(error))

    @classmethod
    def skip(cls, reason: str | None = None) -> StageResult:
        return cls(ok=True, skipped=True, error=reason)


@dataclass
class PipelineContext:
    """Collaborators of a run, built once from settings."""

    settings: Settings
    resolver: VersionResolver
    metadata: MetadataGenerator
    renderer: SiteRenderer
    merger: SearchIndexMerger
    cache: CacheLayer | None = None
    publisher: MultiVersionPublisher | None = None
    cache_report: CacheReport | None = None


def build_context(settings: Settings) -> PipelineContext:
    """Wire every collaborator from settings."""
    client = GitHubReleaseClient(
        settings.upstream_repo,
        api_url=settings.github_api_url,
        token=settings.github_token,
        timeout_s=settings.http_timeout_s,
    )
    cache = None
    if settings.cache_enabled:
        cache = build_cache_layer(settings)
    publisher = None
    if settings.publish_enabled:
        publisher = build_publisher(settings)
    return PipelineContext(
        settings=settings,
        resolver=VersionResolver(client, strict=settings.strict_version),
        metadata=MetadataGenerator(settings.metadata_scripts_list),
        renderer=SiteRenderer(settings.render_command),
        merger=SearchIndexMerger(
            settings.main_search_index_url,
            prefix=settings.search_url_prefix,
            timeout_s=settings.http_timeout_s,
        ),
        cache=cache,
        publisher=publisher,
    )


def build_publisher(settings: Settings) -> MultiVersionPublisher:
    """Publisher for the configured branch and checkout."""
    checkout = settings.resolve_path(settings.publish_checkout_dir)
    repo_url = settings.publish_repo_url
    if not repo_url and not (checkout / ".git").exists():
        # Default to the publishing branch of the repository being built.
        try:
            repo_url = remote_url(settings.project_root)
        except DocsPublisherError as e:
            logger.warning("Could not determine publish repository URL: %s", e)
    return MultiVersionPublisher(
        GitRepository(checkout, settings.publish_branch),
        repo_url=repo_url,
        versions_dir=settings.publish_versions_dir,
        preserve=settings.publish_preserve_list,
        retry=RetryConfig(
            max_retries=settings.publish_max_retries,
            base_delay_s=settings.publish_retry_base_delay_s,
        ),
        push=settings.publish_push,
        identity=(settings.git_user_name, settings.git_user_email),
    )


async def resolve_version(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """RESOLVE_VERSION: upstream failures degrade to a best-effort version."""
    config_path = ctx.settings.resolve_path(ctx.settings.site_config_path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        return StageResult.failure(f"Cannot read site configuration {config_path}: {e}")
    try:
        resolution = ctx.resolver.resolve(text)
    except DocsPublisherError as e:
        return StageResult.failure(e)

    state.minor_version = resolution.minor_version
    state.version = resolution.version
    state.version_is_exact = resolution.is_exact
    state.latest_release = resolution.latest_release
    state.regenerate_metadata = resolution.regenerate_metadata
    if resolution.warnings:
        return StageResult(ok=True, error="; ".join(resolution.warnings))
    return StageResult()


async def generate_metadata(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """GENERATE_METADATA: only for the upstream's latest release."""
    if not state.regenerate_metadata:
        return StageResult.skip(
            f"{state.version} is not the latest release ({state.latest_release or 'unknown'})"
        )
    try:
        state.metadata_scripts_run = ctx.metadata.generate(ctx.settings.project_root)
    except DocsPublisherError as e:
        return StageResult.failure(e)
    return StageResult()


async def restore_cache(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """RESTORE_CACHE: a miss or an unreadable cache never fails the run."""
    if ctx.cache is None:
        return StageResult.skip("cache disabled")
    ctx.cache_report = CacheReport()
    try:
        await ctx.cache.restore(ctx.cache_report)
    except (OSError, tarfile.TarError) as e:
        return StageResult.failure(f"Cache restore failed: {e}", fatal=False)
    finally:
        state.cache_restored = dict(ctx.cache_report.restored)
    return StageResult()


async def render(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """RENDER: fatal on failure."""
    site_dir = ctx.settings.resolve_path(ctx.settings.site_dir)
    try:
        output = ctx.renderer.render(ctx.settings.project_root, site_dir)
    except DocsPublisherError as e:
        return StageResult.failure(e)
    state.site_dir = output.site_dir
    state.render_duration_ms = output.duration_ms
    return StageResult()


async def save_cache(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """SAVE_CACHE: best effort, runs whether or not rendering succeeded."""
    if ctx.cache is None:
        return StageResult.skip("cache disabled")
    report = ctx.cache_report or CacheReport()
    try:
        await ctx.cache.save(report)
    except (OSError, tarfile.TarError) as e:
        return StageResult.failure(f"Cache save failed: {e}", fatal=False)
    finally:
        state.cache_saved = [name for name, entry in report.saved.items() if entry is not None]
    return StageResult()


async def merge_search_index(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """MERGE_SEARCH_INDEX: fatal, a degraded index is never published."""
    if state.site_dir is None:
        return StageResult.failure("No rendered site to merge")
    try:
        state.search_entries = ctx.merger.merge_site(state.site_dir)
    except DocsPublisherError as e:
        return StageResult.failure(e)
    return StageResult()


async def publish(state: PipelineState, ctx: PipelineContext) -> StageResult:
    """PUBLISH: retried on rejected pushes, fatal once retries run out."""
    if ctx.publisher is None:
        return StageResult.skip("publishing disabled")
    if state.site_dir is None:
        return StageResult.failure("No rendered site to publish")
    message = commit_message(ctx.settings.github_repository, ctx.settings.github_sha)
    try:
        result = await ctx.publisher.publish(Path(state.site_dir), state.version, message)
    except DocsPublisherError as e:
        return StageResult.failure(e)
    state.published_version = result.version
    state.root_version = result.latest_version
    state.publish_commit = result.commit
    state.publish_attempts = result.attempts
    return StageResult()
