"""Command line interface for the content restorer."""

import asyncio
import json
import logging
import sys

import click

# Heavy dependencies are imported inside the commands so the CLI module
# stays cheap to import, e.g. for command registration tests.

logger = logging.getLogger(__name__)

DESTINATIONS = ("buttondown", "directory")


def _abort(ctx: click.Context, message: str, error: Exception) -> None:
    logger.error(f"❌ {message}: {error}")
    if ctx.obj.get("debug"):
        raise error
    sys.exit(1)


def _load_settings(ctx: click.Context):
    from .models.settings import Settings

    return Settings(debug=ctx.obj.get("debug", False))


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Content restorer CLI.

    Repairs generation artifacts in article drafts, gates them on quality
    and publishes each article at most once.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    # Set up logging before any other logging calls
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, force=True)
    logger.debug("Debug mode enabled")


@cli.command()
@click.argument("draft_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def analyze(ctx: click.Context, draft_file: str, as_json: bool) -> None:
    """Detect generation artifacts in a draft."""
    try:
        from .core.drafts import load_draft
        from .quality_checks import analyze as analyze_text

        draft = load_draft(draft_file)
        report = analyze_text(draft.body)

        if as_json:
            click.echo(report.model_dump_json(indent=2))
            return

        click.echo(f"\n🔍 {draft.title}")
        click.echo(f"Severity: {report.severity.value}")
        metrics = report.metrics
        click.echo(f"  Metadata markers: {metrics.metadata_markers}")
        click.echo(f"  Markdown markers: {metrics.markdown_markers}")
        click.echo(f"  Merged word candidates: {metrics.merged_word_candidates}")
        click.echo(f"  Orphaned fragments: {metrics.orphaned_fragments}")
        for phrase in metrics.repeated_phrases:
            click.echo(f"  Repeated phrase: '{phrase.phrase}' x{phrase.count}")
        if not report.has_issues:
            click.echo("✅ No issues found")

    except Exception as e:
        _abort(ctx, "Analysis failed", e)


@cli.command()
@click.argument("draft_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the verdict as JSON")
@click.pass_context
def evaluate(ctx: click.Context, draft_file: str, as_json: bool) -> None:
    """Score a draft against the publish gate."""
    try:
        from .core.drafts import load_draft
        from .quality_checks import PublishGate

        settings = _load_settings(ctx)
        draft = load_draft(draft_file)
        verdict = PublishGate(settings.gate_thresholds()).evaluate(draft.body)

        if as_json:
            click.echo(verdict.model_dump_json(indent=2))
            return

        status = "✅ Publishable" if verdict.can_publish else "🚫 Rejected"
        click.echo(f"\n{status}: {draft.title}")
        click.echo(f"Score: {verdict.score}/100 ({verdict.metrics.quality_band})")
        click.echo(f"Length: {verdict.metrics.length} chars")
        click.echo(f"Readability: {verdict.metrics.readability.value}")
        for error in verdict.errors:
            click.echo(f"  ❌ {error}")
        for warning in verdict.warnings:
            click.echo(f"  ⚠️  {warning}")

    except Exception as e:
        _abort(ctx, "Evaluation failed", e)


@cli.command()
@click.argument("draft_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Write result here")
@click.pass_context
def restore(ctx: click.Context, draft_file: str, output: str) -> None:
    """Restore a single draft without publishing it."""

    async def _restore():
        from pathlib import Path

        from .clients.openrouter import OpenRouterClient
        from .core.drafts import load_draft
        from .quality_checks import IssueAnalyzer
        from .restoration import (
            AttemptExecutor,
            RestorationOrchestrator,
            load_attempt_policy,
        )

        settings = _load_settings(ctx)
        if not settings.openrouter_api_key:
            raise ValueError("OPENROUTER_API_KEY is required for restoration")

        draft = load_draft(draft_file)
        report = IssueAnalyzer().analyze(draft.body)
        logger.info(f"🔍 Severity before restoration: {report.severity.value}")

        executor = AttemptExecutor(
            OpenRouterClient(settings.openrouter_api_key, settings),
            settings.chunk_concurrency,
        )
        orchestrator = RestorationOrchestrator(
            executor, load_attempt_policy(settings.attempt_policy_file)
        )
        result = await orchestrator.restore(draft.body)

        if output:
            Path(output).parent.mkdir(parents=True, exist_ok=True)
            Path(output).write_text(result.final_text, encoding="utf-8")
            logger.info(f"💾 Restored text written to {output}")
        else:
            click.echo(result.final_text)

        if result.used_fallback:
            logger.warning("⚠️  All attempts failed, original text kept")

    try:
        asyncio.run(_restore())
    except Exception as e:
        _abort(ctx, "Restoration failed", e)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--dry-run", is_flag=True, help="Restore and gate without publishing")
@click.option("--workers", type=click.IntRange(min=1), help="Drafts processed concurrently")
@click.option(
    "--destination",
    type=click.Choice(DESTINATIONS),
    default="buttondown",
    show_default=True,
    help="Where publishable drafts go",
)
@click.option(
    "--out-dir",
    default="out/published",
    show_default=True,
    help="Output directory for the directory destination",
)
@click.pass_context
def publish(
    ctx: click.Context,
    paths: tuple,
    dry_run: bool,
    workers: int,
    destination: str,
    out_dir: str,
) -> None:
    """Restore, gate and publish drafts found under PATHS."""

    async def _publish():
        from .clients.openrouter import OpenRouterClient
        from .clients.publishers import ButtondownPublisher, DirectoryPublisher
        from .core.drafts import load_drafts
        from .core.pipeline import PipelineContext, RestorationPipeline

        settings = _load_settings(ctx)

        if destination == "buttondown":
            if not dry_run and not settings.buttondown_api_key:
                raise ValueError("BUTTONDOWN_API_KEY is required to publish to Buttondown")
            publisher = ButtondownPublisher(
                settings.buttondown_api_key or "", settings.buttondown_timeout
            )
        else:
            publisher = DirectoryPublisher(out_dir)

        if not settings.openrouter_api_key:
            logger.warning(
                "⚠️  OPENROUTER_API_KEY not configured - drafts needing repair keep their original text"
            )
        rewriter = OpenRouterClient(settings.openrouter_api_key or "", settings)

        drafts = load_drafts(paths)
        if not drafts:
            click.echo("No drafts found")
            return

        pipeline = RestorationPipeline(
            PipelineContext.from_settings(settings, rewriter, publisher)
        )

        if dry_run:
            logger.info("🔍 DRY RUN MODE - nothing will be published")
            for draft in drafts:
                restoration, verdict = await pipeline.prepare(draft)
                status = "publishable" if verdict.can_publish else "rejected"
                click.echo(f"{draft.title}: {status} (score {verdict.score})")
                for error in verdict.errors:
                    click.echo(f"  ❌ {error}")
            return

        report = await pipeline.run_batch(drafts, workers=workers)

        click.echo(f"\n📊 Processed {report.total} draft(s)")
        for status, count in report.counts.items():
            click.echo(f"  {status}: {count}")
        for attempt, count in report.restored_by_attempt.items():
            click.echo(f"  restored on attempt {attempt}: {count}")
        click.echo(f"  fallback (original kept): {report.fallback_count}")
        click.echo(f"  no repair needed: {report.skipped_count}")

        for outcome in report.outcomes:
            click.echo(
                f"  - {outcome.title}: {outcome.status.value} "
                f"[{outcome.restoration_label}]"
            )

    try:
        asyncio.run(_publish())
    except Exception as e:
        _abort(ctx, "Publishing failed", e)


@cli.command()
@click.option("--export", "export_path", type=click.Path(dir_okay=False), help="Write ledger log")
@click.option(
    "--import",
    "import_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Import a legacy published-titles history file",
)
@click.pass_context
def history(ctx: click.Context, export_path: str, import_path: str) -> None:
    """Show, export or import the publication ledger."""
    try:
        from .core.ledger import PublicationLedger

        settings = _load_settings(ctx)
        ledger = PublicationLedger(settings.ledger_path)

        if import_path:
            imported = ledger.import_history(import_path)
            click.echo(f"✅ Imported {imported} title(s)")
        if export_path:
            written = ledger.export_log(export_path)
            click.echo(f"✅ Exported {written} entr{'y' if written == 1 else 'ies'}")
        if import_path or export_path:
            return

        entries = ledger.entries()
        click.echo(f"\n📚 {len(entries)} published article(s)")
        for entry in entries[-20:]:
            click.echo(
                f"  {entry.published_at:%Y-%m-%d %H:%M} {entry.title or entry.identity[:12]} "
                f"-> {entry.destination_ref}"
            )

    except Exception as e:
        _abort(ctx, "Ledger operation failed", e)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the table as JSON")
@click.pass_context
def policy(ctx: click.Context, as_json: bool) -> None:
    """Show the restoration attempt table."""
    try:
        from .restoration import load_attempt_policy

        settings = _load_settings(ctx)
        attempts = load_attempt_policy(settings.attempt_policy_file)

        if as_json:
            click.echo(json.dumps(attempts.describe(), indent=2))
            return

        click.echo("\n🔁 Restoration attempts\n")
        for index, attempt in enumerate(attempts, 1):
            click.echo(
                f"  {index}. {attempt.model_tier:<9} chunks≤{attempt.chunk_max_chars:<5} "
                f"ratio≥{attempt.min_accept_ratio:.2f} {attempt.prompt_strictness.value:<6} "
                f"{attempt.timeout_ms}ms  {attempt.description}"
            )

    except Exception as e:
        _abort(ctx, "Cannot load attempt policy", e)


@cli.command()
def config() -> None:
    """Display current configuration (without sensitive values)."""
    try:
        from .models.settings import Settings

        settings = Settings()

        click.echo("\n📋 Content Restorer Configuration\n")
        click.echo(f"Debug Mode: {settings.debug}")
        click.echo(f"Log Level: {settings.log_level}")

        click.echo("\n🔑 API Keys:")
        keys_status = {
            "OpenRouter": (
                "✅ Configured" if settings.openrouter_api_key else "❌ Missing"
            ),
            "Buttondown": (
                "✅ Configured" if settings.buttondown_api_key else "❌ Missing"
            ),
        }
        for service, status in keys_status.items():
            click.echo(f"  {service}: {status}")

        click.echo("\n🔧 Restoration:")
        click.echo(f"  Repair threshold: {settings.repair_threshold.value}")
        click.echo(f"  Chunk concurrency: {settings.chunk_concurrency}")
        click.echo(f"  Batch workers: {settings.batch_workers}")
        click.echo(f"  Policy file: {settings.attempt_policy_file or '(built-in)'}")

        click.echo("\n🚦 Publish Gate:")
        click.echo(f"  Length: {settings.gate_min_length}-{settings.gate_max_length} chars")
        click.echo(f"  Minimum score: {settings.gate_min_quality_score}")

        click.echo("\n📚 Storage:")
        click.echo(f"  Ledger: {settings.ledger_path}")
        click.echo(f"  Review queue: {settings.review_dir or '(disabled)'}")

    except (KeyError, AttributeError, ValueError, TypeError) as e:
        click.echo(f"❌ Configuration data error: {e}")
        raise
    except Exception as e:
        click.echo(f"❌ Unexpected error loading configuration: {e}")
        raise


if __name__ == "__main__":
    cli()
