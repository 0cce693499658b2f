"""PlotGuard command line tools."""

from __future__ import annotations

import sys
from pathlib import Path

import anyio
import click
import pandas as pd
from loguru import logger

from plotguard.config import Settings, load_extraction_config, load_settings
from plotguard.core.entities import new_plot_id
from plotguard.core.plot_extractor import PlotExtractor
from plotguard.core.plot_validation import PlotValidationService, ValidationRequest
from plotguard.core.sync_engine import SyncEngine, SyncResult
from plotguard.errors import ConfigError
from plotguard.logging_setup import configure_logging
from plotguard.remote.kobo_client import KoboClient
from plotguard.storage import Stores, open_stores
from plotguard.utils.boundary import RegionBoundary
from plotguard.utils.plot_io import save_plots
from plotguard.utils.shape_validator import PolygonShapeValidator


def _stores(ctx: click.Context) -> Stores:
    settings: Settings = ctx.obj["settings"]
    return open_stores(settings.database_url)


@click.group()
@click.option("--database-url", default=None, help="SQLAlchemy URL, overrides settings")
@click.option("--log-level", default="INFO", show_default=True, help="Log level")
@click.pass_context
def cli(ctx: click.Context, database_url: str | None, log_level: str):
    """PlotGuard plot reconciliation tools."""
    configure_logging(log_level.upper())
    overrides = {"database_url": database_url} if database_url else {}
    try:
        settings = load_settings(**overrides)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("form_id")
@click.option("--full", is_flag=True, help="Refetch every submission")
@click.pass_context
def sync(ctx: click.Context, form_id: str, full: bool):
    """
    Sync submissions of FORM_ID, match drafts and extract plots.

    Example:
        plotguard sync aBcD1234 --full
    """
    settings: Settings = ctx.obj["settings"]
    stores = _stores(ctx)
    extractor = PlotExtractor(load_extraction_config(settings.extraction_config_path))

    async def _run() -> SyncResult:
        async with KoboClient(
            settings.kobo_server_url,
            username=settings.kobo_username,
            password=settings.kobo_password,
            token=settings.kobo_token,
            timeout=settings.request_timeout,
        ) as client:
            engine = SyncEngine(
                client,
                stores.submissions,
                stores.plots,
                stores.sync_state,
                extractor=extractor,
                page_size=settings.page_size,
            )
            if full:
                return await engine.fetch_all(form_id)
            return await engine.sync(form_id)

    result = anyio.run(_run)
    if not result.ok:
        click.echo(f"Sync failed ({result.mode}): {result.error}", err=True)
        ctx.exit(1)
    click.echo(
        f"Sync ok ({result.mode}): fetched {result.fetched}, "
        f"matched {result.matched_drafts} drafts, extracted {result.extracted_plots} plots"
    )
    if result.watermark is not None:
        click.echo(f"Watermark: {result.watermark.isoformat()}")


@cli.command()
@click.option("--shape", required=True, help="WKT polygon or ODK 'lat lon alt acc;...' text")
@click.option("--name", "plot_name", default="", help="Plot display name")
@click.option("--region", required=True, help="Region (woreda)")
@click.option("--sub-region", default="", help="Sub-region (kebele)")
@click.option("--instance-name", default="", help="Form instance name; generated when empty")
@click.option("--form-id", default="", help="Form the draft belongs to")
@click.pass_context
def check(
    ctx: click.Context,
    shape: str,
    plot_name: str,
    region: str,
    sub_region: str,
    instance_name: str,
    form_id: str,
):
    """Validate a shape and store it as a draft plot when it does not overlap."""
    settings: Settings = ctx.obj["settings"]
    stores = _stores(ctx)
    boundary = None
    if settings.boundary_path:
        try:
            boundary = RegionBoundary.from_file(settings.boundary_path)
        except (OSError, ValueError) as e:
            click.echo(f"Cannot load boundary {settings.boundary_path}: {e}", err=True)
            ctx.exit(2)
    service = PlotValidationService(
        stores.plots,
        shape_validator=PolygonShapeValidator(min_area_m2=settings.min_plot_area_m2),
        boundary=boundary,
    )
    request = ValidationRequest(
        shape=shape,
        plot_name=plot_name,
        region=region,
        sub_region=sub_region,
        instance_name=instance_name or f"uuid:{new_plot_id()}",
        form_id=form_id,
    )
    outcome = anyio.run(service.validate_and_create_draft, request)
    if not outcome.ok:
        click.echo(outcome.message, err=True)
        for plot_id in outcome.overlapping_ids:
            click.echo(f"  overlaps: {plot_id}", err=True)
        ctx.exit(1)
    click.echo(f"Draft plot stored: {outcome.plot_id} ({request.instance_name})")


@cli.command()
@click.pass_context
def drafts(ctx: click.Context):
    """List draft plots awaiting a submission."""
    stores = _stores(ctx)
    pending = stores.plots.get_all_drafts()
    if not pending:
        click.echo("No draft plots")
        return
    table = pd.DataFrame(
        {
            "plot_id": [plot.id for plot in pending],
            "instance": [plot.instance_name for plot in pending],
            "name": [plot.display_name for plot in pending],
            "region": [plot.region for plot in pending],
            "sub_region": [plot.sub_region for plot in pending],
        }
    )
    click.echo(table.to_string(index=False))
    click.echo(f"{len(pending)} drafts")


@cli.command()
@click.argument("out_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--region", default=None, help="Only export plots of this region")
@click.pass_context
def export(ctx: click.Context, out_path: Path, region: str | None):
    """Export plots to OUT_PATH (.shp, .geojson or .gpkg)."""
    stores = _stores(ctx)
    plots = stores.plots.get_all(region=region)
    try:
        written = save_plots(plots, out_path)
    except ValueError as e:
        click.echo(str(e), err=True)
        ctx.exit(2)
    logger.info(f"Exported {len(plots)} plots to {written}")
    click.echo(f"Exported {len(plots)} plots to {written}")


@cli.command()
@click.argument("form_id")
@click.option("--search", "query", default="", help="Match submitter, id or time")
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=1))
@click.option("--offset", default=0, show_default=True, type=click.IntRange(min=0))
@click.pass_context
def submissions(ctx: click.Context, form_id: str, query: str, limit: int, offset: int):
    """Browse stored submissions of FORM_ID, newest first."""
    stores = _stores(ctx)
    total = stores.submissions.count_by_form(form_id)
    page = stores.submissions.search(form_id, query=query, limit=limit, offset=offset)
    if page:
        table = pd.DataFrame(
            {
                "submitted_at": [s.submitted_at.isoformat() for s in page],
                "id": [s.id for s in page],
                "submitted_by": [s.submitted_by or "-" for s in page],
                "instance": [s.instance_name or "-" for s in page],
            }
        )
        click.echo(table.to_string(index=False))
    click.echo(f"Showing {len(page)} of {total} submissions")


def main() -> int:
    """Run the CLI and return its exit code."""
    try:
        exit_code = cli.main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return exit_code if isinstance(exit_code, int) else 0


if __name__ == "__main__":
    sys.exit(main())
