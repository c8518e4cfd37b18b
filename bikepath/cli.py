"""BikePath CLI — command-line interface for path scoring and route search.

Usage::

    bikepath score 80 70 0 0.2
    bikepath routes "Via Roma" "Corso Como" --db bikepath.db
    bikepath aggregate STREET_ID --db bikepath.db
    bikepath rescore PATH_ID --db bikepath.db
    bikepath serve
    bikepath --version
"""

from __future__ import annotations

import logging
import sys

import click
from dotenv import load_dotenv

from bikepath.core.exceptions import BikePathError

DB_OPTION = click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False),
    envvar="BIKEPATH_DB_PATH",
    default="bikepath.db",
    show_default=True,
    help="SQLite database file.",
)


@click.group(invoke_without_command=True)
@click.version_option(package_name="bikepath")
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """BikePath — crowdsourced bike path quality scoring."""
    load_dotenv()
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("rating", type=float)
@click.argument("condition", type=float)
@click.argument("obstacles", type=int)
@click.argument("deviation", type=float, default=0.0)
def score(rating: float, condition: float, obstacles: int, deviation: float) -> None:
    """Compute a path score from raw P, S, O and L."""
    from bikepath.aggregation.scoring import calc_score

    click.echo(f"{calc_score(rating, condition, obstacles, deviation):.2f}")


@cli.command()
@click.argument("start")
@click.argument("end")
@DB_OPTION
@click.option("--start-lat", type=float)
@click.option("--start-lon", type=float)
@click.option("--end-lat", type=float)
@click.option("--end-lon", type=float)
@click.option("--threshold", type=float, help="Nearby threshold in km.")
def routes(
    start: str,
    end: str,
    db_path: str,
    start_lat: float | None,
    start_lon: float | None,
    end_lat: float | None,
    end_lon: float | None,
    threshold: float | None,
) -> None:
    """Find ranked paths between two streets."""
    from bikepath.api import find_routes

    try:
        result = find_routes(
            db_path,
            start,
            end,
            start_lat=start_lat,
            start_lon=start_lon,
            end_lat=end_lat,
            end_lon=end_lon,
            nearby_threshold_km=threshold,
        )
    except BikePathError as exc:
        click.secho(f"❌ Error: {exc}", fg="red")
        sys.exit(1)

    click.echo(result.summary())


@cli.command()
@click.argument("street_id")
@DB_OPTION
def aggregate(street_id: str, db_path: str) -> None:
    """Re-aggregate a street's status from its reports."""
    from bikepath.api import aggregate_street

    try:
        status = aggregate_street(db_path, street_id)
    except BikePathError as exc:
        click.secho(f"❌ Error: {exc}", fg="red")
        sys.exit(1)

    click.echo(f"Street {street_id}: {status or 'unset'}")


@cli.command()
@click.argument("path_id")
@DB_OPTION
def rescore(path_id: str, db_path: str) -> None:
    """Recompute a path's score and status."""
    from bikepath.api import recompute_path

    try:
        result = recompute_path(db_path, path_id)
    except BikePathError as exc:
        click.secho(f"❌ Error: {exc}", fg="red")
        sys.exit(1)

    click.echo(result.summary())


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
def serve(host: str, port: int) -> None:
    """Launch the BikePath HTTP API."""
    import uvicorn

    click.echo(f"🚀 Launching BikePath API on {host}:{port}...")
    uvicorn.run("bikepath.web.server:app", host=host, port=port)


if __name__ == "__main__":
    cli()
