"""CLI for inspecting recipe resolution."""

import logging
from datetime import timedelta
from pathlib import Path

import click
from dotenv import load_dotenv

from .cache import LocalCacheStore
from .config import EndpointConfig
from .diagnostics import test_connection
from .errors import CacheError
from .models import Recipe
from .remote import RemoteClient
from .resolver import FallbackResolver, Resolution

logger = logging.getLogger(__name__)


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def echo_recipes(recipes: list[Recipe]) -> None:
    if not recipes:
        click.echo("No recipes available.")
        return
    width = max(len(recipe.key) for recipe in recipes)
    for recipe in recipes:
        click.echo(f"  {recipe.key:<{width}}  {recipe.name} [{recipe.category}]")


def echo_resolution(resolution: Resolution) -> None:
    tier = resolution.tier.value if resolution.tier else "none"
    click.echo(f"{len(resolution.recipes)} recipes (source: {tier})")
    if resolution.skipped:
        click.echo(f"{len(resolution.skipped)} remote entries skipped")


# ============ CLI Group ============

@click.group()
@click.option("--repo", help="Recipe repository as owner/repo")
@click.option("--ttl-hours", type=float, help="Cache time-to-live in hours")
@click.option("--no-bundled", is_flag=True, help="Disable bundled recipe fallback")
@click.option("--cache-dir", type=click.Path(file_okay=False, path_type=Path), help="Cache directory")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(
    ctx: click.Context,
    repo: str | None,
    ttl_hours: float | None,
    no_bundled: bool,
    cache_dir: Path | None,
    token: str | None,
    verbose: int,
) -> None:
    """Agent rules recipe resolver."""
    setup_logging(verbose)
    try:
        config = EndpointConfig.from_env()
        if repo:
            config.use_repository(repo)
        config.update(
            ttl=timedelta(hours=ttl_hours) if ttl_hours else None,
            allow_bundled_fallback=False if no_bundled else None,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    if cache_dir:
        config.cache_dir = cache_dir

    remote = RemoteClient(config, token=token)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["remote"] = remote
    ctx.obj["cache"] = LocalCacheStore(config)
    ctx.obj["resolver"] = FallbackResolver(config, remote=remote, cache=ctx.obj["cache"])


# ============ Recipe Commands ============

@cli.command("list")
@click.option("-r", "--refresh", is_flag=True, help="Skip the cache and fetch from the remote")
@click.option("-c", "--category", help="Category filter")
@click.pass_context
def list_recipes(ctx, refresh, category):
    """List available recipes."""
    resolution = ctx.obj["resolver"].resolve(force_refresh=refresh)
    echo_resolution(resolution)
    index = resolution.index()
    echo_recipes(index.by_category(category) if category else index.list())


@cli.command()
@click.argument("query")
@click.pass_context
def search(ctx, query):
    """Search recipes by name, description, category, stack or tags."""
    index = ctx.obj["resolver"].load_index()
    matches = index.search(query)
    click.echo(f"{len(matches)} of {len(index)} recipes match {query!r}")
    echo_recipes(matches)


@cli.command()
@click.argument("key")
@click.pass_context
def show(ctx, key):
    """Show one recipe."""
    recipe = ctx.obj["resolver"].load_index().get(key)
    if recipe is None:
        raise click.ClickException(f"Recipe not found: {key}")

    click.echo(f"{recipe.name} ({recipe.key})")
    click.echo(f"Category: {recipe.category}")
    click.echo(f"Description: {recipe.description}")
    if recipe.tags:
        click.echo(f"Tags: {', '.join(recipe.tags)}")
    click.echo("Tech stack:")
    for role, label in recipe.tech_stack.items():
        click.echo(f"  {role}: {label}")
    click.echo(f"Source: {recipe.source.origin.value} {recipe.source.url or ''}".rstrip())
    if recipe.rules_text:
        click.echo()
        click.echo(recipe.rules_text)


@cli.command()
@click.pass_context
def refresh(ctx):
    """Fetch recipes from the remote and rewrite the cache."""
    echo_resolution(ctx.obj["resolver"].refresh())


# ============ Cache Commands ============

@cli.command("cache-info")
@click.pass_context
def cache_info(ctx):
    """Show cache status."""
    info = ctx.obj["cache"].info()
    click.echo(f"Cache directory: {info.cache_dir}")
    if not info.metadata:
        click.echo("No recipe cache found.")
        return
    click.echo(f"Last updated: {info.metadata.last_update.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    click.echo(f"Recipes: {info.metadata.recipe_count}")
    click.echo(f"Age: {info.age.total_seconds() / 3600:.1f} hours")
    click.echo(f"Valid: {'yes' if info.is_valid else 'no (expired or corrupt)'}")


@cli.command("cache-clear")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def cache_clear(ctx, yes):
    """Remove the recipe cache."""
    if not yes:
        click.confirm("Clear the recipe cache?", abort=True)
    try:
        removed = ctx.obj["cache"].clear()
    except CacheError as e:
        raise click.ClickException(str(e)) from e
    click.echo("Recipe cache cleared." if removed else "No recipe cache to clear.")


# ============ Repository Commands ============

@cli.command("test-connection")
@click.pass_context
def test_connection_cmd(ctx):
    """Probe the recipe repository."""
    report = test_connection(ctx.obj["config"], ctx.obj["remote"])
    click.echo(f"API endpoint: {report.list_endpoint}")
    click.echo(f"Raw endpoint: {report.content_endpoint}")
    click.echo(f"Token: {'yes' if report.authenticated else 'no (public access only)'}")
    for name, probe in report.tests.items():
        status = "PASSED" if probe.success else "FAILED"
        click.echo(f"  {name}: {status} ({probe.duration_ms:.0f}ms)")
        if probe.error:
            click.echo(f"    error: {probe.error}")
    if report.rate_limit:
        click.echo(f"Rate limit: {report.rate_limit.remaining}/{report.rate_limit.limit}")
        if report.rate_limit_low:
            click.echo("Rate limit is running low; set GITHUB_TOKEN for higher limits.")
    if not report.ok:
        click.echo("Some connection tests failed.")
        raise SystemExit(1)
    click.echo("All connection tests passed.")


def main() -> None:
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
