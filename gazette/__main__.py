"""Gazette CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from gazette import __version__
from gazette.config import get_settings
from gazette.editorial import EditionError
from gazette.pipeline import (
    EditionResult,
    MissingCredentialsError,
    build_daily_baseline,
    create_cache,
    create_history,
    drain_background_tasks,
    get_edition,
)
from gazette.scheduler import start_scheduler
from gazette.sources import MarketSourceError, load_records

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from gazette.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory structure and configuration files."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        (data_dir / "editions").mkdir(parents=True, exist_ok=True)
        logger.info("Created all subdirectories")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_template = """# Gazette Configuration
# Operational parameters for the edition pipeline.
# API keys and secrets should be stored in .env file, not here.

generation:
  model: gemini-2.5-flash
  max_attempts: 2
  initial_delay_seconds: 0.5
  request_timeout_seconds: 60

scoring:
  money_weight: 0.35
  certainty_weight: 0.35
  speed_weight: 0.30
  min_days_to_resolution: 3
  max_days_to_resolution: 90

selection:
  target_stories: 25
  min_stories: 20
  hard_caps:
    SPORTS: 2

stages:
  headlines:
    batch_size: 8
    stagger_ms: 75
  articles:
    batch_size: 5
    stagger_ms: 250
  review:
    batch_size: 2
    stagger_ms: 100

cache:
  bucket_hours: 4
  backend: file

editorial:
  generation_timeout_seconds: 120

scheduler:
  edition_refresh_minutes: 240
  daily_refresh_hour: 6
  daily_refresh_timezone: America/New_York

ratelimit:
  window_seconds: 900
  max_requests: 5
"""
            config_path.write_text(config_template)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Copy .env.example to .env and add your GEMINI_API_KEY")
        print("2. Place a market snapshot at data/markets.json (or set MARKETS_URL)")
        print("3. Run 'python -m gazette config' to verify configuration")
        print("4. Run 'python -m gazette build' to generate an edition\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Gazette Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"Markets: {settings.markets_url or settings.get_markets_path()}\n")

        print("Generation:")
        print(f"  Model: {settings.generation.provider}:{settings.generation.model}")
        print(f"  Max Attempts: {settings.generation.max_attempts}")
        print(f"  Request Timeout: {settings.generation.request_timeout_seconds}s\n")

        print("Scoring:")
        print(
            f"  Weights: money {settings.scoring.money_weight:.2f} / "
            f"certainty {settings.scoring.certainty_weight:.2f} / "
            f"speed {settings.scoring.speed_weight:.2f}"
        )
        print(
            f"  Resolution Window: {settings.scoring.min_days_to_resolution:g}-"
            f"{settings.scoring.max_days_to_resolution:g} days\n"
        )

        print("Selection:")
        print(f"  Target Stories: {settings.selection.target_stories}")
        print(f"  Min Stories: {settings.selection.min_stories}")
        print(f"  Hard Caps: {settings.selection.hard_caps}\n")

        print("Stages (batch size / stagger):")
        for name in ("selection", "headlines", "articles", "annotations", "review"):
            stage = getattr(settings.stages, name)
            print(f"  {name.title()}: {stage.batch_size} / {stage.stagger_ms}ms")
        print()

        print("Cache:")
        print(f"  Backend: {settings.cache.backend}")
        print(f"  Bucket Width: {settings.cache.bucket_hours}h")
        print(f"  Build Deadline: {settings.editorial.generation_timeout_seconds:.0f}s\n")

        print("Scheduler:")
        print(f"  Edition Refresh: every {settings.scheduler.edition_refresh_minutes} min")
        print(
            f"  Daily Baseline: {settings.scheduler.daily_refresh_hour:02d}:00 "
            f"{settings.scheduler.daily_refresh_timezone}\n"
        )

        print("API Keys:")
        print(f"  Gemini: {'✓ Set' if settings.gemini_api_key else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


async def _build(args: argparse.Namespace) -> EditionResult | EditionError:
    settings = get_settings()
    records = load_records(Path(args.markets)) if args.markets else None
    try:
        if args.daily:
            return await build_daily_baseline(settings, records=records)
        return await get_edition(
            settings,
            force_refresh=args.force,
            cache=create_cache(settings),
            history=create_history(settings),
            records=records,
            background_refresh=False,
        )
    finally:
        await drain_background_tasks()


def cmd_build(args: argparse.Namespace) -> int:
    """Build (or fetch from cache) the current edition."""
    _init_logfire()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        print("\n=== Edition Build ===\n")

        result = asyncio.run(_build(args))

        if isinstance(result, EditionError):
            print(f"❌ No edition: {result.error}")
            if result.detail:
                print(f"   {result.detail}")
            print()
            return 1

        edition = result.edition
        print(f"✓ Edition ready ({result.source})\n")
        print(f"Key: {result.key}")
        print(f"Generated At: {edition.generated_at:%Y-%m-%d %H:%M:%S %Z}")
        print(f"Stories: {len(edition.blueprint.stories)}")
        print(f"Fallback: {'yes' if edition.is_fallback else 'no'}")
        print(f"\nEditorial Note:\n{edition.editorial_note}\n")

        stories = edition.render_stories()
        for story in stories[:5]:
            print(f"  • [{story['layout']}] {story['headline']}")
        if len(stories) > 5:
            print(f"  ... and {len(stories) - 5} more")
        print()

        return 0

    except MissingCredentialsError as e:
        print(f"\n❌ {e}\n")
        return 1
    except MarketSourceError as e:
        logger.error(f"Failed to load markets: {e}")
        print(f"\n❌ Failed to load markets: {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Edition build failed: {e}", exc_info=True)
        print(f"\n❌ Edition build failed: {e}\n")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Start the edition refresh scheduler."""
    try:
        _init_logfire()

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()

        print("\n=== Gazette Edition Scheduler ===\n")
        print(f"Version: {__version__}")
        print(f"Model: {settings.generation.model}")
        print(f"Data Directory: {settings.data_dir}\n")

        if args.once:
            print("Running daily baseline refresh once...\n")

            async def _once() -> None:
                await build_daily_baseline(settings)
                await drain_background_tasks()

            asyncio.run(_once())
            print("\nRefresh complete.\n")
            return 0

        print("Starting scheduler...\n")
        start_scheduler(settings)

        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP API."""
    try:
        import uvicorn

        from gazette.api.server import create_app

        _init_logfire()

        settings = get_settings()
        host = args.host or settings.api.host
        port = args.port or settings.api.port

        print(f"\n=== Gazette API on http://{host}:{port} ===\n")
        uvicorn.run(create_app(settings), host=host, port=port)
        return 0

    except Exception as e:
        logger.error(f"API server failed: {e}", exc_info=True)
        print(f"\n❌ API server failed: {e}\n")
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Gazette: a daily newspaper written from prediction markets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Gazette {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration files",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_build = subparsers.add_parser(
        "build",
        help="Build the current edition (served from cache when fresh)",
    )
    parser_build.add_argument(
        "--force",
        action="store_true",
        help="Ignore the cache and regenerate",
    )
    parser_build.add_argument(
        "--daily",
        action="store_true",
        help="Also write the edition under today's baseline key",
    )
    parser_build.add_argument(
        "--markets",
        help="Path to a market snapshot JSON file (overrides settings)",
    )
    parser_build.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_build.set_defaults(func=cmd_build)

    parser_run = subparsers.add_parser(
        "run",
        help="Start the edition refresh scheduler",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.add_argument(
        "--once",
        action="store_true",
        help="Run the daily baseline refresh once then exit",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Serve the HTTP API",
    )
    parser_serve.add_argument("--host", help="Bind address (default from config)")
    parser_serve.add_argument("--port", type=int, help="Port (default from config)")
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
