"""Composition root for the land-titling registry.

The one module that knows both the core services and the concrete
adapters. It reads Settings, picks the SQLite or PostgreSQL store, builds
the cadastre, titling and citizen services, and hands them to the
interactive CLI or the HTTP API depending on RUN_MODE.
"""

import asyncio
import json
import logging
import sys

from landtitle.adapters.api.http_server import RegistryHTTPServer
from landtitle.adapters.cli.commands import CLICommandHandler
from landtitle.adapters.notification.stdout import StdoutAlertNotifier
from landtitle.adapters.store.postgresql import (
    PostgreSQLCitizenRepository,
    PostgreSQLDatabase,
    PostgreSQLParcelRepository,
    PostgreSQLTitlingRequestRepository,
)
from landtitle.adapters.store.sqlite import (
    SQLiteCitizenRepository,
    SQLiteDatabase,
    SQLiteParcelRepository,
    SQLiteTitlingRequestRepository,
)
from landtitle.config import load_settings
from landtitle.core.cadastre_service import CadastreService
from landtitle.core.citizen_service import CitizenService
from landtitle.core.parcel_validation import ParcelValidationService
from landtitle.core.titling_rules import TitlingDomainService
from landtitle.core.titling_service import TitlingService


async def _run_cli_interactive(cli_handler: CLICommandHandler) -> None:
    """Run interactive CLI loop.

    Provides a REPL-like interface: each line is a command name followed
    by an optional JSON object of arguments.

    Args:
        cli_handler: CLICommandHandler instance for executing commands.
    """
    logger = logging.getLogger(__name__)
    logger.info("Registry console ready (help lists commands, exit quits)")

    loop = asyncio.get_running_loop()

    while True:
        try:
            command_line = await loop.run_in_executor(None, input, "landtitle> ")
            command_line = command_line.strip()

            if not command_line:
                continue

            if command_line.lower() == "exit":
                logger.info("Exiting CLI")
                break

            if command_line.lower() == "help":
                _print_cli_help()
                continue

            parts = command_line.split(maxsplit=1)
            command = parts[0].lower()
            args_str = parts[1] if len(parts) > 1 else ""

            try:
                args = json.loads(args_str) if args_str else {}
            except json.JSONDecodeError:
                logger.error("Invalid JSON arguments. Use 'help' for command syntax.")
                continue

            if not isinstance(args, dict):
                logger.error("Arguments must be a JSON object. Use 'help' for command syntax.")
                continue

            try:
                result = await cli_handler.execute(command, args)
                print(json.dumps(result, indent=2, default=str))
            except ValueError as e:
                print(json.dumps({"status": "error", "message": str(e)}, indent=2))
            except Exception as e:
                logger.error(f"Command execution error: {e}", exc_info=True)
                print(json.dumps({"status": "error", "message": str(e)}, indent=2))

        except EOFError:
            logger.info("Input closed, leaving registry console")
            break
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            continue
        except Exception as e:
            logger.error(f"CLI error: {e}", exc_info=True)


def _print_cli_help() -> None:
    """Print CLI help message."""
    help_text = """
Available Commands (command {json arguments}):

Parcels
  register_parcel       {"code", "owner", "latitude", "longitude", "area", "address", "notes"?}
  show_parcel           {"code"}
  update_parcel         {"code", "owner"?, "notes"?}
  change_parcel_status  {"code", "status"}
  list_parcels          {"status"? | "owner"? | "department", "province"?, "district"?, "limit"?, "offset"?}
  nearby_parcels        {"latitude", "longitude", "radius"?}
  parcel_duplicates     {"code"}
  parcel_stats

  Example: register_parcel {"code": "150101-001-002-003", "owner": "Juan Perez",
           "latitude": -12.0464, "longitude": -77.0428, "area": 250,
           "address": "Av. Abancay 123, Lima"}

Titling requests
  create_request        {"requester_id", "requester_name", "parcel_address", "request_type",
                         "notes"?, "documents"?}
  show_request          {"code" | "case_file_number"}
  list_requests         {"status"? | "requester_id"? | "limit"?, "offset"?}
  update_request        {"code", "priority"?, "notes"?}
  change_request_status {"code", "status", "actor", "notes"?}
  add_document          {"code", "document"}
  archive_request       {"code"}  (only from in_remediation; finished requests are left as is)
  attention
  request_stats

  Request types: individual_titling, collective_titling, cadastral_update,
                 subdivision, merger

  Example: change_request_status {"code": "SOL-2026-000001",
           "status": "under_evaluation", "actor": "evaluator"}

Citizens
  register_citizen      {"identity", "given_names", "surnames", "birth_date", "marital_status",
                         "sex", "address"?, "phone"?, "email"?}
  show_citizen          {"identity"}
  update_contact        {"identity", "address"?, "phone"?, "email"?}
                        replaces all contact details; omitted fields are cleared
  verify_citizen        {"identity", "notes"?}
  verification_error    {"identity", "reason"}
  reverification_due
  list_citizens         {"verification_status"?, "limit"?, "offset"?}

  help                  Show this message
  exit                  Leave the CLI
"""
    print(help_text)


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = (
            '{"time": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}'
        )
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


async def bootstrap() -> None:
    """Wire the registry from settings and run it until the run mode exits.

    The store is always closed on the way out, including when the CLI
    loop or the HTTP server fails.

    Raises:
        SystemExit: If the PostgreSQL backend is chosen without DATABASE_URL.
    """
    # Settings
    settings = load_settings()

    configure_logging(settings.log_level, settings.log_format)
    logger = logging.getLogger(__name__)
    logger.info("Loading land-titling registry...")

    # Store and notifier
    logger.info("Opening registry store...")

    database: SQLiteDatabase | PostgreSQLDatabase
    if settings.store_backend == "sqlite":
        database = SQLiteDatabase(
            db_path=settings.store_sqlite_path,
            pool_size=settings.store_pool_size,
        )
        parcels = SQLiteParcelRepository(database)
        requests = SQLiteTitlingRequestRepository(database)
        citizens = SQLiteCitizenRepository(database)
        logger.info(f"Registry store initialized: SQLite at {settings.store_sqlite_path}")
    elif settings.store_backend == "postgresql":
        if not settings.database_url:
            logger.error("PostgreSQL backend selected but DATABASE_URL not set")
            sys.exit(1)
        database = PostgreSQLDatabase(
            dsn=settings.database_url,
            pool_size=settings.store_pool_size,
        )
        parcels = PostgreSQLParcelRepository(database)
        requests = PostgreSQLTitlingRequestRepository(database)
        citizens = PostgreSQLCitizenRepository(database)
        logger.info("Registry store initialized: PostgreSQL")
    else:
        logger.error(f"Unknown store backend: {settings.store_backend}")
        sys.exit(1)

    notification = StdoutAlertNotifier(verbose=settings.debug)

    # Core services
    logger.info("Wiring cadastre, titling and citizen services...")

    validation = ParcelValidationService(
        repository=parcels,
        search_radius_m=settings.parcel_search_radius_m,
        overlap_threshold_m=settings.parcel_overlap_threshold_m,
        duplicate_radius_m=settings.parcel_duplicate_radius_m,
        similarity_threshold=settings.address_similarity_threshold,
    )
    rules = TitlingDomainService(
        max_process_days=settings.max_process_days,
        delay_alert_days=settings.delay_alert_days,
        urgent_margin_days=settings.urgent_margin_days,
    )

    cadastre_service = CadastreService(repository=parcels, validation=validation)
    titling_service = TitlingService(
        repository=requests,
        rules=rules,
        notification=notification,
        request_prefix=settings.request_prefix,
        case_file_prefix=settings.case_file_prefix,
    )
    citizen_service = CitizenService(repository=citizens)

    cli_handler = CLICommandHandler(
        cadastre=cadastre_service,
        titling=titling_service,
        citizens=citizen_service,
    )

    # Run mode
    logger.info(f"Starting in {settings.run_mode} mode...")

    http_server: RegistryHTTPServer | None = None
    try:
        if settings.run_mode == "cli":
            logger.info("Console mode selected")
            await _run_cli_interactive(cli_handler)

        elif settings.run_mode == "http":
            http_server = RegistryHTTPServer(
                commands=cli_handler,
                host=settings.http_host,
                port=settings.http_port,
                api_key=settings.http_api_key if settings.http_api_key else None,
                require_auth=settings.http_require_auth,
            )
            await http_server.start()
            await http_server.wait()

        else:
            logger.error(f"Unknown run mode: {settings.run_mode}")
            sys.exit(1)

    finally:
        if http_server is not None:
            await http_server.stop()
        await database.close_pool()


def main() -> None:
    """Console entry point (the `landtitle` script).

    Exit codes: 0 on a clean shutdown, 1 on a fatal error and 130 when
    interrupted with Ctrl+C.
    """
    logger = logging.getLogger(__name__)
    try:
        asyncio.run(bootstrap())
    except KeyboardInterrupt:
        logger.warning("Interrupted, shutting down")
        sys.exit(130)
    except asyncio.CancelledError:
        logger.info("Registry stopped")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
