"""
CLI App - Main entry point for the domainclient command line tool.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from domainclient import __version__
from domainclient.adapters.config import EnvironmentConfigProvider
from domainclient.adapters.http import GenericEntity, HttpTransportClient
from domainclient.application import DomainContext
from domainclient.core.domain.entities import Entity
from domainclient.core.domain.enums import LoadBehavior
from domainclient.core.ports.config_provider import ClientConfig

from .exit_codes import ExitCode
from .logging import setup_logging
from .output import Console


def create_parser() -> argparse.ArgumentParser:
    """
    Create the command-line argument parser for domainclient.

    Returns:
        Configured ArgumentParser instance.
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", help="Path to a YAML or TOML config file")
    common.add_argument("--url", help="Service URL (overrides configuration)")
    common.add_argument("--timeout", type=float, help="Request timeout in seconds")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug output")
    common.add_argument("--quiet", "-q", action="store_true", help="Only print results and errors")
    common.add_argument(
        "--log-format", choices=["text", "json"], default="text", help="Log output format"
    )
    common.add_argument("--log-file", help="Also write logs to this file")
    common.add_argument("--no-color", action="store_true", help="Disable colored output")
    common.add_argument(
        "--output", "-o", choices=["text", "json"], default="text", help="Result output format"
    )

    parser = argparse.ArgumentParser(
        prog="domainclient",
        description="Query and invoke operations on a domain service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the effective configuration
  domainclient config

  # Load entities from a query
  domainclient query GetOrders --url https://example.com/Services/Orders

  # Pass query parameters (values are parsed as JSON when possible)
  domainclient query GetOrdersByCustomer --param customer=ACME --take 10

  # Invoke a service operation and print the result as JSON
  domainclient invoke RecalculateTotals --param orderId=7 --output json
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    subparsers.add_parser(
        "config", parents=[common], help="Load, validate and print the configuration"
    )

    query = subparsers.add_parser("query", parents=[common], help="Load entities from a query")
    query.add_argument("name", help="Query name")
    query.add_argument(
        "--param", "-p", action="append", default=[], metavar="KEY=VALUE", help="Query parameter"
    )
    query.add_argument("--skip", type=int, help="Number of results to skip")
    query.add_argument("--take", type=int, help="Maximum number of results")
    query.add_argument("--count", action="store_true", help="Request the total entity count")
    query.add_argument(
        "--side-effects", action="store_true", help="Send the query as a POST"
    )
    query.add_argument(
        "--load-behavior",
        choices=["keep", "merge", "refresh"],
        default="keep",
        help="How results merge into tracked entities",
    )

    invoke = subparsers.add_parser("invoke", parents=[common], help="Invoke a service operation")
    invoke.add_argument("name", help="Operation name")
    invoke.add_argument(
        "--param", "-p", action="append", default=[], metavar="KEY=VALUE", help="Parameter"
    )
    invoke.add_argument(
        "--no-side-effects", action="store_true", help="Send the invoke as a GET"
    )

    return parser


def parse_params(items: list[str]) -> dict[str, Any]:
    """
    Parse ``KEY=VALUE`` arguments.

    Values are decoded as JSON when they parse, otherwise kept as strings.

    Raises:
        ValueError: If an item has no ``=``
    """
    params: dict[str, Any] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Parameter must look like KEY=VALUE, got '{item}'")
        try:
            params[key] = json.loads(value)
        except ValueError:
            params[key] = value
    return params


def load_config(console: Console, args: argparse.Namespace) -> ClientConfig | None:
    """Load and validate configuration; prints errors and returns None on failure."""
    config_file = Path(args.config) if getattr(args, "config", None) else None
    provider = EnvironmentConfigProvider(
        config_file=config_file,
        cli_overrides={"service_url": args.url, "timeout": args.timeout},
    )
    errors = provider.validate()
    if errors:
        console.config_errors(errors)
        return None
    console.debug(f"Configuration loaded from {provider.name}")
    return provider.load()


def entity_to_dict(entity: Entity) -> dict[str, Any]:
    if isinstance(entity, GenericEntity):
        return {"$type": entity.type_name, **entity.values}
    return {"$type": type(entity).__name__, **entity.extract_state()}


def run_config(console: Console, args: argparse.Namespace) -> int:
    """
    Print the effective configuration.

    Returns:
        Exit code.
    """
    config = load_config(console, args)
    if config is None:
        return ExitCode.CONFIG_ERROR

    if console.json_mode:
        console.emit_json(config.to_dict())
        return ExitCode.SUCCESS

    console.header("domainclient configuration")
    console.table(["Setting", "Value"], [[k, v] for k, v in config.to_dict().items()])
    console.success("Configuration is valid")
    return ExitCode.SUCCESS


def run_query(console: Console, args: argparse.Namespace) -> int:
    """
    Execute a query and print the loaded entities.

    Returns:
        Exit code.
    """
    config = load_config(console, args)
    if config is None:
        return ExitCode.CONFIG_ERROR

    with HttpTransportClient.from_config(config) as transport:
        context = DomainContext(transport, config)
        query = context.create_query(
            args.name,
            parameters=parse_params(args.param),
            has_side_effects=args.side_effects,
        ).with_paging(skip=args.skip, take=args.take)
        query.include_total_count = args.count

        console.section(f"Loading {args.name}")
        operation = context.load(query, LoadBehavior.from_string(args.load_behavior))
        operation.wait()

    if operation.has_error:
        operation.mark_error_as_handled()
        console.error_rich(operation.error)
        return ExitCode.from_exception(operation.error)

    entities = [entity_to_dict(entity) for entity in operation.entities]
    if console.json_mode:
        console.emit_json(
            {"entities": entities, "total_entity_count": operation.total_entity_count}
        )
        return ExitCode.SUCCESS

    columns = sorted({key for entity in entities for key in entity})
    console.table(columns, [[entity.get(c, "") for c in columns] for entity in entities])
    console.success(f"Loaded {len(entities)} entities")
    if operation.total_entity_count >= 0:
        console.detail(f"Total count: {operation.total_entity_count}")
    return ExitCode.SUCCESS


def run_invoke(console: Console, args: argparse.Namespace) -> int:
    """
    Invoke a service operation and print its return value.

    Returns:
        Exit code.
    """
    config = load_config(console, args)
    if config is None:
        return ExitCode.CONFIG_ERROR

    with HttpTransportClient.from_config(config) as transport:
        context = DomainContext(transport, config)
        console.section(f"Invoking {args.name}")
        operation = context.invoke(
            args.name,
            parse_params(args.param),
            has_side_effects=not args.no_side_effects,
        )
        operation.wait()

    if operation.has_error:
        operation.mark_error_as_handled()
        console.error_rich(operation.error)
        return ExitCode.from_exception(operation.error)

    value = operation.value
    if isinstance(value, Entity):
        value = entity_to_dict(value)
    if console.json_mode:
        console.emit_json({"value": value})
    else:
        console.print(json.dumps(value, indent=2, default=str), force=True)
    return ExitCode.SUCCESS


COMMANDS = {
    "config": run_config,
    "query": run_query,
    "invoke": run_invoke,
}


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the domainclient CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(level=log_level, log_format=args.log_format, log_file=args.log_file)

    console = Console(
        color=not args.no_color,
        verbose=args.verbose,
        quiet=args.quiet,
        json_mode=args.output == "json",
    )

    try:
        return COMMANDS[args.command](console, args)

    except KeyboardInterrupt:
        console.print()
        console.warning("Interrupted by user")
        return ExitCode.SIGINT

    except Exception as e:
        console.error_rich(e)
        if args.verbose:
            import traceback

            console.print()
            traceback.print_exc()
        return ExitCode.from_exception(e)


def run() -> None:
    """
    Entry point for the console script.

    Calls main() and exits with its return code.
    """
    sys.exit(main())


if __name__ == "__main__":
    run()
