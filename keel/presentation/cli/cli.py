"""
CLI Module

Architectural Intent:
- Command-line interface for Keel
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control and --json for
  machine-readable results
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback

from keel import composition_root
from keel.application.dtos.deployment_dtos import (
    DeployRevisionRequest,
    PublishRequest,
)
from keel.domain.errors import KeelError
from keel.domain.events.deployment_events import (
    HostFailedEvent,
    HostRolledBackEvent,
    HostSucceededEvent,
)
from keel.infrastructure.config import load_config
from keel.infrastructure.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Keel: lifecycle-hook deployment engine"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json", action="store_true", help="Print results as JSON"
    )
    parser.add_argument(
        "--config", default=None, help="Path to keel.json (default: ./keel.json)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser(
        "deploy", help="Deploy an artifact to a group of hosts"
    )
    deploy_parser.add_argument(
        "--appspec", "-a", default="appspec.yml", help="Path to lifecycle descriptor"
    )
    deploy_parser.add_argument(
        "--artifact", required=True, help="Artifact reference (image:tag)"
    )
    deploy_parser.add_argument(
        "--targets", "-t", required=True, help="Comma-separated list of targets"
    )
    deploy_parser.add_argument(
        "--policy",
        "-p",
        default="all-at-once",
        help="all-at-once, one-at-a-time or canary-<pct>",
    )
    deploy_parser.add_argument(
        "--max-concurrency", type=int, default=None, help="Hosts deployed at once"
    )
    deploy_parser.add_argument(
        "--fleet-rollback",
        action="store_true",
        help="Roll back succeeded hosts too when any host fails",
    )
    deploy_parser.add_argument(
        "--buildspec", "-b", default=None, help="Build descriptor with secret mappings"
    )
    deploy_parser.add_argument(
        "--secret",
        action="append",
        default=[],
        help="Logical secret name to inject (repeatable; default: all mapped)",
    )
    deploy_parser.add_argument(
        "--selector", default=None, help="Running-workload selector for ApplicationStop"
    )

    validate_parser = subparsers.add_parser(
        "validate", help="Validate lifecycle and build descriptors"
    )
    validate_parser.add_argument("--appspec", "-a", default=None)
    validate_parser.add_argument("--buildspec", "-b", default=None)

    publish_parser = subparsers.add_parser(
        "publish", help="Push a built artifact to its registry"
    )
    publish_parser.add_argument(
        "--buildspec", "-b", default="buildspec.yml", help="Path to build descriptor"
    )
    publish_parser.add_argument(
        "--artifact", required=True, help="Artifact reference (image:tag)"
    )
    publish_parser.add_argument("--username-key", default="username")
    publish_parser.add_argument("--password-key", default="password")
    publish_parser.add_argument("--url-key", default="")

    history_parser = subparsers.add_parser(
        "history", help="Show recorded deployments"
    )
    history_parser.add_argument("--limit", "-n", type=int, default=20)
    history_parser.add_argument("--host", default=None, help="Show one host's transitions")
    history_parser.add_argument("--deployment", default=None, help="Deployment id")

    return parser


def _emit(args, payload: dict, text: str) -> None:
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print(text)


def _fail(message: str, verbose: bool) -> None:
    print(f"[-] {message}")
    if verbose:
        traceback.print_exc()
    sys.exit(1)


async def _print_progress(event) -> None:
    if isinstance(event, HostSucceededEvent):
        print(f"[+] {event.host_id}: Succeeded")
    elif isinstance(event, HostFailedEvent):
        code = f" (exit {event.exit_code})" if event.exit_code is not None else ""
        print(f"[-] {event.host_id}: {event.reason} in {event.phase}{code}")
    elif isinstance(event, HostRolledBackEvent):
        state = "rolled back" if event.success else "rollback FAILED"
        print(f"[*] {event.host_id}: {state}")


async def _deploy(args, container) -> None:
    request = DeployRevisionRequest(
        appspec_path=args.appspec,
        artifact_reference=args.artifact,
        targets=args.targets.split(","),
        policy=args.policy,
        max_concurrency=args.max_concurrency,
        fleet_rollback=args.fleet_rollback,
        buildspec_path=args.buildspec,
        secret_names=args.secret,
        workload_selector=args.selector,
    )
    if not args.json:
        print(f"[*] Deploying {args.artifact} to {args.targets} ({args.policy})...")
        for event_type in (HostSucceededEvent, HostFailedEvent, HostRolledBackEvent):
            container.event_bus.subscribe(event_type, _print_progress)

    result = await container.deploy_revision.execute(request)

    summary = (
        f"{len(result.succeeded_hosts)} succeeded, "
        f"{len(result.failed_hosts)} failed, "
        f"{len(result.skipped_hosts)} skipped"
    )
    marker = "[+]" if result.succeeded else "[-]"
    _emit(
        args,
        result.to_dict(),
        f"{marker} Deployment {result.deployment_id}: "
        f"{result.overall_status.value} ({summary})",
    )
    if not result.succeeded:
        sys.exit(1)


async def _publish(args, container) -> None:
    if not args.json:
        print(f"[*] Publishing {args.artifact}...")
    response = await container.publish_artifact.execute(
        PublishRequest(
            buildspec_path=args.buildspec,
            artifact_reference=args.artifact,
            username_key=args.username_key,
            password_key=args.password_key,
            url_key=args.url_key,
        )
    )
    marker = "[+]" if response.success else "[-]"
    _emit(
        args,
        {"success": response.success, "message": response.message, "registry": response.registry},
        f"{marker} {response.message}",
    )
    if not response.success:
        sys.exit(1)


def _validate(args, container) -> None:
    response = container.validate_descriptors.execute(args.appspec, args.buildspec)
    marker = "[+]" if response.success else "[-]"
    _emit(
        args,
        {
            "success": response.success,
            "message": response.message,
            "hooks": response.hook_count,
            "secrets": response.secret_count,
        },
        f"{marker} {response.message}",
    )
    if not response.success:
        sys.exit(1)


def _history(args, container) -> None:
    if container.history is None:
        print("[-] No history database configured (set history.db_path)")
        sys.exit(1)
    if args.host:
        rows = container.history.host_history(args.host, args.deployment, args.limit)
        lines = [
            f"{r['deployment_id']}  {r['phase']:<16} {r['outcome']:<9} {r['hook'] or ''}"
            for r in rows
        ]
    else:
        rows = container.history.list_deployments(args.limit)
        lines = [
            f"{r['deployment_id']}  {r['overall_status']:<16} {r['artifact_reference']}  {r['finished_at']}"
            for r in rows
        ]
    _emit(args, {"entries": rows}, "\n".join(lines) if lines else "[*] No history recorded.")


async def async_main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    # Configure logging based on flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.getLevelName(config.log_level)
        if not isinstance(level, int):
            level = logging.WARNING
    configure_logging(level=level, json_format=config.log_json)

    verbose = args.verbose or args.debug

    if args.command is None:
        parser.print_help()
        return

    try:
        container = composition_root.create_container(config)
    except (KeelError, ValueError) as e:
        _fail(f"Configuration error: {e}", verbose)
        return

    try:
        if container.telemetry is not None:
            await container.telemetry.initialize()

        if args.command == "deploy":
            await _deploy(args, container)
        elif args.command == "publish":
            await _publish(args, container)
        elif args.command == "validate":
            _validate(args, container)
        elif args.command == "history":
            _history(args, container)
    except FileNotFoundError as e:
        _fail(f"File not found: {e}", verbose)
    except KeelError as e:
        _fail(f"{type(e).__name__}: {e}", verbose)
    except ValueError as e:
        _fail(f"Invalid input: {e}", verbose)
    finally:
        if container.telemetry is not None:
            await container.telemetry.export()
        container.close()


def main():
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n[-] Interrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
