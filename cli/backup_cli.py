"""Command line interface for dirbackup: one-off runs, dry-run plans, remote triggers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

from dirbackup.config import Settings
from dirbackup.exceptions import BackupError, ManifestNotFoundError
from dirbackup.filesystem.manifest_store import ManifestStore
from dirbackup.services.backup_service import BackupService

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def build_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, with command line overrides applied."""
    overrides: dict[str, Any] = {}
    if args.source:
        overrides["source_dir"] = Path(args.source).resolve()
    if args.output:
        overrides["output_dir"] = Path(args.output).resolve()
    return Settings(**overrides)


def cmd_run(settings: Settings) -> int:
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    service = BackupService(settings)
    try:
        report = asyncio.run(service.run())
    except BackupError as exc:
        print(f"Error: {exc}")
        return 1

    print(report.summary())
    for name in report.archived:
        print(f"  + {name}")
    for name, error in report.failed.items():
        print(f"  ! {name}: {error}")
    return 0


def cmd_plan(settings: Settings) -> int:
    service = BackupService(settings)
    try:
        plan = asyncio.run(service.plan())
    except BackupError as exc:
        print(f"Error: {exc}")
        return 1

    print("Backup Plan:")
    print(f"  To archive: {len(plan.to_archive)}")
    print(f"  Unchanged:  {len(plan.unchanged)}")
    print(f"  Removed:    {len(plan.removed)}")
    for name in plan.to_archive:
        print(f"    + {name} ({plan.reasons[name]})")
    for name in plan.removed:
        print(f"    - {name} (no longer in source)")
    return 0


def cmd_manifest(settings: Settings) -> int:
    store = ManifestStore(settings.output_dir, settings.manifest_filename)
    try:
        snapshot = store.load()
    except ManifestNotFoundError:
        print(f"No manifest at {store.path}")
        return 1
    except BackupError as exc:
        print(f"Error: {exc}")
        return 1

    print(f"Manifest {store.path}: {len(snapshot)} directories")
    for entry in snapshot:
        archive = entry.archive_path or "-"
        print(
            f"  {entry.name}  modified {entry.mod_time.isoformat()}  "
            f"{len(entry.children)} subdirectories  archive: {archive}"
        )
    return 0


def cmd_trigger(server_url: str) -> int:
    with httpx.Client(base_url=server_url, timeout=None) as client:
        try:
            resp = client.post("/api/backup/run")
        except httpx.HTTPError as exc:
            print(f"Error: could not reach {server_url}: {exc}")
            return 1

    if resp.status_code == 409:
        print("A backup run is already in progress; trigger skipped")
        return 1
    if resp.status_code != 200:
        print(f"Error: backup failed ({resp.status_code})")
        return 1
    print(resp.json()["summary"])
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dirbackup-cli",
        description="Incremental backups of the top-level directories of a source tree",
    )
    parser.add_argument("--source", help="Source directory (default: SOURCE_DIR)")
    parser.add_argument("--output", "-o", help="Archive output directory (default: OUTPUT_DIR)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Run one backup now")
    subparsers.add_parser("plan", help="Show what the next run would archive")
    subparsers.add_parser("manifest", help="Summarize the persisted manifest")
    trigger_parser = subparsers.add_parser("trigger", help="Ask a running service to back up now")
    trigger_parser.add_argument("--server", "-s", required=True, help="Service URL")
    trigger_parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "trigger":
        try:
            server_url = validate_server_url(args.server, args.allow_insecure_http)
        except ValueError as exc:
            print(f"Error: {exc}")
            sys.exit(1)
        sys.exit(cmd_trigger(server_url))

    if args.command is None:
        parser.print_help()
        return

    settings = build_settings(args)
    if args.command == "run":
        sys.exit(cmd_run(settings))
    elif args.command == "plan":
        sys.exit(cmd_plan(settings))
    elif args.command == "manifest":
        sys.exit(cmd_manifest(settings))


if __name__ == "__main__":
    main()
