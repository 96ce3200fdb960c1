from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Optional

from offline_sync.client import SyncClient
from offline_sync.config import YamlConfigLoader
from offline_sync.config.models import AppConfig, ConfigLoadRequest
from offline_sync.core.errors import SyncError
from offline_sync.logging import init_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="offline-sync", description="Offline sync core command line")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level.")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: fetch
    fetch_parser = subparsers.add_parser("fetch", help="Read a resource through the persisted cache")
    fetch_parser.add_argument("path", help="API path, e.g. /profile")
    fetch_parser.add_argument("--key", default=None, help="Cache key (default: the path)")
    fetch_parser.add_argument(
        "--cached-only",
        action="store_true",
        help="Print the cached value without waiting for a refetch.",
    )

    # Command: submit-job
    submit_parser = subparsers.add_parser("submit-job", help="Submit a job and follow it to completion")
    submit_parser.add_argument("input", help="Job input")
    submit_parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra body parameter (repeatable).",
    )

    # Command: sign-in
    sign_in_parser = subparsers.add_parser("sign-in", help="Store a bearer token")
    sign_in_parser.add_argument("--token", required=True)

    subparsers.add_parser("sign-out", help="Clear the stored token and the cache")
    subparsers.add_parser("clear-cache", help="Clear the cache but keep the token")

    return parser


def _parse_params(raw_params: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for raw in raw_params:
        name, sep, value = raw.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid --param value, expected KEY=VALUE: {raw}")
        params[name.strip()] = value
    return params


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(yaml_path=args.config)
    return await loader.load(request)


async def _fetch(client: SyncClient, args: argparse.Namespace) -> int:
    key = args.key or args.path
    result = await client.queries.read(key, client.api.fetcher(args.path))
    snapshot = result.snapshot
    if result.refetch is not None and not args.cached_only:
        snapshot = await result.refetch
    _print_json(
        {
            "key": key,
            "status": snapshot.status.value if snapshot.status else "absent",
            "fetched_at": snapshot.fetched_at,
            "value": snapshot.value,
            "error": str(snapshot.error) if snapshot.error else None,
        }
    )
    return 1 if snapshot.is_absent and snapshot.error else 0


async def _submit_job(client: SyncClient, args: argparse.Namespace) -> int:
    job_id = await client.jobs.submit(args.input, **_parse_params(args.param))
    last = None
    async for snapshot in client.jobs.observe(job_id):
        last = snapshot
        _print_json(
            {
                "job_id": snapshot.job_id,
                "status": snapshot.status.value,
                "progress": snapshot.progress,
                "result": snapshot.result,
                "error": snapshot.error,
            }
        )
    return 0 if last is not None and last.status.value == "completed" else 1


async def _run_command(args: argparse.Namespace) -> int:
    config = await _load_config(args)
    init_logging(config.logging, level_override=args.log_level)

    async with SyncClient(config) as client:
        if args.command == "fetch":
            return await _fetch(client, args)
        if args.command == "submit-job":
            return await _submit_job(client, args)
        if args.command == "sign-in":
            await client.sign_in(args.token)
            return 0
        if args.command == "sign-out":
            await client.sign_out()
            return 0
        if args.command == "clear-cache":
            await client.queries.clear()
            return 0
    return 2


async def _main_async(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return await _run_command(args)
    except SyncError as e:
        logger.error("Command failed. command=%s error_type=%s error=%s", args.command, type(e).__name__, e)
        return 1


def main() -> None:
    try:
        raise SystemExit(asyncio.run(_main_async()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")


if __name__ == "__main__":
    main()
