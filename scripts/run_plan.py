#!/usr/bin/env python3
"""
Work plan execution script

Usage:
  python scripts/run_plan.py run --plan-file <path> [--items <label,...>] [--max-retries <n>] [--no-cache]
  python scripts/run_plan.py run --plan-id <id> --api-base-url <url> [--wait-sec <sec>]
  python scripts/run_plan.py start --plan-id <id> --api-base-url <url>
  python scripts/run_plan.py wait --run-id <id> --api-base-url <url> [--timeout-sec <sec>]
  python scripts/run_plan.py status --run-id <id> --api-base-url <url>
  python scripts/run_plan.py logs --run-id <id> --api-base-url <url> [--min-level <level>]
  python scripts/run_plan.py list --api-base-url <url> [--status <status>] [--plan <plan_id>]
  python scripts/run_plan.py play --run-id <id> --api-base-url <url>
  python scripts/run_plan.py kill --run-id <id> --api-base-url <url>

Examples:
  python scripts/run_plan.py plans/eos_silicon.yaml
  python scripts/run_plan.py run --plan-id eos_silicon --items s098,s100
  python scripts/run_plan.py run --plan-id simple_test --api-base-url http://localhost:8000 --wait-sec 30
  python scripts/run_plan.py start --plan-id eos_silicon --api-base-url http://localhost:8000
"""
from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import replace
from pathlib import Path

import requests
from dotenv import load_dotenv

load_dotenv()

from infrastructure.config.settings import Settings
from infrastructure.logging.log_setup import setup_console_logging

SETTINGS = Settings.from_env()
setup_console_logging(level=SETTINGS.log_level)

from application.services.sweep_runner import SweepRunner
from application.services.work_plan_validator import WorkPlanValidatorService
from domain.exceptions import ValidationError
from domain.work_plan import WorkPlan
from infrastructure.bootstrap import build_controller_factory
from infrastructure.logging.loguru_logger import LoguruLogger
from infrastructure.plan.file_finder import PlanFileFinder
from infrastructure.plan.loader_registry import PlanLoaderRegistry
from infrastructure.run.in_memory_run_scheduler import InMemoryRunScheduler


PLANS_DIR = SETTINGS.plans_dir
DEFAULT_API_TIMEOUT_SEC = 30
COMMANDS = {"run", "start", "wait", "status", "logs", "list", "play", "kill"}


def _parse_items(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    labels = [label.strip() for label in raw.split(",") if label.strip()]
    if not labels:
        raise ValueError("items must name at least one label")
    return labels


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Work plan execution helper")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run plan locally or via API")
    run_parser.add_argument("--plan-id", type=str)
    run_parser.add_argument("--plan-file", type=str)
    run_parser.add_argument("--items", type=str)
    run_parser.add_argument("--max-retries", type=int)
    run_parser.add_argument("--no-cache", action="store_true")
    run_parser.add_argument("--api-base-url", type=str)
    run_parser.add_argument("--wait-sec", type=int)
    run_parser.add_argument("--timeout-sec", type=float)

    start_parser = subparsers.add_parser("start", help="Start plan via API")
    start_parser.add_argument("--plan-id", type=str, required=True)
    start_parser.add_argument("--items", type=str)
    start_parser.add_argument("--max-retries", type=int)
    start_parser.add_argument("--no-cache", action="store_true")
    start_parser.add_argument("--api-base-url", type=str, required=True)

    wait_parser = subparsers.add_parser("wait", help="Wait for run completion")
    wait_parser.add_argument("--run-id", type=str, required=True)
    wait_parser.add_argument("--api-base-url", type=str, required=True)
    wait_parser.add_argument("--timeout-sec", type=int, default=DEFAULT_API_TIMEOUT_SEC)
    wait_parser.add_argument("--interval-sec", type=float, default=1.0)

    status_parser = subparsers.add_parser("status", help="Fetch run status")
    status_parser.add_argument("--run-id", type=str, required=True)
    status_parser.add_argument("--api-base-url", type=str, required=True)

    logs_parser = subparsers.add_parser("logs", help="Fetch run logs")
    logs_parser.add_argument("--run-id", type=str, required=True)
    logs_parser.add_argument("--api-base-url", type=str, required=True)
    logs_parser.add_argument("--min-level", type=str, choices=["debug", "info", "warning", "error"])

    list_parser = subparsers.add_parser("list", help="List runs")
    list_parser.add_argument("--api-base-url", type=str, required=True)
    list_parser.add_argument("--status", type=str, choices=["queued", "running", "paused", "succeeded", "failed"])
    list_parser.add_argument("--plan", type=str, help="Only runs of this plan id")

    for name, help_text in (("play", "Resume a paused run"), ("kill", "Cancel a run")):
        control_parser = subparsers.add_parser(name, help=help_text)
        control_parser.add_argument("--run-id", type=str, required=True)
        control_parser.add_argument("--api-base-url", type=str, required=True)

    return parser


def _resolve_plan_path(plan_id: str) -> Path:
    finder = PlanFileFinder(PLANS_DIR)
    plan_file = finder.find_by_id(plan_id)
    if plan_file is None:
        raise ValueError(f"Plan file not found: {plan_id}")
    return plan_file


def _load_plan(args: argparse.Namespace) -> WorkPlan:
    if args.plan_file:
        plan_path = Path(args.plan_file)
    elif args.plan_id:
        plan_path = _resolve_plan_path(args.plan_id)
    else:
        raise ValueError("plan-file or plan-id is required for local run")

    registry = PlanLoaderRegistry()
    loader = registry.get_loader(plan_path)
    try:
        return loader.load_from_file(plan_path)
    except Exception as e:
        raise ValueError(f"Failed to load plan: {e}") from e


def _apply_overrides(plan: WorkPlan, args: argparse.Namespace) -> WorkPlan:
    items = plan.items
    labels = _parse_items(args.items)
    if labels is not None:
        unknown = sorted(set(labels) - {item.label for item in items})
        if unknown:
            raise ValueError(f"Unknown item labels: {', '.join(unknown)}")
        items = [item for item in items if item.label in labels]
    if args.max_retries is not None:
        items = [replace(item, max_retries=args.max_retries) for item in items]
    if args.no_cache:
        items = [replace(item, caching=False) for item in items]
    return replace(plan, items=items)


def _run_local(args: argparse.Namespace) -> int:
    plan = _apply_overrides(_load_plan(args), args)

    print(f"Plan: {plan.meta.name} (v{plan.meta.version})")
    print(f"Items: {len(plan.items)}")

    # Validate before anything is submitted.
    # Reason: Broken plans fail early in CLI runs.
    # Impact: Exits with code 1 without touching the engine.
    try:
        WorkPlanValidatorService.default().validate(plan)
    except ValidationError as e:
        raise ValueError(str(e)) from e

    logger = LoguruLogger()
    factory = build_controller_factory(SETTINGS, logger)
    scheduler = InMemoryRunScheduler(max_workers=SETTINGS.engine_workers)
    try:
        print("\n=== Executing ===\n")
        sweep = SweepRunner(factory, scheduler, logger).run(plan, timeout_sec=args.timeout_sec)
    finally:
        scheduler.shutdown()
        factory.deps.engine.shutdown()

    print("\n=== Result ===")
    print(f"Success: {sweep.ok}")
    for label, result in sweep.results.items():
        cached = " (cached)" if result.is_from_cache else ""
        print(f"- {label}: {result.state.value} exit={result.exit_status} attempts={len(result.attempts)}{cached}")
        if not result.ok:
            print(f"  Error: {result.message}")
    if sweep.outputs:
        print(f"Output: {json.dumps(sweep.outputs, indent=2, ensure_ascii=False, default=str)}")

    return 0 if sweep.ok else 1


def _build_api_payload(args: argparse.Namespace) -> dict:
    payload: dict = {}
    labels = _parse_items(args.items)
    if labels is not None:
        payload["items"] = labels
    if args.max_retries is not None:
        payload["max_retries"] = args.max_retries
    if args.no_cache:
        payload["caching"] = False
    return payload


def _post_run_request(
    base_url: str,
    plan_id: str,
    payload: dict,
    wait_sec: int | None,
) -> requests.Response:
    url = f"{base_url.rstrip('/')}/plans/{plan_id}/runs"
    params = {}
    if wait_sec is not None:
        params["wait_sec"] = wait_sec
    return requests.post(url, json=payload, params=params, timeout=DEFAULT_API_TIMEOUT_SEC)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _run_api(args: argparse.Namespace) -> int:
    if not args.plan_id:
        raise ValueError("plan-id is required for API run")
    response = _post_run_request(args.api_base_url, args.plan_id, _build_api_payload(args), args.wait_sec)
    print(f"Status: {response.status_code}")
    data = response.json()
    _print_json(data)
    if response.status_code == 202:
        return 0
    if response.status_code >= 400:
        return 1
    return 0 if data.get("success") else 1


def _start_api(args: argparse.Namespace) -> int:
    response = _post_run_request(args.api_base_url, args.plan_id, _build_api_payload(args), wait_sec=0)
    print(f"Status: {response.status_code}")
    _print_json(response.json())
    return 0 if response.status_code == 202 else 1


def _get_json(url: str, params: dict | None = None):
    response = requests.get(url, params=params or {}, timeout=DEFAULT_API_TIMEOUT_SEC)
    response.raise_for_status()
    return response.json()


def _wait_api(args: argparse.Namespace) -> int:
    deadline = time.monotonic() + args.timeout_sec
    status_url = f"{args.api_base_url.rstrip('/')}/runs/{args.run_id}"
    while True:
        data = _get_json(status_url)
        status = data.get("status", "").lower()
        # paused runs need an operator, so stop waiting
        if status in {"succeeded", "failed", "paused"}:
            _print_json(data)
            return 0 if status == "succeeded" else 1
        if time.monotonic() >= deadline:
            _print_json(data)
            return 1
        time.sleep(args.interval_sec)


def _status_api(args: argparse.Namespace) -> int:
    _print_json(_get_json(f"{args.api_base_url.rstrip('/')}/runs/{args.run_id}"))
    return 0


def _logs_api(args: argparse.Namespace) -> int:
    params = {"min_level": args.min_level} if args.min_level else None
    _print_json(_get_json(f"{args.api_base_url.rstrip('/')}/runs/{args.run_id}/logs", params))
    return 0


def _list_api(args: argparse.Namespace) -> int:
    params = {}
    if args.status:
        params["status"] = args.status
    if args.plan:
        params["plan_id"] = args.plan
    _print_json(_get_json(f"{args.api_base_url.rstrip('/')}/runs", params or None))
    return 0


def _control_api(args: argparse.Namespace) -> int:
    url = f"{args.api_base_url.rstrip('/')}/runs/{args.run_id}/{args.command}"
    response = requests.post(url, timeout=DEFAULT_API_TIMEOUT_SEC)
    print(f"Status: {response.status_code}")
    _print_json(response.json())
    return 0 if response.status_code < 400 else 1


def main() -> None:
    parser = _build_parser()
    argv = sys.argv[1:]
    if argv and argv[0] not in COMMANDS and not argv[0].startswith("-"):
        argv = ["run", "--plan-file", argv[0]] + argv[1:]
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "run":
            if args.api_base_url:
                exit_code = _run_api(args)
            else:
                exit_code = _run_local(args)
        elif args.command == "start":
            exit_code = _start_api(args)
        elif args.command == "wait":
            exit_code = _wait_api(args)
        elif args.command == "status":
            exit_code = _status_api(args)
        elif args.command == "logs":
            exit_code = _logs_api(args)
        elif args.command == "list":
            exit_code = _list_api(args)
        elif args.command in {"play", "kill"}:
            exit_code = _control_api(args)
        else:
            raise ValueError(f"Unknown command: {args.command}")
    except ValueError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)
    except requests.RequestException as exc:
        print(f"ERROR: API request failed: {exc}")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
