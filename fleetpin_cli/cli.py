from __future__ import annotations

import argparse
import json
import os
import sys
import urllib.error
import urllib.request
from dataclasses import asdict
from typing import Any, cast

from fleetpin_core.commands.types import CommandKind
from fleetpin_core.config import Config, get_config
from fleetpin_core.stores.interfaces import OperatorStateClient, RemoteStateClient

DEFAULT_STATUS_HOST = "http://127.0.0.1"


def _request_json(
    method: str,
    url: str,
    payload: dict[str, Any] | None = None,
    timeout: int = 30,
) -> dict[str, Any]:
    data = None
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        method=method,
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
            if not raw:
                return {}
            return json.loads(raw.decode("utf-8"))
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore")
        detail: str | dict[str, Any] = body
        try:
            detail = json.loads(body)
        except json.JSONDecodeError:
            detail = body or exc.reason
        raise RuntimeError(f"HTTP {exc.code} {detail}") from exc


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _remote_client(config: Config) -> RemoteStateClient:
    if config.remote_store == "firestore":
        from fleetpin_gcp.stores.registry import get_remote_client as gcp_client

        return gcp_client(config)
    from fleetpin_core.stores.registry import get_remote_client

    return get_remote_client(config)


def _operator_client(config: Config) -> OperatorStateClient:
    if config.remote_store == "memory":
        raise ValueError("REMOTE_STORE=memory is process-local; use json or firestore")
    return cast(OperatorStateClient, _remote_client(config))


def _resolve_status_url(value: str | None, config: Config | None = None) -> str:
    if value:
        return value
    env_value = os.getenv("FLEETPIN_STATUS_URL")
    if env_value:
        return env_value
    port = config.agent_status_port if config else 0
    if port <= 0:
        raise ValueError("Set --url, FLEETPIN_STATUS_URL or AGENT_STATUS_PORT")
    return f"{DEFAULT_STATUS_HOST}:{port}"


def cmd_run(args: argparse.Namespace) -> int:
    from fleetpin_core.agent import run_agent
    from local_adapter.agent_service import create_app

    config = get_config()
    return run_agent(config, client_factory=_remote_client, app_factory=create_app)


def cmd_device_id(args: argparse.Namespace) -> int:
    from fleetpin_core.agent import build_host, resolve_agent_device_id
    from fleetpin_core.prefs import LocalPreferences

    config = get_config()
    prefs = LocalPreferences(config.prefs_path)
    device_id = resolve_agent_device_id(config, prefs, build_host(config))
    _print_json({"device_id": device_id})
    return 0


def cmd_set_target(args: argparse.Namespace) -> int:
    from fleetpin_core.prefs import LocalPreferences

    config = get_config()
    prefs = LocalPreferences(config.prefs_path)
    prefs.set_target_app(args.app_id)
    _print_json({"target_app": prefs.target_app(), "prefs_path": str(prefs.path)})
    return 0


def cmd_show_config(args: argparse.Namespace) -> int:
    _print_json(asdict(get_config()))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    config = None if args.url else get_config()
    status_url = _resolve_status_url(args.url, config).rstrip("/")
    _print_json(_request_json("GET", f"{status_url}/status"))
    return 0


def cmd_send_command(args: argparse.Namespace) -> int:
    kind = CommandKind.parse(args.kind)
    client = _operator_client(get_config())
    command = client.enqueue_command(args.device_id, kind)
    _print_json(
        {
            "id": command.id,
            "device_id": command.device_id,
            "kind": command.kind.value,
            "created_at": command.created_at,
        }
    )
    return 0


def cmd_set_state(args: argparse.Namespace) -> int:
    if args.active is None and args.kiosk is None:
        print("Nothing to change: pass --active/--no-active or --kiosk/--no-kiosk")
        return 2
    client = _operator_client(get_config())
    state = client.set_desired_state(
        args.device_id,
        active=args.active,
        kiosk=args.kiosk,
    )
    _print_json(asdict(state))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fleetpin")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run the device agent")
    run_parser.set_defaults(func=cmd_run)

    device_parser = subparsers.add_parser("device-id", help="Print this device's id")
    device_parser.set_defaults(func=cmd_device_id)

    target_parser = subparsers.add_parser(
        "set-target", help="Set the designated app for this device"
    )
    target_parser.add_argument("app_id")
    target_parser.set_defaults(func=cmd_set_target)

    config_parser = subparsers.add_parser("show-config", help="Print resolved config")
    config_parser.set_defaults(func=cmd_show_config)

    status_parser = subparsers.add_parser("status", help="Query the agent status service")
    status_parser.add_argument("--url")
    status_parser.set_defaults(func=cmd_status)

    send_parser = subparsers.add_parser(
        "send-command", help="Queue a command for a device"
    )
    send_parser.add_argument("device_id")
    send_parser.add_argument("kind", help="reboot or restart_app")
    send_parser.set_defaults(func=cmd_send_command)

    state_parser = subparsers.add_parser(
        "set-state", help="Set a device's desired active/kiosk flags"
    )
    state_parser.add_argument("device_id")
    state_parser.add_argument(
        "--active",
        action=argparse.BooleanOptionalAction,
        default=None,
    )
    state_parser.add_argument(
        "--kiosk",
        action=argparse.BooleanOptionalAction,
        default=None,
    )
    state_parser.set_defaults(func=cmd_set_state)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 2
    try:
        return args.func(args)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
