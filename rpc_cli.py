#!/usr/bin/env python3
"""
rpc_cli - Command-line interface for the RPC agent daemon

Boots the daemon core in-process, invokes one action on one agent and
prints the reply. The exit status is the reply's status code.

Usage: rpc-agent [--json] [--debug] AGENT ACTION [--puppetd-options=OPTS] [--forcerun]
       rpc-agent --list
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, Optional

from rpc_common.config import config, load_pluginconf
from rpc_common.exceptions import RPCError
from rpc_common.logging import configure_structlog, get_bound_logger
from rpc_daemon.daemon_core import RPCDaemon
from rpc_daemon.rpc_types import StatusCode

logger = get_bound_logger("rpc_cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rpc-agent",
        description="Invoke an action on a local RPC agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rpc-agent puppetd status
  rpc-agent puppetd disable
  rpc-agent puppetd runonce --puppetd-options=--noop --forcerun
  rpc-agent --list
        """
    )

    parser.add_argument("agent", nargs="?", help="Agent name (e.g. puppetd)")
    parser.add_argument("action", nargs="?", help="Action name (e.g. status)")
    parser.add_argument(
        "--puppetd-options",
        dest="puppetd_options",
        help="Options passed to puppetd on runonce (must be whitelisted)"
    )
    parser.add_argument(
        "--forcerun",
        action="store_true",
        default=None,
        help="Run immediately, skipping the configured splay"
    )
    parser.add_argument(
        "--arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra request data item (repeatable)"
    )
    parser.add_argument("--pluginconf", help="Plugin configuration file")
    parser.add_argument("--json", action="store_true", help="Print the reply as JSON")
    parser.add_argument("--list", action="store_true", help="Describe the available agents")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (sets RPC_LOG_LEVEL=DEBUG)"
    )
    return parser


def request_data(args: argparse.Namespace) -> Dict[str, Any]:
    """Collect request data from the parsed arguments."""
    data: Dict[str, Any] = {}
    for item in args.arg:
        if "=" not in item:
            raise ValueError(f"--arg expects KEY=VALUE, got {item!r}")
        key, value = item.split("=", 1)
        data[key.strip()] = value
    if args.puppetd_options is not None:
        data["puppetd_options"] = args.puppetd_options
    if args.forcerun is not None:
        data["forcerun"] = args.forcerun
    return data


def format_reply(reply: Dict[str, Any]) -> str:
    """Human readable reply."""
    lines = [f"{reply['agent']}#{reply['action']}: {reply['statusmsg']}"]
    for key, value in reply.get("data", {}).items():
        if key == "output" and isinstance(value, str) and "\n" in value.strip():
            lines.append("output:")
            lines.extend(f"    {line}" for line in value.rstrip().splitlines())
        else:
            lines.append(f"{key}: {value}")
    return "\n".join(lines)


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_structlog(
        log_level="DEBUG" if args.debug else config.get_log_level(),
        log_format=config.log_format,
        log_file=config.log_file,
        reconfigure=True,
    )

    if not args.list and not (args.agent and args.action):
        parser.error("AGENT and ACTION are required unless --list is given")

    try:
        data = request_data(args)
    except ValueError as e:
        parser.error(str(e))

    daemon = RPCDaemon()
    try:
        pluginconf = load_pluginconf(args.pluginconf) if args.pluginconf else None
        daemon.initialize(pluginconf)
    except RPCError as e:
        logger.error("Daemon startup failed", error=e.to_dict())
        print(f"Error: {e.message}", file=sys.stderr)
        return int(StatusCode.UNKNOWN_ERROR)

    try:
        if args.list:
            agents = daemon.describe()
            if args.json:
                print(json.dumps(agents, indent=2, default=str))
            else:
                for agent in agents:
                    print(f"{agent['name']} {agent['version']} - {agent['description']}")
                    for action, info in sorted(agent["actions"].items()):
                        print(f"    {action}: {info['summary']}")
            return 0

        reply = asyncio.run(daemon.handle(args.agent, args.action, data,
                                          context={"caller": "cli"}))
    finally:
        daemon.shutdown()

    if args.json:
        print(json.dumps(reply, indent=2, default=str))
    else:
        print(format_reply(reply))
    return reply["statuscode"]


def run():
    """Entry point for the rpc-agent command."""
    sys.exit(main())


if __name__ == "__main__":
    run()
