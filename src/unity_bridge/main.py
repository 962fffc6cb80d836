"""Command-line entry point for the Unity bridge client."""

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

from rich.console import Console

from config.logging_config import get_logger, setup_logging
from src.unity_bridge import __version__
from src.unity_bridge.client import UnityBridgeClient
from src.unity_bridge.config import get_settings
from src.unity_bridge.errors import BridgeError
from src.unity_bridge.resolver import EndpointResolver

logger = get_logger(__name__)

console = Console()
error_console = Console(stderr=True)


def create_arg_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="unity-bridge",
        description="Talk to a running Unity editor over the MCP bridge WebSocket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  UNITY_PORT                   Port of the Unity bridge (default: 8090)
  UNITY_BRIDGE_HOST            Host to connect to (default: localhost)
  UNITY_BRIDGE_WS_PATH         WebSocket path (default: McpUnity)
  UNITY_BRIDGE_REQUEST_TIMEOUT Request timeout in seconds (default: 10)
  UNITY_BRIDGE_CONNECT_TIMEOUT Connection timeout in seconds (default: 10)

Examples:
  unity-bridge port
  unity-bridge call ping
  unity-bridge call select_gameobject --params '{"objectPath": "Main Camera"}'
""",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Logging level (default: from config/env)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"unity-bridge v{__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("port", help="Print the resolved Unity port")

    call = subparsers.add_parser("call", help="Send one request and print its result")
    call.add_argument("method", help="Remote method name")
    call.add_argument(
        "--params", "-p",
        default="{}",
        help="JSON encoded request parameters (default: {})",
    )
    call.add_argument("--id", dest="request_id", default=None, help="Correlation id to use")
    call.add_argument(
        "--client-name", "-n",
        default=None,
        help="Name shown by Unity for this client",
    )

    return parser


def parse_params(raw: str) -> Any:
    """Decode the ``--params`` argument."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"--params is not valid JSON: {e}") from e


async def run_call(
    method: str,
    params: Any,
    request_id: Optional[str] = None,
    client_name: Optional[str] = None,
) -> Any:
    """Connect, send a single request and disconnect."""
    client = UnityBridgeClient()
    await client.start(client_name)
    try:
        return await client.send_request(method, params, request_id=request_id)
    finally:
        await client.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_arg_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(
        level=(args.log_level or settings.log_level).upper(),
        log_file=settings.log_file,
    )

    if args.command == "port":
        resolver = EndpointResolver(
            env_var=settings.port_env_var,
            default_port=settings.default_port,
        )
        console.print(resolver.resolve())
        return 0

    try:
        params = parse_params(args.params)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        result = asyncio.run(
            run_call(args.method, params, args.request_id, args.client_name)
        )
    except BridgeError as e:
        logger.error("Request failed", method=args.method, error=e.message)
        error_console.print_json(data=e.to_dict())
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    console.print_json(data=result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
