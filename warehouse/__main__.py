"""Command line entry point.

    python -m warehouse emulator [--host HOST] [--port PORT]
    python -m warehouse verify RECEIPT_FILE [--product-id ID]
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from warehouse import __version__


def _run_emulator(args: argparse.Namespace) -> int:
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["WAREHOUSE_CONFIG"] = args.config

    if args.log_format == "console":
        print("=" * 60)
        print(f"Receipt Validation Emulator v{__version__}")
        print("=" * 60)
        print(f"Host: {args.host}")
        print(f"Port: {args.port}")
        print(f"Config: {args.config}")
        print(f"Sandbox:    http://{args.host}:{args.port}/sandbox/verifyReceipt")
        print(f"Production: http://{args.host}:{args.port}/production/verifyReceipt")
        print("=" * 60)

    try:
        uvicorn.run(
            "warehouse.emulator.main:create_app_from_env",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    except Exception as e:
        print(f"Failed to start emulator: {e}", file=sys.stderr)
        return 1
    return 0


async def _verify(receipt_path: Path, product_id: Optional[str], config_path: str) -> int:
    from warehouse.config import Config
    from warehouse.services.receipt_validator import ReceiptValidator

    config = Config(config_path)
    validator = ReceiptValidator(config.validation)
    try:
        result = await validator.validate(receipt_path.read_bytes(), product_id=product_id)
    finally:
        await validator.aclose()

    if result.is_success:
        output = {"status": "valid", "receipt": result.receipt.model_dump(mode="json")}
    else:
        output = {
            "status": "invalid",
            "error_type": type(result.error).__name__,
            "error_code": result.error.code,
            "message": result.error.description,
        }
    print(json.dumps(output, indent=2))
    return 0 if result.is_success else 1


def _run_verify(args: argparse.Namespace) -> int:
    from warehouse.exceptions import ConfigurationError
    from warehouse.logging_config import configure_logging

    configure_logging(log_level=args.log_level, json_format=args.log_format == "json")
    receipt_path = Path(args.receipt)
    if not receipt_path.is_file():
        print(f"Receipt file not found: {receipt_path}", file=sys.stderr)
        return 2
    try:
        return asyncio.run(_verify(receipt_path, args.product_id, args.config))
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="warehouse",
        description="Warehouse - in-app purchase receipt validation and entitlements",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="Log output format (default: json)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("WAREHOUSE_CONFIG", "config/warehouse.yaml"),
        help="Path to warehouse.yaml (default: config/warehouse.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    emulator = subparsers.add_parser("emulator", help="Run the local receipt validation emulator")
    emulator.add_argument(
        "--host",
        default=os.getenv("HOST", "127.0.0.1"),
        help="Host to bind to (default: 127.0.0.1)",
    )
    emulator.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
    )
    emulator.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development (default: false)",
    )
    emulator.set_defaults(handler=_run_emulator)

    verify = subparsers.add_parser("verify", help="Validate a receipt file once")
    verify.add_argument("receipt", help="Path to the raw receipt file")
    verify.add_argument("--product-id", default=None, help="Require a purchase of this product")
    verify.set_defaults(handler=_run_verify)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
