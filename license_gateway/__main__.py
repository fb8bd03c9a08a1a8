"""Entry point for running the gateway as a module."""

import argparse
import os
import sys

import uvicorn


def main() -> None:
    """Main entry point for the license gateway."""
    parser = argparse.ArgumentParser(
        description="License Gateway - subscription lifecycle, refunds and license checks backed by Stripe"
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
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
        default=os.getenv("CONFIG_PATH", "config/settings.yaml"),
        help="Path to settings.yaml (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--test-mode",
        action="store_true",
        default=False,
        help="Use the TEST_ Stripe key set (same as FORCE_TEST_MODE=true)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=int(os.getenv("WEB_CONCURRENCY", "1")),
        help="Number of uvicorn worker processes (default: 1)",
    )

    args = parser.parse_args()

    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config
    if args.test_mode:
        os.environ["FORCE_TEST_MODE"] = "true"

    if args.log_format == "console":
        print("=" * 60)
        print("License Gateway v0.1.0")
        print("=" * 60)
        print(f"Host: {args.host}")
        print(f"Port: {args.port}")
        print(f"Log Level: {args.log_level}")
        print(f"Config: {args.config}")
        print(f"Stripe mode: {'test (forced)' if args.test_mode else 'from config'}")
        print("=" * 60)

    try:
        uvicorn.run(
            "license_gateway.main:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            workers=args.workers,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"Failed to start gateway: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
