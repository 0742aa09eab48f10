"""CLI entry point for the Conduit API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="conduit-server",
        description="Conduit API server: webhook ingestion, billing sync and background jobs",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8001, help="Bind port (default: 8001)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database and in-process key/value store, no Redis required",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["CONDUIT_LOCAL_MODE"] = "1"

    import uvicorn

    uvicorn.run("conduit.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
