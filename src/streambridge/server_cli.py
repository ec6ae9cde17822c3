"""CLI entry point for the StreamBridge API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="streambridge-server",
        description="StreamBridge API server: RTMP to HLS/DASH live transcoding",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    parser.add_argument("--output-root", help="Directory for HLS/DASH output (default: ./streams)")
    parser.add_argument("--encoder", help="Encoder binary to run (default: ffmpeg)")
    args = parser.parse_args(argv)

    # Settings are read at import time, so the environment is set before uvicorn loads the app.
    if args.local:
        os.environ["STREAMBRIDGE_LOCAL_MODE"] = "1"
        os.environ["STREAMBRIDGE_LOCAL"] = "1"
    if args.output_root:
        os.environ["STREAMBRIDGE_OUTPUT_ROOT"] = args.output_root
    if args.encoder:
        os.environ["STREAMBRIDGE_ENCODER_BINARY"] = args.encoder

    import uvicorn

    uvicorn.run("streambridge.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
