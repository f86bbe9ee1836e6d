"""Command-line entry point: record, transcribe, summarize."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
import time

from .app import ScribeApp
from .config import ClientConfig
from .errors import ApiError, DeviceError


def build_parser(config: ClientConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunkscribe",
        description="Record audio in fixed segments, transcribe them, and summarize.",
    )
    parser.add_argument("--server", default=config.server_url, help="Gateway base URL")
    parser.add_argument("--segment-seconds", type=float, default=config.segment_seconds)
    parser.add_argument("--credential", default=None, help="Shared gateway password (prompted if omitted)")
    parser.add_argument("--no-summary", action="store_true", help="Skip the summary step")
    parser.add_argument("--prompt", default=None, help="Custom summary instruction")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to stderr")
    return parser


def _print_status(app: ScribeApp, last: str) -> str:
    status = app.status()
    if status.message != last:
        print(f"[{status.state}] {status.message} ({status.pending} queued)")
    return status.message


def record(app: ScribeApp, credential: str, *, summary: bool, prompt: str | None) -> int:
    try:
        accepted = app.authenticate(credential)
    except ApiError as exc:
        print(f"Gateway unreachable: {exc}", file=sys.stderr)
        return 1
    if not accepted:
        print("Credential rejected by the gateway", file=sys.stderr)
        return 1
    try:
        app.start_recording()
    except DeviceError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print("Recording... press Ctrl-C to stop.")
    last = ""
    try:
        while app.is_recording:
            last = _print_status(app, last)
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    app.stop_recording()

    print("Finishing queued segments...")
    while not app.wait_until_idle(timeout=5):
        last = _print_status(app, last)
        if app.status().state == "auth_required":
            try:
                app.authenticate(getpass.getpass("Credential: "))
            except ApiError as exc:
                print(f"Gateway unreachable: {exc}", file=sys.stderr)

    print("\n--- transcript ---")
    print(app.transcript.text)
    if summary and app.transcript.text:
        try:
            text = app.summarize(prompt)
        except ApiError as exc:
            print(f"Summary failed: {exc}", file=sys.stderr)
            return 1
        print("\n--- summary ---")
        print(text)
    return 0


def main(argv: list[str] | None = None) -> int:
    config = ClientConfig.from_env()
    args = build_parser(config).parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    config.server_url = args.server
    config.segment_seconds = args.segment_seconds
    credential = args.credential or getpass.getpass("Credential: ")
    app = ScribeApp(config)
    try:
        return record(app, credential, summary=not args.no_summary, prompt=args.prompt)
    finally:
        app.close()


if __name__ == "__main__":
    sys.exit(main())
