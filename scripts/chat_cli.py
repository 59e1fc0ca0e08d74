"""Terminal chat view for the AI chatbot server.

Commands:
    /qr <payload>    fold a scanned QR payload into the next message
    /image <path>    stage an image (adds an image-count note to the message)
    /speak           toggle printing replies through the speaker hook
    /refresh         reload the history from the server
    /quit            exit
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from chat_client import ChatAPI, ChatClientError, ChatSession  # noqa: E402
from storage.models import Message  # noqa: E402


def _print_message(m: Message) -> None:
    who = "you" if m.sender == "user" else "ai"
    print(f"[{m.timestamp:%H:%M}] {who}: {m.content}")


def _speak(text: str) -> None:
    print(f"(speaking) {text}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the AI chatbot server.")
    parser.add_argument(
        "--url",
        type=str,
        default=os.environ.get("CHAT_SERVER_URL", "http://127.0.0.1:8000"),
        help="Server base URL (default: http://127.0.0.1:8000)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING)

    with ChatAPI(args.url) as api:
        session = ChatSession(api, speaker=_speak)
        try:
            for m in session.refresh():
                _print_message(m)
        except ChatClientError as e:
            print(f"Could not load history: {e.message}", file=sys.stderr)

        while True:
            try:
                line = input("> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not line:
                continue

            if line == "/quit":
                break
            if line == "/speak":
                print(f"auto-speak {'on' if session.toggle_auto_speak() else 'off'}")
                continue
            if line == "/refresh":
                try:
                    for m in session.refresh():
                        _print_message(m)
                except ChatClientError as e:
                    print(f"Could not load history: {e.message}", file=sys.stderr)
                continue
            if line.startswith("/image "):
                try:
                    session.stage_image_file(Path(line[len("/image "):].strip()))
                except (OSError, ValueError) as e:
                    print(f"Could not stage image: {e}", file=sys.stderr)
                continue
            if line.startswith("/qr "):
                prompt = session.apply_qr_result(line[len("/qr "):])
                print(f"input: {prompt}")
                line = ""

            if line:
                session.set_input(line)
            try:
                result = session.submit()
            except ChatClientError as e:
                print(f"Error: {e.message}", file=sys.stderr)
                continue
            if result is not None:
                _print_message(result[1])


if __name__ == "__main__":
    main()
