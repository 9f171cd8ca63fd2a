"""
Export a stored TaleWeaver session as a YAML transcript.

Usage:
    python scripts/export_session.py \
        --session-id 3f2a... \
        --store-url redis://localhost:6379/0 \
        --output story_transcript.yaml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure project root is on the Python path.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from taleweaver import Settings  # noqa: E402
from taleweaver.common import TaleWeaverError  # noqa: E402
from taleweaver.pipeline import transcript_to_yaml  # noqa: E402
from taleweaver.sessions import SessionStore, backend_from_url  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Dump a stored TaleWeaver session as a YAML transcript."
    )
    parser.add_argument(
        "--session-id",
        required=True,
        help="Identifier returned by /api/story/start.",
    )
    parser.add_argument(
        "--store-url",
        default=None,
        help="Session store URL (default: SESSION_STORE_URL / REDIS_URL).",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Destination YAML file. Prints to stdout when omitted.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    settings = Settings()
    store = SessionStore(
        backend_from_url(args.store_url or settings.session_store_url),
        ttl_seconds=settings.session_ttl_seconds,
    )
    try:
        session = store.load(args.session_id)
    except TaleWeaverError as exc:
        print(exc.message, file=sys.stderr)
        return 1

    transcript = transcript_to_yaml(session)
    if args.output:
        Path(args.output).write_text(transcript, encoding="utf-8")
        print(f"Saved transcript to {args.output}")
    else:
        print(transcript)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
