"""
CLI example that plays a complete interactive TaleWeaver story in the terminal.

Usage:
    python scripts/run_interactive_story.py \
        --profile child_profile.yaml \
        --moral-focus kindness \
        --minutes 3 \
        --output story_transcript.yaml

Pass ``--choices ABA`` to pick branches automatically, and ``--offline`` to stub
every generation service.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from taleweaver import MoralFocus, Settings, TaleWeaverOrchestrator  # noqa: E402
from taleweaver.common import TaleWeaverError, configure_logging  # noqa: E402
from taleweaver.pipeline import transcript_to_yaml  # noqa: E402
from taleweaver.sessions import BranchStatus  # noqa: E402


class ProgressTracker:
    """
    Provides user-friendly command-line progress updates for a story session.
    """

    def __init__(self, total_checkpoints: int) -> None:
        self._bar: tqdm | None = None
        self._total_checkpoints = total_checkpoints

    def __call__(self, stage: str, payload: Dict[str, Any]) -> None:
        match stage:
            case "profile:ready":
                name = payload.get("name", "the child")
                mode = "interactive" if payload.get("interactive") else "linear"
                self._write(f"[1/3] Profile ready for {name} ({mode} story).")
            case "premise:generating":
                self._write("[2/3] Imagining the story premise...")
            case "premise:generated":
                theme = payload.get("theme")
                self._write("[2/3] Premise ready" + (f" (theme: {theme})." if theme else "."))
            case "segment:synthesizing":
                self._write("[3/3] Narrating and illustrating the opening...")
            case "segment:ready":
                if self._total_checkpoints:
                    self._bar = tqdm(total=self._total_checkpoints, desc="Checkpoints", unit="choice")
            case "checkpoint:advanced":
                if self._bar is not None:
                    self._bar.update(1)
            case "story:complete":
                self.close()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play an interactive TaleWeaver bedtime story.")
    parser.add_argument(
        "--profile",
        required=True,
        help="Path to the child profile YAML/JSON file.",
    )
    parser.add_argument(
        "--moral-focus",
        choices=[focus.value for focus in MoralFocus],
        default=MoralFocus.KINDNESS.value,
        help="Value the story should teach (default: kindness).",
    )
    parser.add_argument(
        "--minutes",
        type=int,
        default=3,
        help="Story length in minutes; also the number of choices (default: 3).",
    )
    parser.add_argument(
        "--linear",
        action="store_true",
        help="Generate a single continuous story without choices.",
    )
    parser.add_argument(
        "--choices",
        default=None,
        help="Pre-selected branch letters, e.g. 'ABA'. Prompts interactively when omitted.",
    )
    parser.add_argument(
        "--voice-id",
        default=None,
        help="Override the narrator voice.",
    )
    parser.add_argument(
        "--branch-timeout",
        type=float,
        default=900.0,
        help="Seconds to wait for each pair of branches (default: 900).",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Stub text, speech and image generation.",
    )
    parser.add_argument(
        "--evaluate",
        action="store_true",
        help="Request the reflection summary once the story is complete.",
    )
    parser.add_argument(
        "--output",
        default="story_transcript.yaml",
        help="Output YAML file for the story transcript.",
    )
    return parser.parse_args()


def load_profile_mapping(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError("Unsupported profile file format. Use YAML or JSON.")

    if not isinstance(data, dict):
        raise ValueError("Profile file must deserialize to a mapping.")
    return data


def ask_for_choice(prompt: str | None, options: Dict[str, str]) -> str:
    if prompt:
        tqdm.write(f"\n{prompt}")
    for letter, text in options.items():
        tqdm.write(f"  {letter}) {text}")
    while True:
        answer = input("Choose A or B: ").strip().upper()
        if answer in options:
            return answer


def main() -> int:
    args = parse_args()

    settings = Settings(disable_generation=True) if args.offline else Settings()
    configure_logging(settings.log_level)

    profile_mapping = load_profile_mapping(Path(args.profile))
    preset_choices = list((args.choices or "").upper())
    orchestrator = TaleWeaverOrchestrator.from_settings(settings)
    tracker = ProgressTracker(0 if args.linear else args.minutes)

    try:
        start = orchestrator.start_story(
            profile_mapping,
            moral_focus=args.moral_focus,
            story_length=args.minutes,
            interactive=not args.linear,
            narrator_voice_id=args.voice_id,
            progress_callback=tracker,
        )
        session_id = start.session.session_id
        tqdm.write(f"\n{start.segment.text}\n")

        session = start.session
        story_complete = start.story_complete
        while not story_complete:
            checkpoint = session.next_checkpoint
            orchestrator.scheduler.wait(session_id, timeout=args.branch_timeout)
            pair = orchestrator.get_branches(session_id, checkpoint)
            if pair is None:
                report = orchestrator.branch_status(session_id)
                if report.status is BranchStatus.FAILED:
                    tqdm.write(f"Branch generation failed: {report.error}")
                    return 1
                if not orchestrator.scheduler.is_pending(session_id):
                    orchestrator.retry_branches(session_id)
                tqdm.write("Branches are still being prepared, waiting...")
                continue

            options = {branch.choice_value.value: branch.choice_text for branch in pair}
            if preset_choices:
                letter = preset_choices.pop(0)
                tqdm.write(f"Choosing {letter}) {options.get(letter, '?')}")
            else:
                letter = ask_for_choice(pair[0].segment.choice_prompt, options)

            step = orchestrator.continue_story(
                session_id, checkpoint, letter, progress_callback=tracker
            )
            tqdm.write(f"\n{step.segment.text}\n")
            session = step.session
            story_complete = step.story_complete

        if args.evaluate and session.interactive:
            evaluation = orchestrator.evaluate_story(session_id)
            tqdm.write(f"Reflection: {evaluation.summary}")

        output_path = Path(args.output)
        output_path.write_text(
            transcript_to_yaml(orchestrator.store.load(session_id)), encoding="utf-8"
        )
        print(f"Saved story transcript to {output_path}")
        return 0
    except TaleWeaverError as exc:
        tqdm.write(f"Story failed: {exc.message}")
        return 1
    finally:
        tracker.close()
        orchestrator.shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
