"""
YAML transcripts of story sessions.
"""

from __future__ import annotations

from typing import Any

import yaml

from taleweaver.sessions import Session
from taleweaver.story_generation import segment_id


def build_transcript(session: Session) -> dict[str, Any]:
    """
    Summarize a session as the path actually read plus the branches not taken.
    """
    path: list[dict[str, Any]] = []
    for checkpoint in range(session.current_checkpoint + 1):
        letter = session.chosen_path[checkpoint - 1] if checkpoint else None
        segment = session.get_segment(segment_id(checkpoint, letter))
        if segment is None:
            continue
        entry: dict[str, Any] = {
            "checkpoint": checkpoint,
            "segment_id": segment.id,
            "text": segment.text,
            "audio_url": segment.audio_url,
            "image_url": segment.image_url,
        }
        if letter is not None:
            entry["choice"] = letter.value
            entry["choice_text"] = segment.choice_text
            entry["choice_quality"] = segment.choice_quality.value if segment.choice_quality else None
        path.append(entry)

    read_ids = {entry["segment_id"] for entry in path}
    return {
        "session_id": session.session_id,
        "child": session.child.model_dump(mode="json"),
        "moral_focus": session.moral_focus.value,
        "story_length_minutes": session.story_length,
        "interactive": session.interactive,
        "story_prompt": session.story_prompt,
        "progress": {
            "current_checkpoint": session.current_checkpoint,
            "total_checkpoints": session.total_checkpoints,
            "complete": session.is_complete,
            "branch_generation": session.branch_generation.status.value,
        },
        "path": path,
        "unchosen_segments": [
            {"segment_id": segment.id, "choice_text": segment.choice_text}
            for segment in session.segments
            if segment.id not in read_ids
        ],
        "evaluation": session.evaluation.model_dump(mode="json") if session.evaluation else None,
    }


def transcript_to_yaml(session: Session) -> str:
    return yaml.safe_dump(build_transcript(session), sort_keys=False, allow_unicode=True)
