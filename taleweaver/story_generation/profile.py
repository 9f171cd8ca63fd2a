"""
Structured representation of the child a story is written for.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_INTERESTS = 5
MAX_CONTEXT_LENGTH = 120
_NAME_PATTERN = re.compile(r"^[A-Za-z\s'-]+$")


class AgeRange(str, Enum):
    YOUNG = "4-6"
    MIDDLE = "7-9"
    OLDER = "10-12"

    @classmethod
    def for_age(cls, age: int) -> "AgeRange":
        if age <= 6:
            return cls.YOUNG
        if age <= 9:
            return cls.MIDDLE
        return cls.OLDER


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


@dataclass(frozen=True)
class Pronouns:
    subject: str
    object: str
    possessive: str
    reflexive: str

    def label(self) -> str:
        return f"{self.subject}/{self.object}/{self.possessive}"


_PRONOUNS: dict[Gender | None, Pronouns] = {
    Gender.MALE: Pronouns("he", "him", "his", "himself"),
    Gender.FEMALE: Pronouns("she", "her", "her", "herself"),
    None: Pronouns("they", "them", "their", "themselves"),
}


@dataclass(frozen=True)
class AgeGuidelines:
    """Language guidance handed to the story model for an age range."""

    complexity: str
    reading_level: str
    sentence_length: str
    example_vocabulary: tuple[str, ...]
    avoid_vocabulary: tuple[str, ...]
    max_syllables_per_word: int


AGE_GUIDELINES: dict[AgeRange, AgeGuidelines] = {
    AgeRange.YOUNG: AgeGuidelines(
        complexity="very simple",
        reading_level="early reader, read-aloud picture book",
        sentence_length="short sentences of 5-8 words, one idea per sentence",
        example_vocabulary=("happy", "friend", "big", "soft", "jump", "share", "sleepy", "sparkly"),
        avoid_vocabulary=("magnificent", "consequence", "reluctant", "determined", "anxious"),
        max_syllables_per_word=2,
    ),
    AgeRange.MIDDLE: AgeGuidelines(
        complexity="moderate",
        reading_level="independent early chapter book",
        sentence_length="sentences of 8-12 words with simple joining words",
        example_vocabulary=("curious", "brave", "whisper", "discover", "gentle", "puzzle", "promise", "adventure"),
        avoid_vocabulary=("nevertheless", "ambivalent", "melancholy", "inevitable", "perseverance"),
        max_syllables_per_word=3,
    ),
    AgeRange.OLDER: AgeGuidelines(
        complexity="more complex",
        reading_level="middle-grade chapter book",
        sentence_length="varied sentences of 10-16 words, occasional longer descriptive sentences",
        example_vocabulary=("determined", "hesitate", "compassion", "mysterious", "reluctant", "courageous", "realize", "responsibility"),
        avoid_vocabulary=("juxtaposition", "existential", "ubiquitous", "paradigm", "quintessential"),
        max_syllables_per_word=4,
    ),
}


def _normalize_interests(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()

    if isinstance(value, str):
        parts = [item.strip() for item in value.split(",")]
    elif isinstance(value, Sequence):
        parts = [str(item).strip() for item in value]
    else:
        raise TypeError("interests must be a string or sequence of strings.")

    return tuple(filter(None, parts))


def _coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None

    text = str(value).strip()
    return text or None


class ChildProfile(BaseModel):
    """
    Canonical representation of the child featured in the story.

    Attributes
    ----------
    name:
        Child's name; letters, spaces, hyphens and apostrophes only.
    age_range:
        One of ``4-6``, ``7-9`` or ``10-12``. Drives vocabulary and sentence length.
    gender:
        Optional. Pronouns fall back to they/them when unset.
    interests:
        Up to five interests woven into the story premise.
    context:
        Short free-form note (e.g. "first day at a new school").
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=50)
    age_range: AgeRange
    gender: Gender | None = None
    interests: tuple[str, ...] = ()
    context: str | None = Field(default=None, max_length=MAX_CONTEXT_LENGTH)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not value or not _NAME_PATTERN.match(value):
            raise ValueError("Name must contain only letters, spaces, hyphens, and apostrophes")
        return value

    @field_validator("interests", mode="before")
    @classmethod
    def _check_interests(cls, value: Any) -> tuple[str, ...]:
        interests = _normalize_interests(value)
        if len(interests) > MAX_INTERESTS:
            raise ValueError(f"Maximum {MAX_INTERESTS} interests allowed")
        return interests

    @field_validator("context", mode="before")
    @classmethod
    def _check_context(cls, value: Any) -> str | None:
        return _coerce_optional_str(value)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChildProfile":
        """
        Build a profile from a dict-like object (e.g., parsed JSON/YAML).

        Accepts ``hobbies`` for ``interests`` and an integer ``age`` in place of
        ``age_range``.
        """
        if "name" not in data or not str(data["name"]).strip():
            raise ValueError("Profile data must include a non-empty 'name' field.")

        age_range = data.get("age_range")
        if age_range is None and data.get("age") not in (None, ""):
            try:
                age_range = AgeRange.for_age(int(data["age"]))
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"Expected an integer-compatible value for age, got {data['age']!r}"
                ) from exc

        gender = _coerce_optional_str(data.get("gender") or data.get("sex"))

        return cls(
            name=str(data["name"]).strip(),
            age_range=age_range,
            gender=gender.lower() if gender else None,
            interests=data.get("interests") or data.get("hobbies"),
            context=data.get("context") or data.get("personal_notes"),
        )

    @property
    def pronouns(self) -> Pronouns:
        return _PRONOUNS[self.gender]

    @property
    def guidelines(self) -> AgeGuidelines:
        return AGE_GUIDELINES[self.age_range]

    def context_bullets(self) -> list[str]:
        """
        Produce bullet-friendly lines describing the child, for prompt conditioning.
        """
        bullets: list[str] = [f"Name: {self.name}"]
        if self.gender:
            bullets.append(f"Gender: {self.gender.value}")
        bullets.append(f"Pronouns: {self.pronouns.label()}")
        bullets.append(f"Age range: {self.age_range.value} years old")

        if self.interests:
            bullets.append(f"Interests: {', '.join(self.interests)}")

        if self.context:
            bullets.append(f"Story context: {self.context}")

        return bullets

    def summary_for_prompt(self) -> str:
        """
        Format the profile as a readable block suitable for LLM prompting.
        """
        return "\n".join(f"- {line}" for line in self.context_bullets())
