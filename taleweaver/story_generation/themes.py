"""
Moral focus values and their social-emotional learning mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MoralFocus(str, Enum):
    KINDNESS = "kindness"
    HONESTY = "honesty"
    COURAGE = "courage"
    SHARING = "sharing"
    PERSEVERANCE = "perseverance"


class ChoiceQuality(str, Enum):
    GROWTH_ORIENTED = "growth_oriented"
    LESS_IDEAL = "less_ideal"


class SELCompetency(str, Enum):
    SELF_AWARENESS = "self_awareness"
    SELF_MANAGEMENT = "self_management"
    SOCIAL_AWARENESS = "social_awareness"
    RELATIONSHIP_SKILLS = "relationship_skills"
    RESPONSIBLE_DECISION_MAKING = "responsible_decision_making"


class GrowTheme(str, Enum):
    BELONGING = "belonging"
    EMPATHY = "empathy"
    POSITIVE_ACTION = "positive_action"


@dataclass(frozen=True)
class MoralTheme:
    sel_competencies: tuple[SELCompetency, ...]
    grow_themes: tuple[GrowTheme, ...]
    growth_keywords: tuple[str, ...]
    less_ideal_keywords: tuple[str, ...]


MORAL_THEMES: dict[MoralFocus, MoralTheme] = {
    MoralFocus.KINDNESS: MoralTheme(
        sel_competencies=(
            SELCompetency.SOCIAL_AWARENESS,
            SELCompetency.RELATIONSHIP_SKILLS,
            SELCompetency.RESPONSIBLE_DECISION_MAKING,
        ),
        grow_themes=(GrowTheme.EMPATHY, GrowTheme.POSITIVE_ACTION),
        growth_keywords=(
            "help", "share", "include", "care", "comfort",
            "support", "friendly", "generous", "compassionate",
        ),
        less_ideal_keywords=(
            "ignore", "exclude", "keep to yourself", "walk away", "pretend not to see", "avoid",
        ),
    ),
    MoralFocus.HONESTY: MoralTheme(
        sel_competencies=(
            SELCompetency.SELF_AWARENESS,
            SELCompetency.RESPONSIBLE_DECISION_MAKING,
            SELCompetency.RELATIONSHIP_SKILLS,
        ),
        grow_themes=(GrowTheme.POSITIVE_ACTION, GrowTheme.BELONGING),
        growth_keywords=(
            "tell the truth", "admit", "confess", "own up",
            "be truthful", "explain what happened", "take responsibility",
        ),
        less_ideal_keywords=(
            "hide", "fib", "make up a story", "blame someone else", "keep it secret", "pretend",
        ),
    ),
    MoralFocus.COURAGE: MoralTheme(
        sel_competencies=(
            SELCompetency.SELF_MANAGEMENT,
            SELCompetency.RESPONSIBLE_DECISION_MAKING,
            SELCompetency.SELF_AWARENESS,
        ),
        grow_themes=(GrowTheme.POSITIVE_ACTION, GrowTheme.BELONGING),
        growth_keywords=(
            "try", "face", "stand up", "speak up",
            "be brave", "take a chance", "persevere", "challenge yourself",
        ),
        less_ideal_keywords=(
            "give up", "stay quiet", "back down", "run away", "avoid", "let it go", "stay safe",
        ),
    ),
    MoralFocus.SHARING: MoralTheme(
        sel_competencies=(
            SELCompetency.RELATIONSHIP_SKILLS,
            SELCompetency.SOCIAL_AWARENESS,
            SELCompetency.RESPONSIBLE_DECISION_MAKING,
        ),
        grow_themes=(GrowTheme.EMPATHY, GrowTheme.BELONGING, GrowTheme.POSITIVE_ACTION),
        growth_keywords=(
            "share", "take turns", "divide", "offer", "give", "let them have some", "play together",
        ),
        less_ideal_keywords=(
            "keep it all", "hide it", "play alone", "refuse to share", "take it back", "mine only",
        ),
    ),
    MoralFocus.PERSEVERANCE: MoralTheme(
        sel_competencies=(
            SELCompetency.SELF_MANAGEMENT,
            SELCompetency.SELF_AWARENESS,
            SELCompetency.RESPONSIBLE_DECISION_MAKING,
        ),
        grow_themes=(GrowTheme.POSITIVE_ACTION,),
        growth_keywords=(
            "keep trying", "practice", "try again", "dont give up",
            "work harder", "persist", "stick with it",
        ),
        less_ideal_keywords=(
            "quit", "give up", "its too hard", "stop trying", "ask someone else to do it", "walk away",
        ),
    ),
}


def theme_for(moral_focus: MoralFocus | str) -> MoralTheme:
    return MORAL_THEMES[MoralFocus(moral_focus)]
