"""
The six-criterion informational-writing rubric.

Every criterion is scored 1-3, so a complete assessment totals 6-18.
Section scoring (hook, body, conclusion) reuses the same scale; the
conclusion is scored as its own section criterion.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

MIN_SCORE = 1
MAX_SCORE = 3
DEFAULT_SCORE = 2

RUBRIC_CRITERIA = (
    'titleSubtitles',
    'hook',
    'relevantInfo',
    'transitions',
    'accuracy',
    'vocabulary',
)
MAX_TOTAL_SCORE = MAX_SCORE * len(RUBRIC_CRITERIA)

# Criteria scored when a wizard section is submitted
SECTION_CRITERIA = {
    'hook': ('hook',),
    'body': ('relevantInfo', 'transitions'),
    'conclusion': ('conclusion',),
}

CRITERION_LABELS = {
    'titleSubtitles': 'Title & Subtitles',
    'hook': 'Hook',
    'relevantInfo': 'Relevant Information',
    'transitions': 'Transitions',
    'accuracy': 'Accuracy',
    'vocabulary': 'Vocabulary',
    'conclusion': 'Conclusion',
}

CRITERION_DESCRIPTIONS: Dict[str, Dict[int, str]] = {
    'titleSubtitles': {
        3: "Clear, relevant title that tells what the writing is about",
        2: "Title is there but could be better",
        1: "Missing or doesn't match the topic",
    },
    'hook': {
        3: "Grabs attention and makes readers want to read more",
        2: "Starts okay but could be more interesting",
        1: "Doesn't catch the reader's attention",
    },
    'relevantInfo': {
        3: "Lots of good facts and details about the topic",
        2: "Some facts but needs more details",
        1: "Not enough information about the topic",
    },
    'transitions': {
        3: "Ideas flow smoothly with connecting words",
        2: "Some connecting words but could be smoother",
        1: "Ideas feel choppy and disconnected",
    },
    'accuracy': {
        3: "Very few spelling or grammar mistakes",
        2: "Some mistakes but still easy to read",
        1: "Many mistakes that make it hard to read",
    },
    'vocabulary': {
        3: "Uses interesting and varied words",
        2: "Uses basic words, could try more variety",
        1: "Uses very simple or wrong words",
    },
    'conclusion': {
        3: "Sums up the main ideas and leaves the reader thinking",
        2: "Ends the writing but could tie ideas together better",
        1: "Missing or stops suddenly",
    },
}

TRANSITION_WORDS = (
    'first', 'second', 'third', 'next', 'then', 'also', 'because', 'finally',
    'another', 'however', 'in addition', 'for example', 'for instance',
    'after', 'before', 'later', 'so', 'but', 'since', 'in conclusion',
)
_TRANSITION_PATTERN = re.compile(
    r'\b(' + '|'.join(re.escape(w) for w in TRANSITION_WORDS) + r')\b',
    re.IGNORECASE,
)


@dataclass
class RubricResult:
    """Score for one criterion plus the feedback shown to the student."""
    score: int
    feedback: str
    suggestions: List[str] = field(default_factory=list)
    scaffolding: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def clamp_score(value: Any, default: int = DEFAULT_SCORE) -> int:
    """Coerce a model-supplied score into 1-3; unparseable values become the default."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        score = int(round(float(str(value).strip())))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(MIN_SCORE, min(MAX_SCORE, score))


def count_words(*texts: str | None) -> int:
    """Whitespace word count across any number of text fragments."""
    return sum(len(text.split()) for text in texts if text)


def count_transitions(text: str | None) -> int:
    if not text:
        return 0
    return len(_TRANSITION_PATTERN.findall(text))


def rubric_text(criterion: str) -> str:
    """Render a criterion's 3/2/1 descriptions for prompts."""
    descriptions = CRITERION_DESCRIPTIONS.get(criterion, {})
    label = CRITERION_LABELS.get(criterion, criterion)
    lines = [f"{label}:"]
    for score in (3, 2, 1):
        if score in descriptions:
            lines.append(f"  {score} = {descriptions[score]}")
    return "\n".join(lines)
