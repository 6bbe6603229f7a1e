"""
Overall assessment of a finished draft.

Scores all six rubric criteria against the complete text, applies the
word-count penalty (every criterion -1, floor 1, when the draft is under
MIN_WORDS), and derives advisory strengths and growth areas. The result is
a pure function of the draft and the scorer, so it can be recomputed at any
time.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .rubric import MIN_SCORE, RUBRIC_CRITERIA, MAX_TOTAL_SCORE, count_words
from .rubric_scorer import RubricScorer

MIN_WORDS = 120
MAX_WORDS = 300


@dataclass
class ParagraphDraft:
    topic_sentence: str = ''
    supporting_details: str = ''

    @property
    def text(self) -> str:
        return f"{self.topic_sentence or ''} {self.supporting_details or ''}".strip()


@dataclass
class Draft:
    """The text of a writing session, detached from storage."""
    topic: str = ''
    title: str = ''
    hook: str = ''
    paragraphs: List[ParagraphDraft] = field(default_factory=list)
    conclusion: str = ''

    @classmethod
    def from_session(cls, session) -> 'Draft':
        """Build a draft from a WritingSession using its saved paragraphs."""
        return cls(
            topic=session.topic or '',
            title=session.title or '',
            hook=session.hook or '',
            paragraphs=[
                ParagraphDraft(p.topic_sentence or '', p.supporting_details or '')
                for p in session.saved_paragraphs
            ],
            conclusion=session.conclusion or '',
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Draft':
        """Build a draft from a client payload (camelCase or snake_case keys)."""
        raw_paragraphs = data.get('bodyParagraphs', data.get('paragraphs')) or []
        paragraphs = []
        for item in raw_paragraphs:
            if not isinstance(item, dict):
                continue
            paragraphs.append(ParagraphDraft(
                topic_sentence=str(item.get('topicSentence', item.get('topic_sentence')) or ''),
                supporting_details=str(item.get('supportingDetails', item.get('supporting_details')) or ''),
            ))
        return cls(
            topic=str(data.get('topic') or ''),
            title=str(data.get('title') or ''),
            hook=str(data.get('hook') or ''),
            paragraphs=paragraphs,
            conclusion=str(data.get('conclusion') or ''),
        )

    @property
    def body_text(self) -> str:
        return ' '.join(p.text for p in self.paragraphs if p.text)

    @property
    def document_text(self) -> str:
        """Hook, body and conclusion; the title is not part of the word count."""
        return ' '.join(part for part in (self.hook, self.body_text, self.conclusion) if part)

    @property
    def word_count(self) -> int:
        fields: List[str] = [self.hook, self.conclusion]
        for paragraph in self.paragraphs:
            fields.extend((paragraph.topic_sentence, paragraph.supporting_details))
        return count_words(*fields)

    def text_for(self, criterion: str) -> str:
        if criterion == 'titleSubtitles':
            return self.title
        if criterion == 'hook':
            return self.hook
        if criterion in ('relevantInfo', 'transitions'):
            return self.body_text
        if criterion == 'conclusion':
            return self.conclusion
        return self.document_text


@dataclass
class OverallAssessment:
    scores: Dict[str, int]
    feedback: Dict[str, str]
    total_score: int
    strengths: List[str]
    areas_for_growth: List[str]
    overall_feedback: str
    total_word_count: int
    word_count_status: str
    penalty_applied: bool = False
    max_score: int = MAX_TOTAL_SCORE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def word_count_status(total: int, min_words: int = MIN_WORDS, max_words: int = MAX_WORDS) -> str:
    if total < min_words:
        return f"Your writing has {total} words. You need at least {min_words} words."
    if total > max_words:
        return f"Your writing has {total} words. Try to keep it under {max_words} words."
    return f"Great job! Your writing has {total} words, which is perfect!"


def apply_word_count_penalty(scores: Dict[str, int]) -> Dict[str, int]:
    """Subtract one from every criterion without dropping below the minimum."""
    return {criterion: max(MIN_SCORE, score - 1) for criterion, score in scores.items()}


def _strengths(draft: Draft, total_words: int) -> List[str]:
    return [
        "You wrote multiple paragraphs!" if len(draft.paragraphs) > 1 else "You started your writing!",
        "You wrote a lot of details!" if total_words > 50 else "Keep writing!",
    ]


def _areas_for_growth(draft: Draft, total_words: int, min_words: int) -> List[str]:
    areas = [
        f"Add more words to reach {min_words} total" if total_words < min_words else "",
        "Add more body paragraphs" if len(draft.paragraphs) < 2 else "",
        "Write a conclusion" if not draft.conclusion.strip() else "",
    ]
    return [area for area in areas if area]


def _overall_feedback(total_score: int) -> str:
    if total_score >= 15:
        return "Amazing work! Your writing is clear, interesting and full of facts!"
    if total_score >= 10:
        return "Great work on your writing! Keep practicing!"
    return "Good start! Use your feedback to make your writing even better."


def assess(
    draft: Draft,
    scorer: RubricScorer,
    min_words: int = MIN_WORDS,
    max_words: int = MAX_WORDS,
    criteria: Optional[Iterable[str]] = None,
) -> OverallAssessment:
    """Score every rubric criterion against the whole draft."""
    criteria = tuple(criteria or RUBRIC_CRITERIA)
    results = {criterion: scorer.score_criterion(criterion, draft) for criterion in criteria}

    scores = {criterion: result.score for criterion, result in results.items()}
    feedback = {criterion: result.feedback for criterion, result in results.items()}

    total_words = draft.word_count
    penalty_applied = total_words < min_words
    if penalty_applied:
        scores = apply_word_count_penalty(scores)

    total_score = sum(scores.values())
    return OverallAssessment(
        scores=scores,
        feedback=feedback,
        total_score=total_score,
        strengths=_strengths(draft, total_words),
        areas_for_growth=_areas_for_growth(draft, total_words, min_words),
        overall_feedback=_overall_feedback(total_score),
        total_word_count=total_words,
        word_count_status=word_count_status(total_words, min_words, max_words),
        penalty_applied=penalty_applied,
    )
