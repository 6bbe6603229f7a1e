"""
Rubric scorers.

Two interchangeable strategies answer ``score(criterion, content, topic)``:

- ``HeuristicScorer`` maps word counts and a few content checks to 1-3 and
  picks canned feedback. It never calls out and is fully deterministic.
- ``GeminiScorer`` asks Gemini for ``{score, feedback, suggestions}`` under a
  fixed response schema. Transport failures raise ``ExternalServiceError``;
  unusable replies raise ``MalformedResponseError``.

Callers that only want optional commentary wrap the call in ``best_effort``.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, List, Optional, TypeVar

from flask import current_app

from .errors import ExternalServiceError, MalformedResponseError
from .gemini_client import get_gemini_client
from .rubric import (
    CRITERION_DESCRIPTIONS,
    CRITERION_LABELS,
    RubricResult,
    clamp_score,
    count_transitions,
    count_words,
    rubric_text,
)
from .writing_helpers import count_word_bank_hits

if TYPE_CHECKING:
    from .assessment import Draft

T = TypeVar('T')

SHORT_WORDS = 10
COMPLETE_WORDS = {
    'hook': 20,
    'relevantInfo': 50,
    'transitions': 50,
    'conclusion': 25,
}
DEFAULT_COMPLETE_WORDS = 20

# (feedback, suggestions) per criterion and score
HEURISTIC_FEEDBACK = {
    'hook': {
        1: ("Your hook is too short. Add more details!", ["Write at least 15-20 words for this section"]),
        2: ("Nice start! Can you make it even more exciting?", ["Try starting with a question or a surprising fact"]),
        3: ("What a great hook! Readers will want to keep reading.", ["Check that your hook matches your topic"]),
    },
    'relevantInfo': {
        1: ("Your paragraph is too short. Add more facts!", ["Write at least 15-20 words for this section"]),
        2: ("Good facts! Add a few more details.", ["Add more interesting details"]),
        3: ("Great! You shared lots of facts about your topic.", ["Check that every sentence is about your topic"]),
    },
    'transitions': {
        1: ("Your ideas need more words to connect them.", ["Write at least 15-20 words for this section"]),
        2: ("Nice work! Use connecting words to link your ideas.", ["Use words like 'first,' 'next,' and 'also'"]),
        3: ("Your ideas flow smoothly!", ["Try a new connecting word like 'however' or 'for example'"]),
    },
    'conclusion': {
        1: ("Your conclusion is too short. Add more details!", ["Write at least 15-20 words for this section"]),
        2: ("Nice ending! Remind readers what they learned.", ["Tell readers why your topic is important"]),
        3: ("Great conclusion! You wrapped up your ideas.", ["End with a question or interesting thought"]),
    },
}
DEFAULT_FEEDBACK = {
    1: ("Your writing is too short. Add more details!", ["Write at least 15-20 words for this section"]),
    2: ("Nice work! Keep going!", ["Add more interesting details"]),
    3: ("Great! You wrote a lot. Make sure it's all about the topic.", ["Check that every sentence is about your topic"]),
}

# Document-level feedback for the overall assessment (heuristic strategy)
PRESENCE_FEEDBACK = {
    'titleSubtitles': {1: "Add a title", 2: "Good title!"},
    'hook': {1: "Add an attention-grabbing opening", 2: "Nice hook!"},
    'relevantInfo': {1: "Add more information", 2: "Good details!"},
    'transitions': {1: "Use words like 'first,' 'next,' and 'also'", 2: "Use words like 'first,' 'next,' and 'also'"},
    'accuracy': {1: "Write some sentences so we can check them", 2: "Check your spelling and punctuation"},
    'vocabulary': {1: "Write some sentences so we can check them", 2: "Use interesting words"},
}

SCORE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "score": {"type": "INTEGER", "minimum": 1, "maximum": 3},
        "feedback": {"type": "STRING"},
        "suggestions": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["score", "feedback", "suggestions"],
}


class RubricScorer:
    """Scores one rubric criterion at a time."""

    name = 'base'

    def score(self, criterion: str, content: str, topic: str) -> RubricResult:
        raise NotImplementedError

    def score_criterion(self, criterion: str, draft: 'Draft') -> RubricResult:
        """Score a criterion against a whole draft (used by the overall assessment)."""
        return self.score(criterion, draft.text_for(criterion), draft.topic)


class HeuristicScorer(RubricScorer):
    """Word-count and keyword rules; no external calls."""

    name = 'heuristic'

    def score(self, criterion: str, content: str, topic: str) -> RubricResult:
        word_count = count_words(content)
        if word_count < SHORT_WORDS:
            score = 1
        elif word_count >= COMPLETE_WORDS.get(criterion, DEFAULT_COMPLETE_WORDS):
            score = 3
            if criterion == 'transitions' and not count_transitions(content):
                score = 2
        else:
            score = 2

        feedback, suggestions = HEURISTIC_FEEDBACK.get(criterion, DEFAULT_FEEDBACK)[score]
        return RubricResult(score=score, feedback=feedback, suggestions=list(suggestions))

    def score_criterion(self, criterion: str, draft: 'Draft') -> RubricResult:
        rule = getattr(self, f'_presence_{criterion}', None)
        if rule is None:
            return super().score_criterion(criterion, draft)
        score = rule(draft)
        if score == 3:
            feedback = CRITERION_DESCRIPTIONS[criterion][3]
        else:
            feedback = PRESENCE_FEEDBACK[criterion][score]
        return RubricResult(score=score, feedback=feedback)

    @staticmethod
    def _presence_titleSubtitles(draft: 'Draft') -> int:
        title = (draft.title or '').strip()
        if len(title) <= 3:
            return 1
        topic = (draft.topic or '').strip().lower()
        return 3 if topic and topic in title.lower() else 2

    @staticmethod
    def _presence_hook(draft: 'Draft') -> int:
        hook = (draft.hook or '').strip()
        if len(hook) <= 10:
            return 1
        opener = hook.lower()
        if '?' in hook or opener.startswith(('did you know', 'imagine')):
            return 3
        return 2

    @staticmethod
    def _presence_relevantInfo(draft: 'Draft') -> int:
        if not draft.paragraphs:
            return 1
        if len(draft.paragraphs) >= 2 and count_words(draft.body_text) >= 80:
            return 3
        return 2

    @staticmethod
    def _presence_transitions(draft: 'Draft') -> int:
        if not draft.paragraphs:
            return 1
        return 3 if count_transitions(draft.body_text) >= 3 else 2

    @staticmethod
    def _presence_accuracy(draft: 'Draft') -> int:
        return 2 if draft.word_count else 1

    @staticmethod
    def _presence_vocabulary(draft: 'Draft') -> int:
        if not draft.word_count:
            return 1
        return 3 if count_word_bank_hits(draft.document_text, draft.topic) >= 3 else 2


class GeminiScorer(RubricScorer):
    """Delegates scoring to Gemini with a fixed JSON response schema."""

    name = 'gemini'

    def __init__(self, client=None, timeout: Optional[float] = None):
        self._client = client
        self.timeout = timeout

    @property
    def client(self):
        if self._client is None:
            self._client = get_gemini_client()
        return self._client

    def score(self, criterion: str, content: str, topic: str) -> RubricResult:
        prompt = self._build_prompt(criterion, content, topic)
        data = self.client.generate_json_or_raise(
            prompt,
            temperature=0.2,
            response_schema=SCORE_SCHEMA,
            timeout=self.timeout,
        )
        return self._parse_result(data)

    @staticmethod
    def _build_prompt(criterion: str, content: str, topic: str) -> str:
        label = CRITERION_LABELS.get(criterion, criterion)
        return f"""You are a kind writing teacher for students aged 8-11.
Score one part of a student's informational writing using this rubric.

**RUBRIC**
{rubric_text(criterion)}

**TOPIC:** {topic or 'Not given'}
**PART BEING SCORED:** {label}

**STUDENT WRITING:**
{content or '(empty)'}

Return JSON with:
- "score": 1, 2 or 3 using the rubric above
- "feedback": one or two encouraging sentences a child can understand
- "suggestions": up to three short, concrete next steps
"""

    @staticmethod
    def _parse_result(data: Any) -> RubricResult:
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")

        feedback = data.get('feedback')
        feedback = feedback.strip() if isinstance(feedback, str) else ''
        if 'score' not in data and not feedback:
            raise MalformedResponseError("Model reply has neither a score nor feedback")

        raw_suggestions = data.get('suggestions')
        suggestions: List[str] = []
        if isinstance(raw_suggestions, list):
            suggestions = [str(item).strip() for item in raw_suggestions if str(item).strip()]
        elif isinstance(raw_suggestions, str) and raw_suggestions.strip():
            suggestions = [raw_suggestions.strip()]

        return RubricResult(
            score=clamp_score(data.get('score')),
            feedback=feedback,
            suggestions=suggestions[:3],
        )


def best_effort(fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
    """Run an optional scoring call; model failures become None."""
    try:
        return fn(*args, **kwargs)
    except ExternalServiceError as exc:
        current_app.logger.warning("Optional AI feedback unavailable: %s", exc)
        return None


def get_rubric_scorer() -> RubricScorer:
    """Primary scorer selected by SCORER_STRATEGY."""
    strategy = current_app.config.get('SCORER_STRATEGY', 'heuristic')
    if strategy == 'gemini':
        return GeminiScorer()
    if strategy != 'heuristic':
        current_app.logger.warning("Unknown SCORER_STRATEGY %r, using heuristic scoring", strategy)
    return HeuristicScorer()


def get_feedback_scorer() -> Optional[RubricScorer]:
    """Scorer for optional AI commentary, or None when disabled."""
    if not current_app.config.get('AI_FEEDBACK_ENABLED'):
        return None
    return GeminiScorer()
