"""
Writing session state machine.

Steps run Topic(1) -> Hook(2) -> Body(3) -> Conclusion(4) -> Review(5).
Each step operation requires the session to sit exactly on that step and
advances it by one on success, so ``current_step`` never skips or goes back.

Every operation validates and scores before touching the session. A
validation, authorization or required-scoring failure therefore leaves the
stored session exactly as it was.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from flask import current_app

from ..models import BodyParagraph, WritingSession
from .assessment import MAX_WORDS, MIN_WORDS, Draft, OverallAssessment, assess
from .errors import AuthorizationError, ValidationError
from .rubric import (
    MAX_SCORE,
    MIN_SCORE,
    RUBRIC_CRITERIA,
    SECTION_CRITERIA,
    RubricResult,
)
from .rubric_scorer import (
    HeuristicScorer,
    RubricScorer,
    best_effort,
    get_feedback_scorer,
    get_rubric_scorer,
)
from .scaffolding import DEFAULT_THRESHOLD, needs_scaffolding, prompts_for, record_score
from .session_store import SessionStore
from .writing_helpers import get_tips

STEP_TOPIC = 1
STEP_HOOK = 2
STEP_BODY = 3
STEP_CONCLUSION = 4
STEP_REVIEW = 5

STEP_NAMES = {
    STEP_TOPIC: 'topic',
    STEP_HOOK: 'hook',
    STEP_BODY: 'body',
    STEP_CONCLUSION: 'conclusion',
    STEP_REVIEW: 'review',
}


@dataclass
class SectionScore:
    """Outcome of scoring one submitted section."""
    section: str
    results: Dict[str, RubricResult]
    low_score_count: int
    needs_scaffolding: bool
    current_step: int
    ai_feedback: Optional[RubricResult] = None
    revision_id: Optional[int] = None

    @property
    def score(self) -> int:
        """Lowest criterion score for the section."""
        return min(result.score for result in self.results.values())

    @property
    def scaffolding_prompts(self) -> List[str]:
        prompts: List[str] = []
        for result in self.results.values():
            prompts.extend(p for p in result.scaffolding if p not in prompts)
        return prompts

    def to_dict(self) -> Dict[str, Any]:
        first = next(iter(self.results.values()))
        return {
            'section': self.section,
            'score': self.score,
            'feedback': first.feedback,
            'suggestions': first.suggestions,
            'scores': {criterion: result.to_dict() for criterion, result in self.results.items()},
            'low_score_count': self.low_score_count,
            'needs_scaffolding': self.needs_scaffolding,
            'scaffolding_prompts': self.scaffolding_prompts,
            'ai_feedback': self.ai_feedback.to_dict() if self.ai_feedback else None,
            'current_step': self.current_step,
            'revision_id': self.revision_id,
        }


def _clean(value: Optional[str], strip: bool = True) -> str:
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError("Text fields must be strings")
    return value.strip() if strip else value


def _validate_criterion_score(criterion: str, score: Any) -> None:
    if criterion not in RUBRIC_CRITERIA:
        raise ValidationError(f"Unknown rubric criterion: {criterion}")
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"Score must be between {MIN_SCORE} and {MAX_SCORE}")


class WritingSessionEngine:
    """Runs writing sessions through the wizard, scoring each step."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        scorer: Optional[RubricScorer] = None,
        feedback_scorer: Optional[RubricScorer] = None,
        min_words: int = MIN_WORDS,
        max_words: int = MAX_WORDS,
        scaffolding_threshold: int = DEFAULT_THRESHOLD,
    ):
        self.store = store or SessionStore()
        self.scorer = scorer or HeuristicScorer()
        self.feedback_scorer = feedback_scorer
        self.min_words = min_words
        self.max_words = max_words
        self.scaffolding_threshold = scaffolding_threshold

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def create_session(self, user_id: int) -> WritingSession:
        with self._writing():
            session = self.store.create_session(user_id)
        current_app.logger.info("Created writing session %s for user %s", session.id, user_id)
        return session

    def get_session(self, session_id: int, user_id: int) -> WritingSession:
        return self.store.get_session(session_id, user_id)

    def list_sessions(self, user_id: int) -> List[WritingSession]:
        return self.store.list_sessions(user_id)

    def delete_session(self, session_id: int, user_id: int) -> None:
        with self._writing():
            self.store.delete_session(session_id, user_id)
        current_app.logger.info("Deleted writing session %s for user %s", session_id, user_id)

    # ------------------------------------------------------------------
    # Step 1: topic
    # ------------------------------------------------------------------

    def set_topic(self, session: WritingSession, topic: str, title: str) -> WritingSession:
        self._require_step(session, STEP_TOPIC)
        topic, title = _clean(topic), _clean(title)
        if not topic or not title:
            raise ValidationError("Please fill in both topic and title!")

        with self._writing():
            self.store.update_session(session, topic=topic, title=title)
            if not session.paragraphs:
                self.store.add_paragraph(session)
            self._advance(session, STEP_TOPIC)
        return session

    # ------------------------------------------------------------------
    # Step 2: hook
    # ------------------------------------------------------------------

    def save_hook(self, session: WritingSession, hook: str) -> SectionScore:
        self._require_step(session, STEP_HOOK)
        hook = _clean(hook)
        if not hook:
            raise ValidationError("Please write your hook first!")

        results = self._score(session, {'hook': hook})
        ai_feedback = self._ai_feedback('hook', hook, session.topic)

        with self._writing():
            result = results['hook']
            self.store.update_session(session, hook=hook, hook_score=result.score, hook_feedback=result.feedback)
            needed = self._track(session, results)
            self._advance(session, STEP_HOOK)
        return self._section_score('hook', session, results, needed, ai_feedback)

    # ------------------------------------------------------------------
    # Step 3: body paragraphs
    # ------------------------------------------------------------------

    def add_paragraph(self, session: WritingSession, position: Optional[int] = None) -> BodyParagraph:
        self._require_step(session, STEP_BODY)
        if any(p.has_text and not p.is_saved for p in session.paragraphs):
            raise ValidationError("Please save or clear the current paragraph first!")

        with self._writing():
            paragraph = self.store.add_paragraph(session, position)
        return paragraph

    def draft_paragraph(
        self,
        session: WritingSession,
        paragraph_id: int,
        topic_sentence: str,
        supporting_details: str,
    ) -> BodyParagraph:
        """Keep in-progress text without scoring it."""
        self._require_step(session, STEP_BODY)
        paragraph = self.store.get_paragraph(session, paragraph_id)
        topic_sentence = _clean(topic_sentence, strip=False)
        supporting_details = _clean(supporting_details, strip=False)
        with self._writing():
            self.store.update_paragraph(
                paragraph,
                topic_sentence=topic_sentence,
                supporting_details=supporting_details,
                is_saved=False,
            )
        return paragraph

    def clear_paragraph(self, session: WritingSession, paragraph_id: int) -> BodyParagraph:
        self._require_step(session, STEP_BODY)
        paragraph = self.store.get_paragraph(session, paragraph_id)
        if paragraph.is_saved:
            raise ValidationError("Saved paragraphs can be revised or deleted, not cleared")
        with self._writing():
            self.store.update_paragraph(paragraph, topic_sentence='', supporting_details='')
        return paragraph

    def save_paragraph(
        self,
        session: WritingSession,
        paragraph_id: int,
        topic_sentence: str,
        supporting_details: str,
    ) -> SectionScore:
        self._require_step(session, STEP_BODY)
        paragraph = self.store.get_paragraph(session, paragraph_id)
        topic_sentence, supporting_details = _clean(topic_sentence), _clean(supporting_details)
        if not topic_sentence or not supporting_details:
            raise ValidationError("Please write both topic sentence and details!")

        content = f"{topic_sentence} {supporting_details}"
        results = self._score(session, {'relevantInfo': content, 'transitions': content})
        ai_feedback = self._ai_feedback('relevantInfo', content, session.topic)

        with self._writing():
            self.store.update_paragraph(
                paragraph,
                topic_sentence=topic_sentence,
                supporting_details=supporting_details,
                relevant_info_score=results['relevantInfo'].score,
                transition_score=results['transitions'].score,
                feedback=self._join_feedback(results),
                is_saved=True,
            )
            needed = self._track(session, results)
        return self._section_score('body', session, results, needed, ai_feedback)

    def delete_paragraph(self, session: WritingSession, paragraph_id: int) -> None:
        self._require_step(session, STEP_BODY)
        with self._writing():
            self.store.delete_paragraph(session, paragraph_id)

    def move_to_conclusion(self, session: WritingSession) -> WritingSession:
        self._require_step(session, STEP_BODY)
        if not session.saved_paragraphs:
            raise ValidationError("Please write at least one body paragraph!")
        with self._writing():
            self._advance(session, STEP_BODY)
        return session

    # ------------------------------------------------------------------
    # Step 4: conclusion
    # ------------------------------------------------------------------

    def save_conclusion(self, session: WritingSession, conclusion: str) -> SectionScore:
        self._require_step(session, STEP_CONCLUSION)
        conclusion = _clean(conclusion)
        if not conclusion:
            raise ValidationError("Please write your conclusion first!")

        results = self._score(session, {'conclusion': conclusion})
        ai_feedback = self._ai_feedback('conclusion', conclusion, session.topic)

        with self._writing():
            result = results['conclusion']
            self.store.update_session(
                session,
                conclusion=conclusion,
                conclusion_score=result.score,
                conclusion_feedback=result.feedback,
            )
            needed = self._track(session, results)
            self._advance(session, STEP_CONCLUSION)
        return self._section_score('conclusion', session, results, needed, ai_feedback)

    # ------------------------------------------------------------------
    # Step 5: review
    # ------------------------------------------------------------------

    def assess(self, session: WritingSession) -> OverallAssessment:
        """Recompute the overall assessment from stored content and persist it."""
        self._require_step(session, STEP_REVIEW)
        result = assess(Draft.from_session(session), self.scorer, self.min_words, self.max_words)

        overall_scores = self._merged_overall_scores(session.overall_scores)
        for criterion in RUBRIC_CRITERIA:
            overall_scores[criterion]['ai'] = result.scores[criterion]
            overall_scores[criterion]['feedback'] = result.feedback[criterion]
        status = 'reviewed' if self._has_teacher_score(overall_scores) else 'completed'

        with self._writing():
            self.store.update_session(
                session,
                overall_scores=overall_scores,
                total_score=result.total_score,
                ai_feedback=result.overall_feedback,
                strengths_and_growth={
                    'strengths': result.strengths,
                    'areas_for_growth': result.areas_for_growth,
                },
                word_count_status=result.word_count_status,
                status=status,
            )
        current_app.logger.info(
            "Assessed writing session %s: total=%s words=%s penalty=%s",
            session.id,
            result.total_score,
            result.total_word_count,
            result.penalty_applied,
        )
        return result

    def update_self_assessment(self, session: WritingSession, criterion: str, score: int) -> WritingSession:
        _validate_criterion_score(criterion, score)
        self._require_step(session, STEP_REVIEW)
        overall_scores = self._merged_overall_scores(session.overall_scores)
        overall_scores[criterion]['self'] = score
        with self._writing():
            self.store.update_session(session, overall_scores=overall_scores)
        return session

    def update_teacher_score(self, user, session_id: int, criterion: str, score: int) -> WritingSession:
        if user is None or not getattr(user, 'is_teacher', False):
            raise AuthorizationError("Only teachers can update scores")
        _validate_criterion_score(criterion, score)
        session = self.store.get_any_session(session_id)
        self._require_step(session, STEP_REVIEW)

        overall_scores = self._merged_overall_scores(session.overall_scores)
        overall_scores[criterion]['teacher'] = score
        with self._writing():
            self.store.update_session(session, overall_scores=overall_scores, status='reviewed')
        current_app.logger.info(
            "Teacher %s scored %s=%s on session %s", user.id, criterion, score, session.id
        )
        return session

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def revise_section(
        self,
        session: WritingSession,
        section: str,
        content: Optional[str] = None,
        paragraph_id: Optional[int] = None,
        topic_sentence: Optional[str] = None,
        supporting_details: Optional[str] = None,
    ) -> SectionScore:
        """Re-score an already submitted section; the step pointer does not move."""
        if section == 'hook':
            return self._revise_hook(session, content)
        if section == 'body':
            return self._revise_paragraph(session, paragraph_id, topic_sentence, supporting_details)
        if section == 'conclusion':
            return self._revise_conclusion(session, content)
        raise ValidationError(f"Unknown section: {section}")

    def _revise_hook(self, session: WritingSession, content: Optional[str]) -> SectionScore:
        if session.current_step <= STEP_HOOK:
            raise ValidationError("Save your hook before revising it")
        hook = _clean(content)
        if not hook:
            raise ValidationError("Please write your hook first!")

        results = self._score(session, {'hook': hook})
        result = results['hook']
        with self._writing():
            revision = self.store.add_revision(
                session, 'hook', session.hook, hook, session.hook_score, result.score
            )
            self.store.update_session(session, hook=hook, hook_score=result.score, hook_feedback=result.feedback)
            needed = self._track(session, results)
        return self._section_score('hook', session, results, needed, revision_id=revision.id)

    def _revise_paragraph(
        self,
        session: WritingSession,
        paragraph_id: Optional[int],
        topic_sentence: Optional[str],
        supporting_details: Optional[str],
    ) -> SectionScore:
        if session.current_step < STEP_BODY:
            raise ValidationError("Write a body paragraph before revising it")
        if paragraph_id is None:
            raise ValidationError("paragraph_id is required to revise a body paragraph")
        paragraph = self.store.get_paragraph(session, paragraph_id)
        if not paragraph.is_saved:
            raise ValidationError("Save the paragraph before revising it")
        topic_sentence, supporting_details = _clean(topic_sentence), _clean(supporting_details)
        if not topic_sentence or not supporting_details:
            raise ValidationError("Please write both topic sentence and details!")

        content = f"{topic_sentence} {supporting_details}"
        results = self._score(session, {'relevantInfo': content, 'transitions': content})
        previous_score = min(paragraph.relevant_info_score or MAX_SCORE, paragraph.transition_score or MAX_SCORE)
        new_score = min(result.score for result in results.values())

        with self._writing():
            revision = self.store.add_revision(
                session, 'body', paragraph.text, content, previous_score, new_score, paragraph_id=paragraph.id
            )
            self.store.update_paragraph(
                paragraph,
                topic_sentence=topic_sentence,
                supporting_details=supporting_details,
                relevant_info_score=results['relevantInfo'].score,
                transition_score=results['transitions'].score,
                feedback=self._join_feedback(results),
            )
            needed = self._track(session, results)
        return self._section_score('body', session, results, needed, revision_id=revision.id)

    def _revise_conclusion(self, session: WritingSession, content: Optional[str]) -> SectionScore:
        if session.current_step <= STEP_CONCLUSION:
            raise ValidationError("Save your conclusion before revising it")
        conclusion = _clean(content)
        if not conclusion:
            raise ValidationError("Please write your conclusion first!")

        results = self._score(session, {'conclusion': conclusion})
        result = results['conclusion']
        with self._writing():
            revision = self.store.add_revision(
                session, 'conclusion', session.conclusion, conclusion, session.conclusion_score, result.score
            )
            self.store.update_session(
                session,
                conclusion=conclusion,
                conclusion_score=result.score,
                conclusion_feedback=result.feedback,
            )
            needed = self._track(session, results)
        return self._section_score('conclusion', session, results, needed, revision_id=revision.id)

    # ------------------------------------------------------------------
    # Preview ("Check My Score")
    # ------------------------------------------------------------------

    def preview_score(
        self,
        section: str,
        content: str,
        topic: str,
        total_word_count: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Score a section without saving it; no word-count penalty, no tracking."""
        if not isinstance(section, str) or section not in SECTION_CRITERIA:
            raise ValidationError(f"Unknown section: {section}")
        criterion = SECTION_CRITERIA[section][0]
        result = self.scorer.score(criterion, _clean(content), _clean(topic))
        return {
            'score': result.score,
            'feedback': result.feedback,
            'suggestions': result.suggestions,
            'tips': get_tips(section),
            'totalWordCount': total_word_count,
            'minWords': self.min_words,
            'maxWords': self.max_words,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _writing(self):
        try:
            yield
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

    @staticmethod
    def _require_step(session: WritingSession, step: int) -> None:
        if session.current_step != step:
            raise ValidationError(
                f"This session is on the {STEP_NAMES.get(session.current_step, session.current_step)} step, "
                f"not the {STEP_NAMES[step]} step"
            )

    @staticmethod
    def _advance(session: WritingSession, from_step: int) -> None:
        session.current_step = min(from_step + 1, STEP_REVIEW)
        current_app.logger.info(
            "Writing session %s advanced to step %s (%s)",
            session.id,
            session.current_step,
            STEP_NAMES[session.current_step],
        )

    def _score(self, session: WritingSession, contents: Dict[str, str]) -> Dict[str, RubricResult]:
        topic = session.topic or ''
        return {criterion: self.scorer.score(criterion, text, topic) for criterion, text in contents.items()}

    def _track(self, session: WritingSession, results: Dict[str, RubricResult]) -> bool:
        for result in results.values():
            record_score(session, result.score)
        needed = needs_scaffolding(session.low_score_count, self.scaffolding_threshold)
        if needed:
            if not session.scaffolding_triggered:
                current_app.logger.info(
                    "Scaffolding triggered for session %s (low scores: %s)", session.id, session.low_score_count
                )
            session.scaffolding_triggered = True
            for criterion, result in results.items():
                if result.score == 1:
                    result.scaffolding = prompts_for(criterion, session.topic)
        return needed

    def _ai_feedback(self, criterion: str, content: str, topic: Optional[str]) -> Optional[RubricResult]:
        if self.feedback_scorer is None:
            return None
        return best_effort(self.feedback_scorer.score, criterion, content, topic or '')

    @staticmethod
    def _join_feedback(results: Dict[str, RubricResult]) -> str:
        return ' '.join(result.feedback for result in results.values() if result.feedback)

    @staticmethod
    def _merged_overall_scores(existing: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        """Fresh copy of the per-criterion score map with every criterion present."""
        merged: Dict[str, Dict[str, Any]] = {}
        for criterion in RUBRIC_CRITERIA:
            entry = dict((existing or {}).get(criterion) or {})
            merged[criterion] = {
                'self': entry.get('self'),
                'teacher': entry.get('teacher'),
                'ai': entry.get('ai'),
                'feedback': entry.get('feedback', ''),
            }
        return merged

    @staticmethod
    def _has_teacher_score(overall_scores: Dict[str, Dict[str, Any]]) -> bool:
        return any(entry.get('teacher') is not None for entry in overall_scores.values())

    @staticmethod
    def _section_score(
        section: str,
        session: WritingSession,
        results: Dict[str, RubricResult],
        needed: bool,
        ai_feedback: Optional[RubricResult] = None,
        revision_id: Optional[int] = None,
    ) -> SectionScore:
        return SectionScore(
            section=section,
            results=results,
            low_score_count=session.low_score_count,
            needs_scaffolding=needed,
            current_step=session.current_step,
            ai_feedback=ai_feedback,
            revision_id=revision_id,
        )


def get_session_engine() -> WritingSessionEngine:
    """Engine wired from the Flask app config."""
    config = current_app.config
    return WritingSessionEngine(
        store=SessionStore(),
        scorer=get_rubric_scorer(),
        feedback_scorer=get_feedback_scorer(),
        min_words=config.get('MIN_WORDS', MIN_WORDS),
        max_words=config.get('MAX_WORDS', MAX_WORDS),
        scaffolding_threshold=config.get('SCAFFOLDING_THRESHOLD', DEFAULT_THRESHOLD),
    )
