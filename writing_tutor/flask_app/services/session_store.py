"""SQLAlchemy-backed storage for writing sessions, paragraphs and revisions."""
from __future__ import annotations

from typing import List, Optional

from flask import current_app

from ..models import BodyParagraph, SectionRevision, WritingSession, db
from .errors import NotFoundError


class SessionStore:
    """Create/read/update/delete for sessions, scoped to the owning user.

    Mutating helpers only stage changes; callers commit or roll back so a
    whole step is written together.
    """

    def __init__(self, db_session=None):
        self.db_session = db_session or db.session

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, user_id: int) -> WritingSession:
        session = WritingSession(
            user_id=user_id,
            current_step=1,
            status='in_progress',
            low_score_count=0,
            scaffolding_triggered=False,
        )
        self.db_session.add(session)
        self.db_session.flush()
        return session

    def get_session(self, session_id: int, user_id: int) -> WritingSession:
        session = self.db_session.query(WritingSession).filter_by(id=session_id, user_id=user_id).first()
        if session is None:
            raise NotFoundError(f"Writing session {session_id} not found")
        return session

    def get_any_session(self, session_id: int) -> WritingSession:
        """Lookup without the owner check (teacher review)."""
        session = self.db_session.get(WritingSession, session_id)
        if session is None:
            raise NotFoundError(f"Writing session {session_id} not found")
        return session

    def list_sessions(self, user_id: int) -> List[WritingSession]:
        return (
            self.db_session.query(WritingSession)
            .filter_by(user_id=user_id)
            .order_by(WritingSession.updated_at.desc(), WritingSession.id.desc())
            .all()
        )

    def update_session(self, session: WritingSession, **fields) -> WritingSession:
        """Partial-field merge; unknown fields are rejected."""
        for name, value in fields.items():
            if not hasattr(WritingSession, name):
                raise AttributeError(f"WritingSession has no field {name!r}")
            setattr(session, name, value)
        return session

    def delete_session(self, session_id: int, user_id: int) -> None:
        session = self.get_session(session_id, user_id)
        self.db_session.delete(session)

    # ------------------------------------------------------------------
    # Paragraphs
    # ------------------------------------------------------------------

    def add_paragraph(self, session: WritingSession, position: Optional[int] = None) -> BodyParagraph:
        """Insert a blank paragraph at ``position`` (default: append) and re-index."""
        ordered = session.ordered_paragraphs
        if position is None or position > len(ordered):
            position = len(ordered)
        position = max(0, position)

        paragraph = BodyParagraph(order_index=position, topic_sentence='', supporting_details='', is_saved=False)
        ordered.insert(position, paragraph)
        session.paragraphs.append(paragraph)
        self._reindex(ordered)
        self.db_session.flush()
        return paragraph

    def get_paragraph(self, session: WritingSession, paragraph_id: int) -> BodyParagraph:
        for paragraph in session.paragraphs:
            if paragraph.id == paragraph_id:
                return paragraph
        raise NotFoundError(f"Paragraph {paragraph_id} not found in session {session.id}")

    def update_paragraph(self, paragraph: BodyParagraph, **fields) -> BodyParagraph:
        for name, value in fields.items():
            if not hasattr(BodyParagraph, name):
                raise AttributeError(f"BodyParagraph has no field {name!r}")
            setattr(paragraph, name, value)
        return paragraph

    def delete_paragraph(self, session: WritingSession, paragraph_id: int) -> None:
        paragraph = self.get_paragraph(session, paragraph_id)
        session.paragraphs.remove(paragraph)
        self.db_session.delete(paragraph)
        self._reindex(session.ordered_paragraphs)

    @staticmethod
    def _reindex(paragraphs: List[BodyParagraph]) -> None:
        for index, paragraph in enumerate(paragraphs):
            paragraph.order_index = index

    # ------------------------------------------------------------------
    # Revisions
    # ------------------------------------------------------------------

    def add_revision(
        self,
        session: WritingSession,
        section_type: str,
        previous_content: Optional[str],
        new_content: Optional[str],
        previous_score: Optional[int],
        new_score: Optional[int],
        paragraph_id: Optional[int] = None,
    ) -> SectionRevision:
        revision = SectionRevision(
            section_type=section_type,
            paragraph_id=paragraph_id,
            previous_content=previous_content,
            new_content=new_content,
            previous_score=previous_score,
            new_score=new_score,
        )
        session.revisions.append(revision)
        return revision

    def list_revisions(self, session: WritingSession) -> List[SectionRevision]:
        return (
            self.db_session.query(SectionRevision)
            .filter_by(session_id=session.id)
            .order_by(SectionRevision.created_at.desc(), SectionRevision.id.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self) -> None:
        try:
            self.db_session.commit()
        except Exception as exc:
            current_app.logger.error("Failed to commit writing session changes: %s", exc)
            self.db_session.rollback()
            raise

    def rollback(self) -> None:
        self.db_session.rollback()
