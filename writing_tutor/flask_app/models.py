"""SQLAlchemy database models for the writing tutor."""
from datetime import datetime, timezone
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite connections for better concurrency."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.execute("PRAGMA busy_timeout=15000;")
        cursor.close()


def utcnow():
    """Get current UTC time."""
    return datetime.now(timezone.utc)


USER_ROLES = ('user', 'admin', 'teacher')
SESSION_STATUSES = ('in_progress', 'completed', 'reviewed')
SECTION_TYPES = ('hook', 'body', 'conclusion')


class User(db.Model):
    """Student, teacher or admin account."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, index=True)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.Enum(*USER_ROLES, name='user_role'), default='user', nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    writing_sessions = db.relationship('WritingSession', back_populates='user', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def is_teacher(self) -> bool:
        return self.role == 'teacher'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
        }


# ============================================================================
# WRITING SESSION MODELS
# ============================================================================

class WritingSession(db.Model):
    """One student's writing project, walked through the five-step wizard."""
    __tablename__ = 'writing_sessions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    topic = db.Column(db.String(255), nullable=True)
    title = db.Column(db.String(255), nullable=True)
    current_step = db.Column(db.Integer, default=1, nullable=False)  # 1 topic .. 5 review
    status = db.Column(db.Enum(*SESSION_STATUSES, name='session_status'), default='in_progress', nullable=False)

    # Introduction
    hook = db.Column(db.Text, nullable=True)
    hook_score = db.Column(db.Integer, nullable=True)
    hook_feedback = db.Column(db.Text, nullable=True)

    # Conclusion
    conclusion = db.Column(db.Text, nullable=True)
    conclusion_score = db.Column(db.Integer, nullable=True)
    conclusion_feedback = db.Column(db.Text, nullable=True)

    # Overall assessment
    # {criterion: {'self': int|None, 'teacher': int|None, 'ai': int|None, 'feedback': str}}
    overall_scores = db.Column(db.JSON, nullable=True)
    total_score = db.Column(db.Integer, nullable=True)
    ai_feedback = db.Column(db.Text, nullable=True)
    strengths_and_growth = db.Column(db.JSON, nullable=True)  # {strengths: [], areas_for_growth: []}
    word_count_status = db.Column(db.String(255), nullable=True)

    # Scaffolding tracking
    low_score_count = db.Column(db.Integer, default=0, nullable=False)
    scaffolding_triggered = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = db.relationship('User', back_populates='writing_sessions')
    paragraphs = db.relationship(
        'BodyParagraph',
        back_populates='session',
        cascade='all, delete-orphan',
        order_by='BodyParagraph.order_index',
    )
    revisions = db.relationship('SectionRevision', back_populates='session', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<WritingSession id={self.id} user={self.user_id} step={self.current_step}>'

    @property
    def ordered_paragraphs(self):
        return sorted(self.paragraphs, key=lambda p: p.order_index)

    @property
    def saved_paragraphs(self):
        return [p for p in self.ordered_paragraphs if p.is_saved]

    def to_dict(self, include_paragraphs: bool = True):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'topic': self.topic,
            'title': self.title,
            'current_step': self.current_step,
            'status': self.status,
            'hook': self.hook,
            'hook_score': self.hook_score,
            'hook_feedback': self.hook_feedback,
            'conclusion': self.conclusion,
            'conclusion_score': self.conclusion_score,
            'conclusion_feedback': self.conclusion_feedback,
            'overall_scores': self.overall_scores,
            'total_score': self.total_score,
            'ai_feedback': self.ai_feedback,
            'strengths_and_growth': self.strengths_and_growth,
            'word_count_status': self.word_count_status,
            'low_score_count': self.low_score_count,
            'scaffolding_triggered': self.scaffolding_triggered,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_paragraphs:
            data['paragraphs'] = [p.to_dict() for p in self.ordered_paragraphs]
        return data


class BodyParagraph(db.Model):
    """A body paragraph; order_index is dense and zero-based within its session."""
    __tablename__ = 'body_paragraphs'

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('writing_sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False)

    topic_sentence = db.Column(db.Text, nullable=True)
    supporting_details = db.Column(db.Text, nullable=True)

    relevant_info_score = db.Column(db.Integer, nullable=True)
    transition_score = db.Column(db.Integer, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    is_saved = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    session = db.relationship('WritingSession', back_populates='paragraphs')

    def __repr__(self):
        return f'<BodyParagraph id={self.id} session={self.session_id} order={self.order_index}>'

    @property
    def has_text(self) -> bool:
        return bool((self.topic_sentence or '').strip() or (self.supporting_details or '').strip())

    @property
    def text(self) -> str:
        return f"{self.topic_sentence or ''} {self.supporting_details or ''}".strip()

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'order_index': self.order_index,
            'topic_sentence': self.topic_sentence,
            'supporting_details': self.supporting_details,
            'relevant_info_score': self.relevant_info_score,
            'transition_score': self.transition_score,
            'feedback': self.feedback,
            'is_saved': self.is_saved,
        }


class SectionRevision(db.Model):
    """Before/after record of a revised section."""
    __tablename__ = 'section_revisions'

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('writing_sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    section_type = db.Column(db.Enum(*SECTION_TYPES, name='section_type'), nullable=False)
    paragraph_id = db.Column(db.Integer, nullable=True)
    previous_content = db.Column(db.Text, nullable=True)
    new_content = db.Column(db.Text, nullable=True)
    previous_score = db.Column(db.Integer, nullable=True)
    new_score = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    session = db.relationship('WritingSession', back_populates='revisions')

    def __repr__(self):
        return f'<SectionRevision session={self.session_id} section={self.section_type}>'

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'section_type': self.section_type,
            'paragraph_id': self.paragraph_id,
            'previous_content': self.previous_content,
            'new_content': self.new_content,
            'previous_score': self.previous_score,
            'new_score': self.new_score,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class SavedSession(db.Model):
    """Anonymous session snapshot stored under a short save code."""
    __tablename__ = 'saved_sessions'

    id = db.Column(db.Integer, primary_key=True)
    save_code = db.Column(db.String(10), unique=True, index=True, nullable=False)
    session_data = db.Column(db.JSON, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f'<SavedSession code={self.save_code}>'

    def to_dict(self):
        return {
            'save_code': self.save_code,
            'session_data': self.session_data,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }
