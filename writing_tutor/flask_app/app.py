"""
Writing Tutor - Flask Application
JSON API for the guided informational-writing wizard, anonymous helpers,
save codes and accounts.
"""
import os

from flask import Flask, request, session, jsonify
from flask_cors import CORS

from .config import config
from .models import db, User, USER_ROLES
from .utils import (
    hash_password,
    verify_password,
    login_required,
    get_current_user,
)
from .services.assessment import Draft, assess
from .services.errors import NotFoundError, ValidationError, WritingTutorError
from .services.rubric_scorer import get_rubric_scorer
from .services.save_codes import expire_snapshot, load_snapshot, purge_expired, save_snapshot
from .services.session_engine import get_session_engine
from .services.writing_helpers import get_tips, get_word_bank


# Initialize Flask app
app = Flask(__name__)
app.config.from_object(config[os.getenv('FLASK_ENV', 'development')])

# Initialize extensions
db.init_app(app)
CORS(app, resources={r"/*": {"origins": app.config['CORS_ALLOWED_ORIGINS']}}, supports_credentials=True)


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _int_field(data: dict, name: str):
    value = data.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name} value")


def _load_owned_session(session_id: int):
    """Resolve the caller's engine and session in one go."""
    engine = get_session_engine()
    user = get_current_user()
    return engine, engine.get_session(session_id, user.id)


def init_database():
    """Create tables and drop expired save codes."""
    with app.app_context():
        db.create_all()
        removed = purge_expired()
        app.logger.info(f"[DATABASE] Initialized successfully ({removed} expired save codes removed)")


# ============================================================================
# AUTHENTICATION
# ============================================================================

@app.route('/register', methods=['POST'])
def register():
    """Create an account and log it in."""
    data = _payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    name = (data.get('name') or '').strip() or None
    role = data.get('role') or 'user'

    # Validation
    if not email or not password:
        return jsonify({'error': 'Email and password are required.'}), 400
    if len(password) < 8:
        return jsonify({'error': 'Password must be at least 8 characters.'}), 400
    if role not in USER_ROLES or role == 'admin':
        return jsonify({'error': 'Invalid role.'}), 400

    # Check if user exists
    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered. Please log in.'}), 409

    user = User(email=email, password_hash=hash_password(password), name=name, role=role)
    db.session.add(user)
    db.session.commit()

    session['user_id'] = user.id
    session['user_email'] = user.email
    session.permanent = True
    app.logger.info(f"Registered user {user.id} ({role})")
    return jsonify({'user': user.to_dict()}), 201


@app.route('/login', methods=['POST'])
def login():
    data = _payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if user and verify_password(password, user.password_hash):
        session['user_id'] = user.id
        session['user_email'] = user.email
        session.permanent = True
        return jsonify({'user': user.to_dict()})
    return jsonify({'error': 'Invalid email or password.'}), 401


@app.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'You have been logged out.'})


@app.route('/api/me')
@login_required
def api_me():
    return jsonify({'user': get_current_user().to_dict()})


# ============================================================================
# WRITING SESSIONS
# ============================================================================

@app.route('/api/sessions', methods=['GET', 'POST'])
@login_required
def api_sessions():
    user = get_current_user()
    engine = get_session_engine()
    if request.method == 'POST':
        writing_session = engine.create_session(user.id)
        return jsonify({'session': writing_session.to_dict()}), 201
    sessions = engine.list_sessions(user.id)
    return jsonify({'sessions': [s.to_dict(include_paragraphs=False) for s in sessions]})


@app.route('/api/sessions/<int:session_id>', methods=['GET', 'DELETE'])
@login_required
def api_session_detail(session_id):
    engine, writing_session = _load_owned_session(session_id)
    if request.method == 'DELETE':
        engine.delete_session(session_id, writing_session.user_id)
        return jsonify({'message': 'Session deleted.'})
    return jsonify({'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/topic', methods=['POST'])
@login_required
def api_set_topic(session_id):
    engine, writing_session = _load_owned_session(session_id)
    data = _payload()
    engine.set_topic(writing_session, data.get('topic'), data.get('title'))
    return jsonify({'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/hook', methods=['POST'])
@login_required
def api_save_hook(session_id):
    engine, writing_session = _load_owned_session(session_id)
    result = engine.save_hook(writing_session, _payload().get('hook'))
    return jsonify({'result': result.to_dict(), 'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/paragraphs', methods=['POST'])
@login_required
def api_add_paragraph(session_id):
    engine, writing_session = _load_owned_session(session_id)
    paragraph = engine.add_paragraph(writing_session, _int_field(_payload(), 'position'))
    return jsonify({'paragraph': paragraph.to_dict(), 'session': writing_session.to_dict()}), 201


@app.route('/api/sessions/<int:session_id>/paragraphs/<int:paragraph_id>', methods=['PUT', 'DELETE'])
@login_required
def api_paragraph_detail(session_id, paragraph_id):
    engine, writing_session = _load_owned_session(session_id)
    if request.method == 'DELETE':
        engine.delete_paragraph(writing_session, paragraph_id)
        return jsonify({'session': writing_session.to_dict()})

    data = _payload()
    result = engine.save_paragraph(
        writing_session,
        paragraph_id,
        data.get('topic_sentence'),
        data.get('supporting_details'),
    )
    return jsonify({'result': result.to_dict(), 'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/paragraphs/<int:paragraph_id>/draft', methods=['POST'])
@login_required
def api_draft_paragraph(session_id, paragraph_id):
    engine, writing_session = _load_owned_session(session_id)
    data = _payload()
    paragraph = engine.draft_paragraph(
        writing_session,
        paragraph_id,
        data.get('topic_sentence'),
        data.get('supporting_details'),
    )
    return jsonify({'paragraph': paragraph.to_dict()})


@app.route('/api/sessions/<int:session_id>/paragraphs/<int:paragraph_id>/clear', methods=['POST'])
@login_required
def api_clear_paragraph(session_id, paragraph_id):
    engine, writing_session = _load_owned_session(session_id)
    paragraph = engine.clear_paragraph(writing_session, paragraph_id)
    return jsonify({'paragraph': paragraph.to_dict()})


@app.route('/api/sessions/<int:session_id>/advance', methods=['POST'])
@login_required
def api_move_to_conclusion(session_id):
    engine, writing_session = _load_owned_session(session_id)
    engine.move_to_conclusion(writing_session)
    return jsonify({'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/conclusion', methods=['POST'])
@login_required
def api_save_conclusion(session_id):
    engine, writing_session = _load_owned_session(session_id)
    result = engine.save_conclusion(writing_session, _payload().get('conclusion'))
    return jsonify({'result': result.to_dict(), 'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/assessment', methods=['POST'])
@login_required
def api_assess_session(session_id):
    engine, writing_session = _load_owned_session(session_id)
    result = engine.assess(writing_session)
    return jsonify({'assessment': result.to_dict(), 'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/revise', methods=['POST'])
@login_required
def api_revise_section(session_id):
    engine, writing_session = _load_owned_session(session_id)
    data = _payload()
    result = engine.revise_section(
        writing_session,
        data.get('section'),
        content=data.get('content'),
        paragraph_id=_int_field(data, 'paragraph_id'),
        topic_sentence=data.get('topic_sentence'),
        supporting_details=data.get('supporting_details'),
    )
    return jsonify({'result': result.to_dict(), 'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/revisions')
@login_required
def api_list_revisions(session_id):
    engine, writing_session = _load_owned_session(session_id)
    revisions = engine.store.list_revisions(writing_session)
    return jsonify({'revisions': [r.to_dict() for r in revisions]})


@app.route('/api/sessions/<int:session_id>/self-assessment', methods=['POST'])
@login_required
def api_self_assessment(session_id):
    engine, writing_session = _load_owned_session(session_id)
    data = _payload()
    engine.update_self_assessment(writing_session, data.get('criterion'), data.get('score'))
    return jsonify({'session': writing_session.to_dict()})


@app.route('/api/sessions/<int:session_id>/teacher-score', methods=['POST'])
@login_required
def api_teacher_score(session_id):
    """Teachers may score any student's session; the engine checks the role."""
    engine = get_session_engine()
    data = _payload()
    writing_session = engine.update_teacher_score(
        get_current_user(),
        session_id,
        data.get('criterion'),
        data.get('score'),
    )
    return jsonify({'session': writing_session.to_dict()})


# ============================================================================
# ANONYMOUS HELPERS
# ============================================================================

@app.route('/api/preview-score', methods=['POST'])
def api_preview_score():
    """'Check My Score': score a section without saving anything."""
    data = _payload()
    result = get_session_engine().preview_score(
        data.get('section'),
        data.get('content'),
        data.get('topic'),
        _int_field(data, 'totalWordCount'),
    )
    return jsonify(result)


@app.route('/api/help')
def api_help():
    section = request.args.get('section', 'body')
    return jsonify({'section': section, 'tips': get_tips(section)})


@app.route('/api/word-bank')
def api_word_bank():
    topic = request.args.get('topic', '')
    return jsonify({'topic': topic, 'words': get_word_bank(topic)})


@app.route('/api/assessment', methods=['POST'])
def api_assess_draft():
    """Overall assessment of a client-held draft."""
    data = _payload()
    draft = Draft.from_dict(data)
    if not draft.topic:
        raise ValidationError("Please fill in both topic and title!")
    result = assess(
        draft,
        get_rubric_scorer(),
        app.config['MIN_WORDS'],
        app.config['MAX_WORDS'],
    )
    return jsonify({'assessment': result.to_dict()})


@app.route('/api/saves', methods=['POST'])
def api_create_save():
    saved = save_snapshot(_payload().get('session_data'))
    return jsonify(saved.to_dict()), 201


@app.route('/api/saves/<code>', methods=['GET', 'DELETE'])
def api_save_detail(code):
    if request.method == 'DELETE':
        expire_snapshot(code)
        return jsonify({'message': 'Save code removed.'})
    return jsonify(load_snapshot(code).to_dict())


@app.route('/healthz')
def healthz():
    return jsonify({'status': 'ok'})


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.errorhandler(WritingTutorError)
def handle_writing_tutor_error(error):
    db.session.rollback()
    if error.status_code >= 500:
        app.logger.error(f"{error.__class__.__name__} on {request.path}: {error.message}")
    else:
        app.logger.info(f"{error.__class__.__name__} on {request.path}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(404)
def not_found(error):
    """404 error handler."""
    return jsonify(NotFoundError('Resource not found').to_dict()), 404


@app.errorhandler(500)
def internal_error(error):
    """500 error handler."""
    db.session.rollback()
    return jsonify({'error': 'Internal server error', 'kind': 'WritingTutorError'}), 500


# ============================================================================
# INITIALIZATION
# ============================================================================

if __name__ == '__main__':
    init_database()
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 1111)), debug=True)
