#!/usr/bin/env python3
"""
Verse Recall - Flask JSON API
Thin HTTP layer over the verse_recall scoring, scheduling and session core.
"""

import argparse
import logging
from functools import wraps
from typing import Any, Callable, Optional

from flask import Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from verse_recall import config, db
from verse_recall.errors import NotFoundError, ValidationError
from verse_recall.hints import generate_hint
from verse_recall.scoring import calculate_score, categorize_score
from verse_recall.session import generate_daily_session
from verse_recall.validation import (
    MAX_VERSE,
    MIN_VERSE,
    require_hint_level,
    require_input_text,
)

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'


@app.before_request
def initialize_app() -> None:
    """Initialize the database if needed."""
    if not hasattr(app, '_database_initialized'):
        if not db.is_db_initialized():
            db.init_db()
            logger.info("Database initialized on startup")
        setattr(app, '_database_initialized', True)


@app.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError) -> Any:
    return jsonify({'error': str(e)}), 400


@app.errorhandler(NotFoundError)
def handle_not_found(e: NotFoundError) -> Any:
    return jsonify({'error': str(e)}), 404


def current_user_id() -> Optional[str]:
    return session.get('user_id')


def require_user(view: Callable[..., Any]) -> Callable[..., Any]:
    """Reject requests without an identity cookie."""
    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if not current_user_id():
            return jsonify({'error': 'Unauthorized'}), 401
        return view(*args, **kwargs)
    return wrapper


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@app.route('/api/auth', methods=['POST'])
def api_auth() -> Any:
    """Create an anonymous user on first visit and remember it in the session cookie."""
    user_id = current_user_id()
    if user_id and db.get_user(user_id):
        return jsonify({'userId': user_id})

    data = request.get_json(silent=True) or {}
    user_id = db.create_user(data.get('name'), data.get('translation'))
    session['user_id'] = user_id
    session.permanent = True
    return jsonify({'userId': user_id})


@app.route('/api/auth/logout', methods=['POST'])
def api_logout() -> Any:
    session.pop('user_id', None)
    return jsonify({'success': True})


@app.route('/api/user', methods=['GET'])
@require_user
def api_get_user() -> Any:
    user = db.get_user(current_user_id())
    if not user:
        raise NotFoundError("User not found")
    return jsonify(user)


@app.route('/api/user', methods=['PATCH'])
@require_user
def api_update_user() -> Any:
    data = _json_body()
    translation = data.get('translation')
    if translation:
        return jsonify(db.update_user_translation(current_user_id(), translation))
    return api_get_user()


@app.route('/api/verses')
def api_verses() -> Any:
    return jsonify(db.get_verses(request.args.get('translation')))


@app.route('/api/phrases')
def api_phrases() -> Any:
    verse_number = request.args.get('verseNumber', type=int)
    translation = request.args.get('translation')
    return jsonify(db.get_phrases(translation, verse_number))


@app.route('/api/session/today')
@require_user
def api_session_today() -> Any:
    translation = db.get_user_translation(current_user_id())
    daily = generate_daily_session(current_user_id(), translation)
    return jsonify({**daily.to_dict(), 'translation': translation})


@app.route('/api/review', methods=['POST'])
@require_user
def api_review() -> Any:
    data = _json_body()
    result = db.review_phrase(
        current_user_id(),
        data.get('phraseId'),
        data.get('inputText'),
        data.get('selfRating'),
        data.get('durationMs', 0),
    )
    return jsonify(result)


@app.route('/api/run', methods=['GET'])
@require_user
def api_run_phrases() -> Any:
    translation = db.get_user_translation(current_user_id())
    verse_start = request.args.get('verseStart', MIN_VERSE, type=int)
    verse_end = request.args.get('verseEnd', MAX_VERSE, type=int)
    phrases = db.get_phrases_in_range(verse_start, verse_end, translation)
    return jsonify({
        'phrases': [
            {'phraseId': p['id'], 'phraseText': p['phrase_text'], 'verseNumber': p['verse_number']}
            for p in phrases
        ],
        'combinedText': ' '.join(p['phrase_text'] for p in phrases),
        'verseStart': verse_start,
        'verseEnd': verse_end,
        'translation': translation,
    })


@app.route('/api/run', methods=['POST'])
@require_user
def api_run_submit() -> Any:
    data = _json_body()
    result = db.record_run(
        current_user_id(),
        data.get('verseStart'),
        data.get('verseEnd'),
        data.get('hintLevel', 0),
        data.get('inputText'),
        data.get('durationMs', 0),
    )
    return jsonify(result)


@app.route('/api/progress')
@require_user
def api_progress() -> Any:
    return jsonify(db.get_progress(current_user_id()))


@app.route('/api/score', methods=['POST'])
def api_score() -> Any:
    """Score arbitrary text without touching review state."""
    data = _json_body()
    input_text = data.get('inputText', '')
    expected = data.get('expected', '')
    if not isinstance(input_text, str) or not isinstance(expected, str):
        raise ValidationError("inputText and expected must be strings")
    for text in (input_text, expected):
        if text:
            require_input_text(text)
    result = calculate_score(input_text, expected)
    return jsonify({**result.to_dict(), 'category': categorize_score(result.score)})


@app.route('/api/hint', methods=['POST'])
def api_hint() -> Any:
    data = _json_body()
    text = data.get('text', '')
    if not isinstance(text, str):
        raise ValidationError("text must be a string")
    level = require_hint_level(data.get('level', 0))
    return jsonify({'hint': generate_hint(text, level), 'level': level})


@app.errorhandler(Exception)
def handle_unexpected(e: Exception) -> Any:
    if isinstance(e, HTTPException):
        return jsonify({'error': e.description}), e.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({'error': 'Internal server error'}), 500


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Verse Recall API')
    parser.add_argument('--host', default='127.0.0.1', help='Host IP to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    args = parser.parse_args()

    debug = args.debug or config.DEBUG_MODE
    config.configure_logging(debug)

    if not db.is_db_initialized():
        db.init_db()
        logger.info("Database initialized")

    logger.info("Starting server on http://%s:%d", args.host, args.port)
    app.run(debug=debug, host=args.host, port=args.port)
