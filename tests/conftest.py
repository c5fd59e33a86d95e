"""
Shared pytest fixtures for the ClueChase test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - as_user: header factory for X-User-Id identity
    - sequence: a three-clue sequence (route-info, detour w/ 2 photos, road-block)
    - game / team / player: a ready-to-play setup built through the services
"""

import pytest

from cluechase import create_app
from cluechase.integrations.evidence_storage import LocalEvidenceStorage
from cluechase.models import db as _db
from cluechase.services import game_service, team_service

GM = "gm-1"
PLAYER = "player-1"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    upload_root = str(tmp_path_factory.mktemp("uploads"))
    application.config["UPLOAD_FOLDER"] = upload_root
    application.extensions["evidence_storage"] = LocalEvidenceStorage(upload_root, "/uploads")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def as_user():
    """Return request headers identifying the given user."""
    def _headers(user_id):
        return {"X-User-Id": user_id}
    return _headers


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def sequence():
    return [
        {
            "type": "route-info",
            "title": "Start at the fountain",
            "content": ["Find the fountain in the main square.", "Photograph nothing yet."],
            "required_photos": 0,
        },
        {
            "type": "detour",
            "title": "River or hill",
            "option_a": {"title": "River", "description": "Cross the footbridge."},
            "option_b": {"title": "Hill", "description": "Climb to the lookout."},
            "required_photos": 2,
        },
        {
            "type": "road-block",
            "title": "Who is the climber?",
            "question": "Who will climb the wall?",
            "task": "Ring the bell at the top.",
            "required_photos": 0,
        },
    ]


@pytest.fixture()
def game(sequence):
    """A game in setup with a three-clue sequence and GM as its game master."""
    created = game_service.create_game("Summer Hunt", "ABC123", GM)
    return game_service.set_clue_sequence(created["id"], sequence, GM)


@pytest.fixture()
def team(game):
    return team_service.create_team(game["id"], "Red", GM)


@pytest.fixture()
def player(game, team):
    """PLAYER joined by code and bound to team Red."""
    joined = game_service.join_game(game["code"], PLAYER)
    return team_service.assign_member(joined["member"]["id"], team["id"], GM)


@pytest.fixture()
def active_game(game, team, player):
    return game_service.set_status(game["id"], "active", GM)
