"""
Evidence storage tests.

Tests cover:
  - LocalEvidenceStorage layout and read-back
  - upload_evidence guards (team membership, media type, size)
  - build_photo_archive: zip layout, best-effort remote fetches, empty archives

Remote photo fetches use an injected fake session; no network traffic.
"""

import io
import zipfile

import pytest
import requests
from werkzeug.datastructures import FileStorage

from cluechase.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from cluechase.integrations.evidence_storage import (
    EvidenceFetcher,
    LocalEvidenceStorage,
    build_photo_archive,
    upload_evidence,
)
from cluechase.services import submission_service, team_service


class _FakeResponse:
    def __init__(self, status_code, content=b""):
        self.status_code = status_code
        self.content = content


class _FakeSession:
    """Serves fixed bodies per URL; unknown URLs raise a connection error."""

    def __init__(self, bodies):
        self.bodies = bodies
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if url not in self.bodies:
            raise requests.ConnectionError(f"cannot reach {url}")
        status, content = self.bodies[url]
        return _FakeResponse(status, content)


def _file(data=b"\xff\xd8fake-jpeg", name="proof.jpg", content_type="image/jpeg"):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=content_type)


@pytest.fixture()
def storage(tmp_path):
    return LocalEvidenceStorage(str(tmp_path), "/uploads")


@pytest.fixture()
def detour_submission(active_game, team):
    """A pending submission for clue 1 (detour, 2 photos)."""
    team_service.manual_advance(team["id"], "gm-1")
    return submission_service.create(active_game["id"], team["id"], 1, {
        "text_proof": "Took the hill",
        "detour_choice": "b",
        "photo_urls": ["https://img.example/a.jpg", "https://img.example/b.png"],
    }, "player-1")


class TestLocalStorage:
    def test_store_layout_and_read_back(self, storage, tmp_path):
        url = storage.store(io.BytesIO(b"abc"), "Holiday Pic.JPG", "image/jpeg", 4, 2)
        assert url.startswith("/uploads/submissions/4/2/")
        assert url.endswith(".jpg")
        assert storage.read(url) == b"abc"

    def test_read_ignores_foreign_and_escaping_urls(self, storage):
        assert storage.read("https://img.example/a.jpg") is None
        assert storage.read("/uploads/../secret.txt") is None


class TestUpload:
    def test_upload_stores_under_current_clue(self, storage, active_game, team):
        result = upload_evidence(storage, active_game["id"], team["id"], _file(), "player-1")
        assert result["url"].startswith(f"/uploads/submissions/{team['id']}/0/")
        assert result["content_type"] == "image/jpeg"
        assert storage.read(result["url"]) == b"\xff\xd8fake-jpeg"

    def test_video_allowed(self, storage, active_game, team):
        result = upload_evidence(
            storage, active_game["id"], team["id"], _file(name="clip.mp4", content_type="video/mp4"), "player-1",
        )
        assert result["url"].endswith(".mp4")

    def test_non_media_rejected(self, storage, active_game, team):
        with pytest.raises(ValidationError):
            upload_evidence(
                storage, active_game["id"], team["id"], _file(name="x.txt", content_type="text/plain"), "player-1",
            )

    def test_too_large_rejected(self, storage, active_game, team):
        with pytest.raises(ValidationError) as exc:
            upload_evidence(
                storage, active_game["id"], team["id"], _file(data=b"x" * 11), "player-1", max_bytes=10,
            )
        assert exc.value.details == {"file": "too_large"}

    def test_missing_file_rejected(self, storage, active_game, team):
        with pytest.raises(ValidationError):
            upload_evidence(storage, active_game["id"], team["id"], None, "player-1")

    def test_only_team_members_upload(self, storage, active_game, team):
        with pytest.raises(AuthorizationError):
            upload_evidence(storage, active_game["id"], team["id"], _file(), "gm-1")


class TestArchive:
    def test_archive_layout(self, storage, active_game, detour_submission):
        fetcher = EvidenceFetcher(session=_FakeSession({
            "https://img.example/a.jpg": (200, b"A"),
            "https://img.example/b.png": (200, b"B"),
        }))
        data, filename = build_photo_archive(storage, active_game["id"], "gm-1", fetcher=fetcher)

        assert filename.startswith("race-photos-") and filename.endswith(".zip")
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = sorted(zf.namelist())
            assert len(names) == 2
            assert all(n.startswith("Red/clue-2-") for n in names)
            assert names[0].endswith("/photo-1.jpg")
            assert names[1].endswith("/photo-2.png")
            assert zf.read(names[0]) == b"A"

    def test_failed_fetches_are_skipped(self, storage, active_game, detour_submission):
        session = _FakeSession({"https://img.example/b.png": (200, b"B")})
        data, _ = build_photo_archive(storage, active_game["id"], "gm-1", fetcher=EvidenceFetcher(session=session))
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert [n.rsplit("/", 1)[1] for n in zf.namelist()] == ["photo-2.png"]
        assert len(session.calls) == 2

    def test_http_error_counts_as_failure(self, storage, active_game, detour_submission):
        session = _FakeSession({
            "https://img.example/a.jpg": (404, b""),
            "https://img.example/b.png": (500, b""),
        })
        with pytest.raises(NotFoundError):
            build_photo_archive(storage, active_game["id"], "gm-1", fetcher=EvidenceFetcher(session=session))

    def test_local_uploads_read_without_http(self, storage, active_game, team):
        team_service.manual_advance(team["id"], "gm-1")
        urls = [
            upload_evidence(storage, active_game["id"], team["id"], _file(data=b"one"), "player-1")["url"],
            upload_evidence(storage, active_game["id"], team["id"], _file(data=b"two"), "player-1")["url"],
        ]
        submission_service.create(active_game["id"], team["id"], 1, {
            "text_proof": "Took the hill", "detour_choice": "a", "photo_urls": urls,
        }, "player-1")
        session = _FakeSession({})
        data, _ = build_photo_archive(storage, active_game["id"], "gm-1", fetcher=EvidenceFetcher(session=session))
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert len(zf.namelist()) == 2
        assert session.calls == []

    def test_no_photos(self, storage, active_game):
        with pytest.raises(NotFoundError):
            build_photo_archive(storage, active_game["id"], "gm-1", fetcher=EvidenceFetcher(session=_FakeSession({})))

    def test_players_cannot_download(self, storage, active_game, detour_submission):
        with pytest.raises(AuthorizationError):
            build_photo_archive(storage, active_game["id"], "player-1")
