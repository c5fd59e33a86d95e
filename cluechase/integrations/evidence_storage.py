"""Evidence storage: photo/video uploads and the game-master photo archive.

Storage backends use the Strategy adapter pattern:
    - LocalEvidenceStorage : files under UPLOAD_FOLDER, served from UPLOAD_BASE_URL

Every backend accepts a file plus its owning (team, clue) pair and returns
a URL that a Submission stores in ``photo_urls``.  The core never mutates
stored files after upload.

Remote photo URLs (anything the active backend does not own) are fetched
through EvidenceFetcher, one at a time.  A failed fetch is logged and
skipped; the archive is built from whatever could be retrieved.

The Flask app factory puts the configured backend on
``app.extensions["evidence_storage"]``; blueprints read it from there.
"""

from __future__ import annotations

import io
import logging
import os
import posixpath
import uuid
import zipfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import BinaryIO
from urllib.parse import urlparse

import requests
from werkzeug.utils import secure_filename

from cluechase.core.exceptions import NotFoundError, ValidationError
from cluechase.models.submission import Submission
from cluechase.models.team import Team
from cluechase.services import authorization
from cluechase.services.team_service import get_team_or_404

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 15          # seconds per photo fetch
_ALLOWED_MEDIA_PREFIXES = ("image/", "video/")
_DEFAULT_EXTENSION = "jpg"


# ── Storage adapters (Strategy pattern) ──────────────────────────────────────


class BaseEvidenceStorage(ABC):
    """Abstract storage backend for submission evidence."""

    @abstractmethod
    def store(
        self,
        fileobj: BinaryIO,
        filename: str,
        content_type: str,
        team_id: int,
        clue_index: int,
    ) -> str:
        """Persist the file and return a retrievable URL."""

    def read(self, url: str) -> bytes | None:
        """Return the bytes behind a URL this backend owns, or None."""
        return None


class LocalEvidenceStorage(BaseEvidenceStorage):
    """Stores files on the local filesystem.

    Layout: ``<root>/submissions/<team_id>/<clue_index>/<uuid>.<ext>``,
    served as ``<base_url>/submissions/...``.
    """

    def __init__(self, root: str, base_url: str = "/uploads") -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    def store(self, fileobj, filename, content_type, team_id, clue_index) -> str:
        ext = _extension(filename)
        relative = posixpath.join(
            "submissions", str(team_id), str(clue_index), f"{uuid.uuid4().hex}.{ext}",
        )
        target = os.path.join(self.root, *relative.split("/"))
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as fh:
            fh.write(fileobj.read())
        return f"{self.base_url}/{relative}"

    def read(self, url: str) -> bytes | None:
        path = urlparse(url).path
        prefix = self.base_url + "/"
        if not path.startswith(prefix):
            return None
        relative = posixpath.normpath(path[len(prefix):])
        if relative.startswith(".."):
            return None
        target = os.path.join(self.root, *relative.split("/"))
        if not os.path.isfile(target):
            return None
        with open(target, "rb") as fh:
            return fh.read()


def _extension(filename: str | None) -> str:
    ext = os.path.splitext(secure_filename(filename or ""))[1].lstrip(".").lower()
    return ext or _DEFAULT_EXTENSION


# ── Remote fetch ─────────────────────────────────────────────────────────────


class EvidenceFetcher:
    """Downloads remote photo URLs for the archive.

    Inject a pre-configured ``requests.Session`` in tests to avoid real
    network traffic.
    """

    def __init__(self, session: requests.Session | None = None, timeout: int = _DEFAULT_TIMEOUT) -> None:
        self._session = session
        self.timeout = timeout

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def fetch(self, url: str) -> bytes | None:
        """Return the response body, or None when the photo cannot be retrieved."""
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Photo fetch failed: %s (%s)", url, exc)
            return None
        if resp.status_code != 200:
            logger.warning("Photo fetch failed: %s (HTTP %s)", url, resp.status_code)
            return None
        return resp.content


# ── Operations ───────────────────────────────────────────────────────────────


def upload_evidence(
    storage: BaseEvidenceStorage,
    game_id: int,
    team_id: int,
    upload,
    requester_id: str,
    *,
    clue_index: int | None = None,
    max_bytes: int = 10 * 1024 * 1024,
) -> dict:
    """Store one uploaded photo or video for the caller's team.

    ``upload`` is a Werkzeug FileStorage.  ``clue_index`` defaults to the
    team's current clue.

    Raises:
        NotFoundError: team missing or not in this game.
        AuthorizationError: caller is not bound to the team.
        ValidationError: no file, wrong media type, or too large.
    """
    authorization.get_game_or_404(game_id)
    team = get_team_or_404(team_id)
    if team.game_id != game_id:
        raise NotFoundError("Team", team_id)
    authorization.require_team_member(team, requester_id, "upload_evidence")

    if upload is None or not upload.filename:
        raise ValidationError("No file provided", details={"file": "required"})
    content_type = (upload.mimetype or "").lower()
    if not content_type.startswith(_ALLOWED_MEDIA_PREFIXES):
        raise ValidationError(
            "Invalid file type. Only images and videos are allowed.",
            details={"file": "invalid_type"},
        )

    data = upload.stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
            details={"file": "too_large"},
        )

    index = team.current_clue_index if clue_index is None else clue_index
    url = storage.store(io.BytesIO(data), upload.filename, content_type, team.id, index)
    logger.info(
        "Evidence uploaded (%d bytes)", len(data),
        extra={"game_id": game_id, "team_id": team.id, "user_id": str(requester_id)},
    )
    return {
        "url": url,
        "original_name": upload.filename,
        "content_type": content_type,
        "size": len(data),
    }


def build_photo_archive(
    storage: BaseEvidenceStorage,
    game_id: int,
    requester_id: str,
    fetcher: EvidenceFetcher | None = None,
) -> tuple[bytes, str]:
    """Zip every submitted photo of a game, grouped by team and clue.

    Layout: ``<team>/clue-<n>-<YYYY-MM-DD>/photo-<i>.<ext>`` with ``n``
    1-based.  Returns ``(zip_bytes, download_filename)``.

    Raises:
        NotFoundError: no submission has photos, or none could be retrieved.
    """
    authorization.require_game_master(game_id, requester_id, "download_photos")
    fetcher = fetcher or EvidenceFetcher()

    rows = (
        Submission.query
        .filter_by(game_id=game_id)
        .order_by(Submission.team_id, Submission.clue_index, Submission.id)
        .all()
    )
    rows = [s for s in rows if s.photo_urls]
    if not rows:
        raise NotFoundError("Photos for game", game_id)

    team_names = {
        t.id: secure_filename(t.name) or f"team-{t.id}"
        for t in Team.query.filter_by(game_id=game_id).all()
    }

    buf = io.BytesIO()
    added = 0
    used_names: set[str] = set()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for submission in rows:
            day = submission.created_at.strftime("%Y-%m-%d") if submission.created_at else "undated"
            folder = f"{team_names.get(submission.team_id, f'team-{submission.team_id}')}/clue-{submission.clue_index + 1}-{day}"
            for i, url in enumerate(submission.photo_urls, start=1):
                data = storage.read(url)
                if data is None:
                    data = fetcher.fetch(url)
                if data is None:
                    continue
                ext = _extension(posixpath.basename(urlparse(url).path))
                name = f"{folder}/photo-{i}.{ext}"
                if name in used_names:
                    name = f"{folder}/photo-{submission.id}-{i}.{ext}"
                used_names.add(name)
                zf.writestr(name, data)
                added += 1

    if added == 0:
        raise NotFoundError("Retrievable photos for game", game_id)

    logger.info(
        "Photo archive built with %d photos", added,
        extra={"game_id": game_id, "user_id": str(requester_id)},
    )
    filename = f"race-photos-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.zip"
    return buf.getvalue(), filename
