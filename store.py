"""
store.py – MongoDB question collection plus on-disk image blobs

Question documents live in a MongoDB collection.  Question images are written
below IMAGES_DIR and served by the web app under IMAGES_URL_PREFIX, so the
public URL of an image is derived directly from its storage path.
"""

import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from models import Question, QuestionDraft, utc_now_iso

logger = logging.getLogger("mistakebook.store")

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class StoreError(Exception):
    """Transport or storage failure while talking to the question store."""


def _object_id(question_id: str) -> ObjectId:
    try:
        return ObjectId(question_id)
    except (InvalidId, TypeError) as exc:
        raise StoreError(f"Invalid question id: {question_id!r}") from exc


def _to_question(doc: dict) -> Question:
    data = {k: v for k, v in doc.items() if k != "_id"}
    return Question(id=str(doc["_id"]), **data)


def safe_filename(filename: str) -> str:
    """Strip directories and anything outside [A-Za-z0-9._-] from a filename."""
    name = os.path.basename(filename or "").strip()
    name = _UNSAFE_CHARS_RE.sub("_", name).strip("._")
    return name or "image"


class QuestionStore:
    """Create/read/update/delete for questions and their images."""

    def __init__(
        self,
        collection: Collection,
        images_dir: str,
        url_prefix: str = "/static/images",
    ) -> None:
        self.collection = collection
        self.images_dir = Path(images_dir)
        self.url_prefix = url_prefix.rstrip("/")

    @classmethod
    def connect(
        cls,
        uri: str,
        db_name: str,
        collection: str,
        images_dir: str,
        url_prefix: str = "/static/images",
        timeout_ms: int = 5000,
    ) -> "QuestionStore":
        """Open a client, ping the server and return a store bound to *collection*.

        Raises StoreError if the server cannot be reached.
        """
        try:
            client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
            client.admin.command("ping")
        except PyMongoError as exc:
            raise StoreError(f"MongoDB connection failed: {exc}") from exc
        logger.info(f"Connected to MongoDB database {db_name!r}")
        return cls(client[db_name][collection], images_dir, url_prefix)

    # ── Documents ────────────────────────────────────────────────────────────

    def fetch_all(self) -> list[Question]:
        """All questions, newest first."""
        try:
            docs = list(self.collection.find().sort("created_at", DESCENDING))
        except PyMongoError as exc:
            raise StoreError(f"Could not fetch questions: {exc}") from exc
        return [_to_question(d) for d in docs]

    def create(self, draft: QuestionDraft) -> str:
        doc = draft.model_dump()
        doc["created_at"] = utc_now_iso()
        try:
            result = self.collection.insert_one(doc)
        except PyMongoError as exc:
            raise StoreError(f"Could not save question: {exc}") from exc
        logger.info(f"Created question {result.inserted_id}")
        return str(result.inserted_id)

    def update(self, question_id: str, fields: dict[str, Any]) -> None:
        """Replace only the supplied fields; list values replace the stored list."""
        oid = _object_id(question_id)
        try:
            result = self.collection.update_one({"_id": oid}, {"$set": fields})
        except PyMongoError as exc:
            raise StoreError(f"Could not update question {question_id}: {exc}") from exc
        if result.matched_count == 0:
            raise StoreError(f"Question not found: {question_id}")

    def remove(self, question_id: str, storage_path: Optional[str]) -> None:
        """Delete the document, then the image on a best-effort basis."""
        oid = _object_id(question_id)
        try:
            self.collection.delete_one({"_id": oid})
        except PyMongoError as exc:
            raise StoreError(f"Could not delete question {question_id}: {exc}") from exc
        logger.info(f"Deleted question {question_id}")

        if not storage_path:
            return
        try:
            self.image_file(storage_path).unlink()
        except (OSError, ValueError) as exc:
            logger.warning(f"Image deletion failed or file already gone ({storage_path}): {exc}")

    # ── Images ───────────────────────────────────────────────────────────────

    def image_file(self, storage_path: str) -> Path:
        """Local path for *storage_path*; refuses paths that escape images_dir."""
        root = self.images_dir.resolve()
        path = (root / storage_path).resolve()
        if root not in path.parents:
            raise ValueError(f"Storage path outside image directory: {storage_path!r}")
        return path

    def image_url(self, storage_path: str) -> str:
        return f"{self.url_prefix}/{storage_path}"

    def upload_image(self, filename: str, data: bytes) -> tuple[str, str]:
        """Store raw image bytes and return ``(public_url, storage_path)``.

        The storage path is ``questions/<epoch millis>_<filename>``.
        """
        storage_path = f"questions/{int(time.time() * 1000)}_{safe_filename(filename)}"
        out_path = self.image_file(storage_path)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(data)
        except OSError as exc:
            raise StoreError(f"Could not store image {filename!r}: {exc}") from exc
        return self.image_url(storage_path), storage_path
