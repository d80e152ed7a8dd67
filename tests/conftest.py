import copy
import io
import os
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from PIL import Image

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models import Question, QuestionDraft
from session import StudySession
from store import StoreError


class InMemoryStore:
    """Question store kept in a dict; images go to a temporary directory."""

    def __init__(self, images_dir):
        self.images_dir = Path(images_dir)
        self.docs = {}
        self.updates = []
        self.removed = []
        self.fail_fetch = False
        self.fail_updates_for = set()
        self._seq = 0
        self._base = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _next_id(self):
        self._seq += 1
        return f"q{self._seq:03d}"

    def fetch_all(self):
        if self.fail_fetch:
            raise StoreError("connection refused")
        docs = sorted(self.docs.values(), key=lambda d: d["created_at"], reverse=True)
        return [Question(**copy.deepcopy(d)) for d in docs]

    def create(self, draft):
        qid = self._next_id()
        doc = draft.model_dump()
        doc["id"] = qid
        doc["created_at"] = (self._base + timedelta(seconds=self._seq)).isoformat()
        self.docs[qid] = doc
        return qid

    def update(self, question_id, fields):
        if question_id in self.fail_updates_for:
            raise StoreError("write timed out")
        if question_id not in self.docs:
            raise StoreError(f"Question not found: {question_id}")
        self.docs[question_id].update(copy.deepcopy(fields))
        self.updates.append((question_id, copy.deepcopy(fields)))

    def remove(self, question_id, storage_path):
        self.docs.pop(question_id, None)
        self.removed.append((question_id, storage_path))

    def upload_image(self, filename, data):
        path = f"questions/{self._seq}_{filename}"
        out = self.images_dir / path
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(data)
        return f"/static/images/{path}", path

    def image_file(self, storage_path):
        return self.images_dir / storage_path

    def add(self, subject="Math", topic="Algebra", answer="A", level=3, solutions=None):
        draft = QuestionDraft(
            img_url=f"/static/images/questions/{self._seq}.png",
            storage_path=f"questions/{self._seq}.png",
            subject=subject,
            topic=topic,
            answer=answer,
            level=level,
            solutions=solutions or [],
        )
        return self.create(draft)


def png_bytes(size=(400, 400), color=(255, 255, 255)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


@pytest.fixture
def make_png():
    return png_bytes


@pytest.fixture
def store(tmp_path):
    return InMemoryStore(tmp_path / "images")


@pytest.fixture
def session(store):
    s = StudySession(store, rng=random.Random(1234))
    s.refresh()
    return s


@pytest.fixture
def seeded(store):
    """Ten questions: four Math, three Physics, three Chemistry."""
    store.add(subject="Math", topic="Algebra", answer="A", level=3)
    store.add(subject="Math", topic="Geometry", answer="B", level=2)
    store.add(subject="Mathematics", topic="Calculus", answer="C", level=1)
    store.add(subject="math", topic="Algebra", answer="D", level=3)
    store.add(subject="Physics", topic="Kinematics", answer="E", level=3)
    store.add(subject="Physics", topic="Optics", answer="A", level=2)
    store.add(subject="Physics", topic="Algebra review", answer="B", level=1)
    store.add(subject="Chemistry", topic="Stoichiometry", answer="C", level=3)
    store.add(subject="Chemistry", topic="Organic", answer="D", level=2)
    store.add(subject="Chemistry", topic="Acids", answer="E", level=3)
    return store


@pytest.fixture
def seeded_session(seeded):
    s = StudySession(seeded, rng=random.Random(1234))
    s.refresh()
    return s
