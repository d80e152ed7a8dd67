import itertools
import random

from models import MAX_EXAM_COUNT
from selection import QuestionFilter, clamp_exam_count, select_exam_batch


def test_empty_filter_keeps_everything(seeded_session):
    assert QuestionFilter().apply(seeded_session.questions) == seeded_session.questions


def test_subject_filter_is_case_insensitive_substring(seeded_session):
    result = QuestionFilter(subject="MATH").apply(seeded_session.questions)
    assert sorted(q.subject for q in result) == ["Math", "Math", "Mathematics", "math"]


def test_topic_and_level_filters(seeded_session):
    algebra = QuestionFilter(topic="algebra").apply(seeded_session.questions)
    assert {q.topic for q in algebra} == {"Algebra", "Algebra review"}

    level_one = QuestionFilter(level=1).apply(seeded_session.questions)
    assert len(level_one) == 2
    assert all(q.level == 1 for q in level_one)


def test_filters_commute(seeded_session):
    questions = seeded_session.questions
    predicates = [
        QuestionFilter(subject="math"),
        QuestionFilter(topic="alg"),
        QuestionFilter(level=3),
    ]
    combined = QuestionFilter(subject="math", topic="alg", level=3).apply(questions)
    for order in itertools.permutations(predicates):
        current = questions
        for f in order:
            current = f.apply(current)
        assert [q.id for q in current] == [q.id for q in combined]
    assert {q.subject for q in combined} == {"Math", "math"}


def test_batch_is_truncated_to_pool(seeded_session):
    pool = QuestionFilter(subject="Math").apply(seeded_session.questions)
    assert len(pool) == 4

    batch = select_exam_batch(pool, 5, random.Random(7))

    assert len(batch) == 4
    assert {q.id for q in batch} == {q.id for q in pool}


def test_batch_has_no_duplicates(seeded_session):
    for seed in range(20):
        batch = select_exam_batch(seeded_session.questions, 6, random.Random(seed))
        ids = [q.id for q in batch]
        assert len(ids) == 6
        assert len(set(ids)) == 6


def test_batch_from_empty_pool_is_empty():
    assert select_exam_batch([], 5) == []


def test_exam_count_is_clamped():
    assert clamp_exam_count(0) == 1
    assert clamp_exam_count(-3) == 1
    assert clamp_exam_count(12) == 12
    assert clamp_exam_count(500) == MAX_EXAM_COUNT
