# tests/test_quiz.py
import random

import pytest

from cert_portal.quiz import assemble, shuffle_array, shuffle_options
from factories import make_pool, make_question


def test_shuffle_array_is_a_permutation():
    items = list(range(20))
    shuffled = shuffle_array(items, random.Random(1))
    assert sorted(shuffled) == items


def test_shuffle_array_does_not_modify_input():
    items = [1, 2, 3, 4]
    shuffle_array(items, random.Random(2))
    assert items == [1, 2, 3, 4]


def test_shuffle_array_is_deterministic_for_seeded_rng():
    assert shuffle_array(range(10), random.Random(7)) == shuffle_array(range(10), random.Random(7))


def test_shuffle_array_reaches_every_ordering():
    rng = random.Random(3)
    seen = {tuple(shuffle_array([1, 2, 3], rng)) for _ in range(300)}
    assert len(seen) == 6


def test_shuffle_options_tracks_correct_text():
    q = make_question(1, correct_answer=2)
    rng = random.Random(5)
    for _ in range(50):
        shuffled = shuffle_options(q, rng)
        assert shuffled.options[shuffled.correct_answer] == "q1-c"
        assert sorted(shuffled.options) == sorted(q.options)


def test_shuffle_options_leaves_original_untouched():
    q = make_question(1, correct_answer=3)
    shuffle_options(q, random.Random(0))
    assert q.options == ["q1-a", "q1-b", "q1-c", "q1-d"]
    assert q.correct_answer == 3


@pytest.mark.parametrize("pool_size,quiz_length", [(1, 1), (1, 5), (5, 3), (5, 5), (10, 4), (3, 100)])
def test_assemble_length_is_clamped(pool_size, quiz_length):
    quiz = assemble(make_pool(pool_size), quiz_length, random.Random(0))
    assert len(quiz) == min(quiz_length, pool_size)


def test_assemble_single_question_pool_clamps_to_one():
    quiz = assemble(make_pool(1), 5, random.Random(0))
    assert len(quiz) == 1


def test_assemble_without_length_takes_whole_pool():
    quiz = assemble(make_pool(7), None, random.Random(0))
    assert len(quiz) == 7


def test_assemble_selects_distinct_questions_from_pool():
    pool = make_pool(10)
    quiz = assemble(pool, 6, random.Random(4))
    ids = [q.id for q in quiz]
    assert len(set(ids)) == 6
    assert set(ids) <= {q.id for q in pool}


def test_assemble_preserves_correct_answers():
    pool = make_pool(8)
    by_id = {q.id: q for q in pool}
    for seed in range(20):
        for q in assemble(pool, 5, random.Random(seed)):
            original = by_id[q.id]
            assert q.options[q.correct_answer] == original.options[original.correct_answer]


def test_assemble_does_not_modify_pool():
    pool = make_pool(4)
    before = [(q.id, list(q.options), q.correct_answer) for q in pool]
    assemble(pool, 4, random.Random(9))
    assert [(q.id, q.options, q.correct_answer) for q in pool] == before


def test_assemble_empty_pool_returns_empty_list():
    assert assemble([], 5, random.Random(0)) == []


def test_assemble_rejects_zero_length():
    with pytest.raises(ValueError):
        assemble(make_pool(3), 0)
