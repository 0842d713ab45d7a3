"""Tests for per-section question selection."""
import random

import pytest

from conftest import make_config, make_pool
from generation.errors import ConfigMismatchError
from generation.paper_selector import check_satisfiable, require_complete, select_questions
from generation.schemas import QuestionKind


def test_selection_counts_and_stats_with_shortfall(rng):
    pool = make_pool(mcq=12, nat=3)
    config = make_config((QuestionKind.MCQ, 10, 1, 0.33), (QuestionKind.NAT, 5, 2, 0))

    result = select_questions(pool, config, rng)

    assert len(result.questions) == 13
    assert [len(s.questions) for s in result.sections] == [10, 3]
    assert result.stats[QuestionKind.MCQ].available == 12
    assert result.stats[QuestionKind.MCQ].requested == 10
    assert result.stats[QuestionKind.NAT].available == 3
    assert result.stats[QuestionKind.NAT].requested == 5
    assert result.is_short
    assert result.shortfall_summary() == "MCQ: Req 10/Avail 12, NAT: Req 5/Avail 3"


def test_sections_only_contain_their_kind(rng):
    pool = make_pool(mcq=5, msq=5, nat=5)
    config = make_config((QuestionKind.NAT, 2, 2, 0), (QuestionKind.MCQ, 3, 1, 0), (QuestionKind.MSQ, 4, 2, 0))

    result = select_questions(pool, config, rng)

    for sel in result.sections:
        assert all(q.kind == sel.section.kind for q in sel.questions)
        assert len(sel.questions) == min(sel.section.count, sel.available)
    # flattened order follows configuration order
    kinds = [q.kind for q in result.questions]
    assert kinds == [QuestionKind.NAT] * 2 + [QuestionKind.MCQ] * 3 + [QuestionKind.MSQ] * 4


def test_no_duplicates_within_a_section(rng):
    pool = make_pool(mcq=20)
    result = select_questions(pool, make_config((QuestionKind.MCQ, 15, 1, 0)), rng)
    qids = [q.qid for q in result.questions]
    assert len(qids) == len(set(qids))


def test_same_seed_same_selection():
    pool = make_pool(mcq=30, nat=10)
    config = make_config((QuestionKind.MCQ, 10, 1, 0), (QuestionKind.NAT, 5, 2, 0))

    first = select_questions(pool, config, random.Random(7))
    second = select_questions(pool, config, random.Random(7))

    assert [q.qid for q in first.questions] == [q.qid for q in second.questions]


def test_pool_is_not_mutated(rng):
    pool = make_pool(mcq=10)
    before = [q.qid for q in pool]
    select_questions(pool, make_config((QuestionKind.MCQ, 5, 1, 0)), rng)
    assert [q.qid for q in pool] == before


def test_repeated_kind_stats_reflect_last_section(rng):
    pool = make_pool(mcq=6)
    config = make_config((QuestionKind.MCQ, 2, 1, 0), (QuestionKind.MCQ, 4, 2, 0))

    result = select_questions(pool, config, rng)

    assert result.stats[QuestionKind.MCQ].requested == 4
    assert [s.available for s in result.sections] == [6, 6]


def test_missing_kind_gives_empty_section(rng):
    result = select_questions(make_pool(mcq=3), make_config((QuestionKind.NAT, 5, 2, 0)), rng)
    assert result.questions == []
    assert result.stats[QuestionKind.NAT].available == 0
    assert result.is_empty


def test_check_satisfiable_raises_on_empty_selection(rng):
    result = select_questions(make_pool(mcq=3), make_config((QuestionKind.NAT, 5, 2, 0)), rng)
    with pytest.raises(ConfigMismatchError) as exc_info:
        check_satisfiable(result)
    assert exc_info.value.details == "NAT: Req 5/Avail 0"


def test_require_complete_raises_on_shortfall(rng):
    result = select_questions(make_pool(mcq=3), make_config((QuestionKind.MCQ, 5, 1, 0)), rng)
    assert check_satisfiable(result) is result
    with pytest.raises(ConfigMismatchError):
        require_complete(result)


def test_zero_count_section_is_allowed(rng):
    result = select_questions(make_pool(mcq=3), make_config((QuestionKind.MCQ, 0, 1, 0)), rng)
    assert result.sections[0].questions == []
    assert not result.is_short
