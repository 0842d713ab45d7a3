"""
Step 1 — Paper Selector

Draws questions for each configured section from the question pool.

For every section, in configuration order:
  - filter the *whole* pool to the section's kind (sections of the same kind
    draw independently; nothing is removed between sections)
  - shuffle the candidates (uniform Fisher–Yates via random.Random.shuffle)
  - take the first `count`

Shortfall is never an error here. The caller decides whether a short or
empty selection is acceptable (see check_satisfiable / require_complete).
"""

import logging
import random
from typing import Dict, List, Optional, Sequence

from generation.errors import ConfigMismatchError
from generation.schemas import (
    KindStats, PaperConfig, Question, QuestionKind, SectionSelection, SelectionResult,
)

log = logging.getLogger(__name__)


def shuffled(items: Sequence, rng: Optional[random.Random] = None) -> list:
    """Return a shuffled copy; the input is left untouched."""
    out = list(items)
    (rng or random.Random()).shuffle(out)
    return out


def select_questions(
    pool: Sequence[Question],
    config: PaperConfig,
    rng: Optional[random.Random] = None,
) -> SelectionResult:
    """
    Select questions for every section of `config` from `pool`.

    Args:
        pool:   candidate questions (any mix of kinds)
        config: paper configuration; section order is preserved
        rng:    random source; pass random.Random(seed) for deterministic runs

    Returns:
        SelectionResult with one SectionSelection per configured section.
        stats holds {available, requested} per kind — when several sections
        share a kind, the last one processed wins.
    """
    rng = rng or random.Random()
    by_kind: Dict[QuestionKind, List[Question]] = {}
    for q in pool:
        by_kind.setdefault(q.kind, []).append(q)

    sections: List[SectionSelection] = []
    stats: Dict[QuestionKind, KindStats] = {}

    for idx, section in enumerate(config.sections):
        candidates = by_kind.get(section.kind, [])
        picked = shuffled(candidates, rng)[: section.count]
        sections.append(SectionSelection(
            index=idx,
            section=section,
            questions=picked,
            available=len(candidates),
        ))
        stats[section.kind] = KindStats(available=len(candidates), requested=section.count)

    result = SelectionResult(sections=sections, stats=stats)
    log.info(
        "Selected %d/%d questions for '%s' (%s)",
        len(result.questions), result.total_requested, config.subject_name,
        result.shortfall_summary() or "no sections",
    )
    return result


def check_satisfiable(result: SelectionResult) -> SelectionResult:
    """Raise ConfigMismatchError when nothing at all could be selected."""
    if result.is_empty:
        details = result.shortfall_summary()
        raise ConfigMismatchError(f"Config Mismatch: {details}", details=details)
    return result


def require_complete(result: SelectionResult) -> SelectionResult:
    """Raise ConfigMismatchError when any section came up short."""
    if result.is_short:
        details = result.shortfall_summary()
        raise ConfigMismatchError(
            f"Not enough questions for the requested paper ({details})",
            details=details,
        )
    return result
