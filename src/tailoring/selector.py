"""
Bullet selection under per-experience and total length budgets.

Greedy multi-knapsack approximation: every experience with a relevant bullet
keeps at least one, then the remaining budget is filled. Bullets are ranked by
value while the best bullets under the count cap fit the length budgets, and
by value density once length is the binding constraint.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from shared.exceptions import SelectionError, ValidationError
from shared.models import Bullet, Experience, ScoredBullet


@dataclass(frozen=True)
class SelectionBudget:
    """Length and count limits for a tailored resume."""

    max_bullets_per_experience: int = 4
    max_chars_per_experience: int = 1200
    max_total_chars: int = 4000

    def __post_init__(self):
        for name in ("max_bullets_per_experience", "max_chars_per_experience", "max_total_chars"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError(f"must be a positive integer, got {value!r}", field=name)


@dataclass
class _Candidate:
    position: int  # index of the owning experience
    bullet: Bullet
    value: float

    @property
    def cost(self) -> int:
        return max(len(self.bullet.content), 1)

    @property
    def density(self) -> float:
        return self.value / self.cost

    def rank_key(self, by_density: bool) -> tuple:
        if not by_density:
            return (
                -self.value,
                -self.density,
                -self.bullet.impact_score,
                self.bullet.display_order,
                self.position,
            )
        return (
            -self.density,
            -self.value,
            -self.bullet.impact_score,
            self.bullet.display_order,
            self.position,
        )


@dataclass
class Selection:
    """Selected bullet IDs plus why each was picked."""

    bullet_ids: list[str] = field(default_factory=list)
    reasons: dict[str, str] = field(default_factory=dict)
    total_chars: int = 0


class BulletSelector:
    """Picks the subset of bullets that maximizes relevance within the budget."""

    def __init__(self, budget: Optional[SelectionBudget] = None):
        self.budget = budget or SelectionBudget()

    def select(
        self,
        experiences: list[Experience],
        scores: dict[str, ScoredBullet],
        budget: Optional[SelectionBudget] = None,
    ) -> list[str]:
        """Ordered bullet IDs, grouped by experience in input order."""
        return self.plan(experiences, scores, budget).bullet_ids

    def plan(
        self,
        experiences: list[Experience],
        scores: dict[str, ScoredBullet],
        budget: Optional[SelectionBudget] = None,
    ) -> Selection:
        budget = budget or self.budget
        candidates = self._candidates(experiences, scores)
        if not candidates:
            raise ValidationError("bullet corpus is empty", field="experiences")

        def fits_alone(c: _Candidate) -> bool:
            return c.cost <= budget.max_total_chars and c.cost <= budget.max_chars_per_experience

        if not any(fits_alone(c) for c in candidates):
            raise SelectionError(
                f"Every bullet exceeds the length budget "
                f"(total={budget.max_total_chars}, per experience={budget.max_chars_per_experience})"
            )

        by_density = self._length_binding(candidates, budget)
        logger.debug(f"Ranking bullets by {'value density' if by_density else 'value'}")
        ranked = sorted(candidates, key=lambda c: c.rank_key(by_density))
        rank_of = {id(c): index for index, c in enumerate(ranked)}

        counts = [0] * len(experiences)
        chars = [0] * len(experiences)
        total = 0
        chosen: dict[int, list[_Candidate]] = {}
        reasons: dict[str, str] = {}

        def fits(c: _Candidate) -> bool:
            return (
                counts[c.position] < budget.max_bullets_per_experience
                and chars[c.position] + c.cost <= budget.max_chars_per_experience
                and total + c.cost <= budget.max_total_chars
            )

        def take(c: _Candidate, reason: str) -> None:
            nonlocal total
            counts[c.position] += 1
            chars[c.position] += c.cost
            total += c.cost
            chosen.setdefault(c.position, []).append(c)
            reasons[c.bullet.id] = reason

        # Floor: one bullet per experience that has any positive score,
        # most valuable experiences first so a tight budget keeps the best floors
        positive_by_exp: dict[int, list[_Candidate]] = {}
        for c in ranked:
            if c.value > 0:
                positive_by_exp.setdefault(c.position, []).append(c)

        for position in sorted(positive_by_exp, key=lambda p: rank_of[id(positive_by_exp[p][0])]):
            for c in positive_by_exp[position]:
                if fits(c):
                    take(c, "floor")
                    break
            else:
                logger.debug(f"No bullet of experience #{position} fits the remaining budget")

        # Fill: remaining budget by global value density
        for c in ranked:
            if c.value <= 0 or c.bullet.id in reasons:
                continue
            if fits(c):
                take(c, "fill")

        if not reasons:
            for c in ranked:
                if fits(c):
                    take(c, "fallback")
                    break

        bullet_ids = []
        for position in range(len(experiences)):
            for c in sorted(chosen.get(position, []), key=lambda c: rank_of[id(c)]):
                bullet_ids.append(c.bullet.id)

        logger.info(
            f"Selected {len(bullet_ids)} of {len(candidates)} bullets "
            f"({total}/{budget.max_total_chars} chars) across {len(chosen)} experiences"
        )
        return Selection(bullet_ids=bullet_ids, reasons=reasons, total_chars=total)

    @staticmethod
    def _length_binding(candidates: list[_Candidate], budget: SelectionBudget) -> bool:
        """True when the highest-value bullets allowed by the count cap overflow a length budget."""
        chars: dict[int, int] = {}
        counts: dict[int, int] = {}
        for c in sorted(candidates, key=lambda c: c.rank_key(by_density=False)):
            if c.value <= 0 or counts.get(c.position, 0) >= budget.max_bullets_per_experience:
                continue
            counts[c.position] = counts.get(c.position, 0) + 1
            chars[c.position] = chars.get(c.position, 0) + c.cost

        if any(total > budget.max_chars_per_experience for total in chars.values()):
            return True
        return sum(chars.values()) > budget.max_total_chars

    @staticmethod
    def _candidates(
        experiences: Iterable[Experience], scores: dict[str, ScoredBullet]
    ) -> list[_Candidate]:
        candidates = []
        for position, exp in enumerate(experiences):
            for bullet in exp.bullets:
                scored = scores.get(bullet.id)
                value = scored.relevance if scored else 0.0
                candidates.append(_Candidate(position=position, bullet=bullet, value=value))
        return candidates
