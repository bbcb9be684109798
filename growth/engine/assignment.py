"""
Staff assignment matcher — route a lead to the staff member with the best
mix of spare capacity and conversion track record.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class AssignmentConfig:
    base_score: float = 100.0
    load_penalty: float = 5.0
    conversion_weight: float = 50.0
    high_quality: int = 70
    high_conversion_rate: float = 0.3
    match_bonus: float = 20.0


@dataclass(frozen=True)
class StaffCandidate:
    staff_id: int
    name: str
    open_lead_count: int = 0
    conversion_rate: float = 0.0


@dataclass
class StaffMatch:
    staff_id: int
    name: str
    open_lead_count: int
    conversion_rate: float
    match_score: float

    def to_dict(self):
        return {
            'staff_id': self.staff_id,
            'name': self.name,
            'open_lead_count': self.open_lead_count,
            'conversion_rate': self.conversion_rate,
            'match_score': self.match_score,
        }


DEFAULT_ASSIGNMENT = AssignmentConfig()


def match_score(candidate: StaffCandidate, lead_quality: int,
                cfg: AssignmentConfig = DEFAULT_ASSIGNMENT) -> float:
    score = (cfg.base_score
             - cfg.load_penalty * candidate.open_lead_count
             + cfg.conversion_weight * candidate.conversion_rate)
    if lead_quality >= cfg.high_quality and candidate.conversion_rate >= cfg.high_conversion_rate:
        score += cfg.match_bonus
    return round(max(0.0, score), 2)


def rank_staff(candidates: Sequence[StaffCandidate], lead_quality: int,
               cfg: AssignmentConfig = DEFAULT_ASSIGNMENT) -> List[StaffMatch]:
    """Best match first. sorted() is stable, so ties keep input order."""
    matches = [
        StaffMatch(
            staff_id=c.staff_id,
            name=c.name,
            open_lead_count=c.open_lead_count,
            conversion_rate=c.conversion_rate,
            match_score=match_score(c, lead_quality, cfg),
        )
        for c in candidates
    ]
    return sorted(matches, key=lambda m: m.match_score, reverse=True)


def best_match(candidates: Sequence[StaffCandidate], lead_quality: int,
               cfg: AssignmentConfig = DEFAULT_ASSIGNMENT) -> Optional[StaffMatch]:
    ranked = rank_staff(candidates, lead_quality, cfg)
    return ranked[0] if ranked else None
