# Tailoring module - selection, scoring, assembly and the end-to-end pipeline
from .assembler import ResumeAssembler
from .scoring import ScoreBreakdown, ScoreCalculator, ScoreWeights
from .selector import BulletSelector, Selection, SelectionBudget
from .service import TailoringResult, TailoringService, normalize_language

__all__ = [
    "ResumeAssembler",
    "ScoreBreakdown",
    "ScoreCalculator",
    "ScoreWeights",
    "BulletSelector",
    "Selection",
    "SelectionBudget",
    "TailoringResult",
    "TailoringService",
    "normalize_language",
]
