from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

MIN_SCORE = 1
MAX_SCORE = 5


def _clamp(v: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, v))


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    clarity_score: int
    creativity_score: int
    technicality_score: int
    overall_score: float
    feedback: str

    @field_validator("clarity_score", "creativity_score", "technicality_score")
    @classmethod
    def clamp_sub_score(cls, v: int) -> int:
        return int(_clamp(v))

    @field_validator("overall_score")
    @classmethod
    def clamp_overall(cls, v: float) -> float:
        return float(_clamp(v))

    @field_validator("feedback")
    @classmethod
    def feedback_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("feedback must not be empty")
        return v


class ProjectOut(BaseModel):
    id: int
    title: str
    description: str
    tags: List[str]
    file_url: Optional[str]
    owner: Optional[str]
    clarity_score: Optional[int]
    creativity_score: Optional[int]
    technicality_score: Optional[int]
    overall_score: Optional[float]
    feedback: Optional[str]
    created_at: datetime


class ReviewOut(BaseModel):
    id: int
    reviewer: Optional[str]
    clarity: int
    creativity: int
    technicality: int
    comment: str
    created_at: datetime
