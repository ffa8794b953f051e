from __future__ import annotations

"""Analytics configuration (hyperparameters) using Pydantic."""

from pydantic import BaseModel, Field


class AnalyticsConfig(BaseModel):
    """Hyperparameters for exam analytics.

    - smoothing_span: EWMA span in exams (>1)
    - weak_accuracy: questions at or below this accuracy count as weak (0..1)
    - min_answers: answers a question needs before it can be ranked weak (>=1)
    """

    smoothing_span: int = Field(5, gt=1)
    weak_accuracy: float = Field(0.6, ge=0, le=1)
    min_answers: int = Field(1, ge=1)

    @classmethod
    def from_config(cls, cfg: dict) -> "AnalyticsConfig":
        section = dict(cfg.get("analytics", {}) or {})
        return cls(**{k: v for k, v in section.items() if k in cls.model_fields})
