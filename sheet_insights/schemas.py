"""
Pydantic request/result/response models.

Rationale:
- Define simple, explicit input/output contracts for the pipeline and the API.
- Only two result shapes ever leave the pipeline: a recovered result, or the
  empty fallback (data=[], summary="") that still carries any reasoning.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    dataset: List[Dict[str, Any]] = Field(default_factory=list)
    query: str
    chart_type: str = ""


class AnalysisResult(BaseModel):
    data: List[Any] = Field(default_factory=list)
    summary: str = ""
    reasoning: str = ""
    error: Optional[str] = None

    @classmethod
    def empty(cls, reasoning: str = "", error: Optional[str] = None) -> "AnalysisResult":
        return cls(data=[], summary="", reasoning=reasoning, error=error)

    @property
    def is_empty(self) -> bool:
        return not self.data and not self.summary


class AnalysisResponse(BaseModel):
    data: List[Any] = Field(default_factory=list)
    summary: str = ""
    reasoning: str = ""
    chartType: Optional[str] = None
    error: Optional[str] = None
