# promptcraft/schemas.py
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Optional, Union

from pydantic import (
    AllowInfNan, BaseModel, ConfigDict, Field, Strict, StrictInt, StrictStr,
    field_serializer, field_validator, model_serializer, model_validator,
)
from pydantic.alias_generators import to_camel

ENHANCED_CLARITY_SCORE = 95
TITLE_MAX_LENGTH = 120


class EnhancementStyle(str, Enum):
    detailed = "detailed"
    creative = "creative"
    technical = "technical"
    conversational = "conversational"


class QuestionType(str, Enum):
    text = "text"
    choice = "choice"
    scale = "scale"
    checkbox = "checkbox"


OPTION_TYPES = (QuestionType.choice, QuestionType.checkbox)

# NaN and Infinity parse from request JSON but cannot be rendered back out
FiniteStrictFloat = Annotated[float, Strict(), AllowInfNan(False)]


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisResult(CamelModel):
    summary: str = "Unable to analyze prompt"
    gaps: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    clarity_score: Union[int, float] = 0

    @field_validator("clarity_score", mode="before")
    @classmethod
    def missing_score_is_zero(cls, v):
        if v is None or isinstance(v, bool):
            return 0
        return v

    @field_validator("clarity_score")
    @classmethod
    def clamp_score(cls, v):
        return max(0, min(100, v))


class Question(CamelModel):
    id: str
    question: str
    type: QuestionType = QuestionType.text
    options: Optional[List[str]] = None
    required: bool = True

    @model_validator(mode="after")
    def options_only_for_choices(self):
        if self.type in OPTION_TYPES:
            if not self.options:
                self.type = QuestionType.text
                self.options = None
        else:
            self.options = None
        return self

    @model_serializer(mode="wrap")
    def _omit_missing_options(self, handler):
        data = handler(self)
        if data.get("options") is None:
            data.pop("options", None)
        return data


class Answer(CamelModel):
    question_id: str
    answer: Union[StrictStr, List[StrictStr], StrictInt, FiniteStrictFloat]


class ImprovementSummary(CamelModel):
    original_length: int
    enhanced_length: int
    improvement_ratio: float
    clarity_score: Union[int, float]
    enhanced_clarity_score: Union[int, float] = ENHANCED_CLARITY_SCORE


class Enhancement(CamelModel):
    id: str
    original_prompt: str
    analysis_results: Optional[AnalysisResult] = None
    follow_up_questions: Optional[List[Question]] = None
    answers: Optional[List[Answer]] = None
    enhanced_prompt: Optional[str] = None
    improvement_summary: Optional[ImprovementSummary] = None
    completed: bool = False
    saved: bool = False
    title: Optional[str] = None
    style: EnhancementStyle = EnhancementStyle.detailed
    created_at: datetime

    @field_serializer("created_at")
    def _iso_utc(self, ts: datetime) -> str:
        if ts.tzinfo is not None:
            ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
        return ts.isoformat() + "Z"

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class AnalyzeRequest(CamelModel):
    original_prompt: str = Field(..., min_length=1)
    style: EnhancementStyle = EnhancementStyle.detailed

    @field_validator("original_prompt")
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Prompt is required")
        return v


class EnhanceRequest(CamelModel):
    enhancement_id: str
    answers: List[Answer]
    style: Optional[EnhancementStyle] = None


class SaveRequest(CamelModel):
    title: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_length(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        if len(v) > TITLE_MAX_LENGTH:
            raise ValueError("Title too long")
        return v
