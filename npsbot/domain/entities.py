from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from npsbot.domain.enums import SurveyStage


@dataclass
class SurveySession:
    """
    In-flight state of one respondent's survey.

    Passed explicitly through the state machine; handlers keep it in the
    FSM storage between updates via ``to_dict`` / ``from_dict``.
    """

    code: str
    stage: SurveyStage = SurveyStage.WELCOME
    answers: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "stage": self.stage.value, "answers": dict(self.answers)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurveySession":
        return cls(
            code=data["code"],
            stage=SurveyStage(data.get("stage", SurveyStage.WELCOME)),
            answers=dict(data.get("answers") or {}),
        )


@dataclass
class Respondent:
    """One survey code with the latest stored answer for each question."""

    code: str
    name: str
    email: str
    service_type: str
    language: str
    scopes: List[str] = field(default_factory=list)
    project_name: Optional[str] = None
    status: Optional[str] = None
    answers: Dict[str, str] = field(default_factory=dict)


@dataclass
class SegmentResult:
    nps: int = 0
    promoters: int = 0
    neutrals: int = 0
    detractors: int = 0
    total: int = 0
