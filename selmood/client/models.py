from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_USER_ID = -1
UNKNOWN_USER_NAME = "Unknown"
DEFAULT_AVATAR = "🙂"

# 1-5 Likert scale.
MIN_SCORE = 1
MAX_SCORE = 5

SOURCE_DB = "DB"
SOURCE_LOCAL = "LOCAL"

STATUS_SAVED = "saved"
STATUS_SAVED_LOCAL = "saved_local"


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    avatar: Optional[str] = DEFAULT_AVATAR
    grade: Optional[str] = ""
    gender: Optional[str] = ""


class ResponseRecord(BaseModel):
    id: int
    user_id: int
    question_id: int
    score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    timestamp: str


class JoinedReportRow(BaseModel):
    user_id: int
    user_name: str
    user_avatar: str
    user_grade: str
    user_gender: str
    question_id: int
    score: int
    timestamp: str


class SubmitAck(BaseModel):
    id: int
    status: str


class FetchResult(BaseModel):
    source: Literal["DB", "LOCAL"]
    data: List[dict]

    @property
    def is_degraded(self) -> bool:
        return self.source == SOURCE_LOCAL
