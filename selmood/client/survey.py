from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .models import UserProfile

AVATARS = ["🐶", "🐱", "🐰", "🐼", "🦊", "🐯", "🐸", "🐵"]
GRADES = ["一年級", "二年級", "三年級", "四年級", "五年級", "六年級"]
GENDERS = ["男", "女", "其他"]

# Saddest to happiest.
EMOJI_SCALE = [
    {"score": 1, "emoji": "😢", "label": "非常不同意"},
    {"score": 2, "emoji": "🙁", "label": "不同意"},
    {"score": 3, "emoji": "😐", "label": "普通"},
    {"score": 4, "emoji": "🙂", "label": "同意"},
    {"score": 5, "emoji": "😄", "label": "非常同意"},
]

QUESTIONS = [
    {"id": 1, "category": "self_awareness", "text": "我今天覺得很開心。"},
    {"id": 2, "category": "self_management", "text": "我生氣的時候，可以讓自己冷靜下來。"},
    {"id": 3, "category": "social_awareness", "text": "我看得出來朋友什麼時候不開心。"},
    {"id": 4, "category": "relationship_skills", "text": "我需要幫忙的時候，會跟大人說。"},
    {"id": 5, "category": "relationship_skills", "text": "我和同學一起玩得很好。"},
    {"id": 6, "category": "responsible_decision_making", "text": "做錯事的時候，我會想辦法改正。"},
]


class AppState(str, Enum):
    PROFILE = "profile"
    QUIZ = "quiz"
    COMPLETED = "completed"
    ADMIN = "admin"


def validate_profile_form(name: str, grade: str, gender: str) -> Optional[str]:
    if not (name or "").strip():
        return "請輸入你的名字喔！ (Please enter your name)"
    if not grade:
        return "請選擇你的年級！ (Please select your grade)"
    if not gender:
        return "請選擇你的性別！ (Please select your gender)"
    return None


@dataclass
class SurveySession:
    questions: List[dict] = field(default_factory=lambda: list(QUESTIONS))
    state: AppState = AppState.PROFILE
    user: Optional[UserProfile] = None
    question_index: int = 0

    @property
    def current_question(self) -> Optional[dict]:
        if self.state != AppState.QUIZ or not self.questions:
            return None
        return self.questions[self.question_index]

    @property
    def progress(self) -> int:
        return self.question_index + 1

    @property
    def total(self) -> int:
        return len(self.questions)

    def start(self, user: UserProfile) -> None:
        self.user = user
        self.question_index = 0
        self.state = AppState.QUIZ if self.questions else AppState.COMPLETED

    def advance(self) -> None:
        if self.state != AppState.QUIZ:
            return
        if self.question_index < len(self.questions) - 1:
            self.question_index += 1
        else:
            self.state = AppState.COMPLETED

    def open_admin(self) -> None:
        self.state = AppState.ADMIN

    def close_admin(self) -> None:
        if self.state == AppState.ADMIN:
            self.reset()

    def reset(self) -> None:
        self.state = AppState.PROFILE
        self.user = None
        self.question_index = 0
