from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, create_engine, text
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

APP_VERSION = "1.0.0"
REPO_ROOT = Path(__file__).resolve().parents[3]
load_dotenv(REPO_ROOT / ".env")


def resolve_db_path() -> str:
    db_env = (os.getenv("SELMOOD_DB_PATH") or os.getenv("DB_PATH") or "").strip()
    db_path = Path(db_env) if db_env else (REPO_ROOT / "sel_database.sqlite")
    if not db_path.is_absolute():
        db_path = REPO_ROOT / db_path
    return str(db_path)


DB_PATH = resolve_db_path()
DATABASE_URL = f"sqlite:///{DB_PATH}"

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def utc_now() -> datetime:
    # Naive UTC, same as SQLite's CURRENT_TIMESTAMP.
    return datetime.utcnow().replace(microsecond=0)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    avatar = Column(String, nullable=True)
    grade = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    responses = relationship("Response", back_populates="user")


class Response(Base):
    __tablename__ = "responses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    question_id = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)
    timestamp = Column(DateTime, default=utc_now, nullable=False)

    user = relationship("User", back_populates="responses")


class LoginRequest(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None
    grade: Optional[str] = None
    gender: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None
    grade: Optional[str] = None
    gender: Optional[str] = None


class ResponseCreate(BaseModel):
    user_id: Optional[int] = None
    question_id: Optional[int] = None
    score: Optional[int] = None


class ResponseSaved(BaseModel):
    id: int
    status: str


class AdminResponseRow(BaseModel):
    user_id: int
    user_name: str
    user_avatar: Optional[str] = None
    user_grade: Optional[str] = None
    user_gender: Optional[str] = None
    question_id: Optional[int] = None
    score: Optional[int] = None
    timestamp: str


app = FastAPI(title="SELMood API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.on_event("startup")
def on_startup() -> None:
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


@app.get("/health")
def health() -> dict:
    db_status = "ok"
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"
    return {"status": "ok", "version": APP_VERSION, "db": db_status}


@app.post("/api/login", response_model=UserResponse)
def create_user(payload: LoginRequest, db: Session = Depends(get_db)) -> UserResponse:
    if not payload.name:
        raise HTTPException(status_code=400, detail="Name is required")
    user = User(
        name=payload.name,
        avatar=payload.avatar,
        grade=payload.grade,
        gender=payload.gender,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return UserResponse(id=user.id, name=user.name, avatar=user.avatar, grade=user.grade, gender=user.gender)


@app.post("/api/response", response_model=ResponseSaved)
def save_response(payload: ResponseCreate, db: Session = Depends(get_db)) -> ResponseSaved:
    # Zero counts as missing, like the truthiness check the clients were written against.
    if not payload.user_id or not payload.question_id or not payload.score:
        raise HTTPException(status_code=400, detail="Missing fields")
    response = Response(user_id=payload.user_id, question_id=payload.question_id, score=payload.score)
    db.add(response)
    db.commit()
    db.refresh(response)
    return ResponseSaved(id=response.id, status="saved")


@app.get("/api/admin/responses", response_model=List[AdminResponseRow])
def admin_responses(db: Session = Depends(get_db)) -> List[AdminResponseRow]:
    rows = (
        db.query(Response, User)
        .join(User, Response.user_id == User.id)
        .order_by(Response.timestamp.desc(), Response.id.desc())
        .all()
    )
    return [
        AdminResponseRow(
            user_id=user.id,
            user_name=user.name,
            user_avatar=user.avatar,
            user_grade=user.grade,
            user_gender=user.gender,
            question_id=response.question_id,
            score=response.score,
            timestamp=format_timestamp(response.timestamp),
        )
        for response, user in rows
    ]
