"""Request and response models for the HTTP API."""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

QuizMode = Literal["remaining", "mistakes", "mastered"]


class UserOut(BaseModel):
    id: str
    email: str
    display_name: str
    created_at: Optional[str] = None


class TopicSummaryOut(BaseModel):
    topic_id: str
    name: str
    total_questions: int
    remaining: int
    mistakes: int
    mastered: int
    favorite_count: int


class ProgressOut(BaseModel):
    topic_id: str
    mistake_ids: List[str]
    mastered_ids: List[str]
    total_questions: int
    remaining: int
    mistakes: int
    mastered: int


class QuestionOut(BaseModel):
    id: str
    text: str
    answer: str
    options: Optional[List[str]] = None
    explanation: Optional[str] = None


class QuizOut(BaseModel):
    topic_id: str
    topic_name: str
    mode: QuizMode
    questions: List[QuestionOut]
    available_count: int


class OutcomeIn(BaseModel):
    question_id: str = Field(..., min_length=1)
    is_correct: bool


class SubmitRequest(BaseModel):
    topic_id: str = Field(..., min_length=1)
    # Checked by the service so a bad mode is a 400 on every route.
    mode: str
    results: List[OutcomeIn] = Field(..., min_length=1)


class SubmitResponse(BaseModel):
    success: bool
    mistakes: int
    mastered: int


class FavoriteRequest(BaseModel):
    topic_id: str = Field(..., min_length=1)
    question_id: str = Field(..., min_length=1)


class FavoriteResponse(BaseModel):
    success: bool = True
    is_favorite: bool


class StatsOut(BaseModel):
    user_id: str
    total_mastered: int
    total_mistakes: int
    topics_started: int


class MessageOut(BaseModel):
    success: bool = True
    message: str
