from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, conint, constr
from pydantic.alias_generators import to_camel

QuizMode = Literal["english-to-chinese", "chinese-to-english"]
SessionStatus = Literal["active", "finished"]
SourceType = Literal["image", "text"]


class ApiModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


# --- Stored entities ---
class SessionUser(ApiModel):
    id: str
    username: str


class WordList(ApiModel):
    id: str
    owner_id: str
    title: str
    source_type: SourceType
    created_at: str


class Word(ApiModel):
    id: str
    word_list_id: str
    word: str
    meaning: str


class TestSession(ApiModel):
    id: str
    user_id: str
    word_list_id: Optional[str] = None
    mode: QuizMode
    status: SessionStatus = "active"
    order_ids: List[str]
    current_index: int = 0
    correct_ids: List[str] = []
    incorrect_ids: List[str] = []
    started_at: str
    finished_at: Optional[str] = None
    accuracy: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def answered_ids(self) -> List[str]:
        return self.correct_ids + self.incorrect_ids


class TestAnswer(ApiModel):
    id: str
    test_session_id: str
    word_id: str
    correct: bool
    answered_at: str


class WrongWordEntry(ApiModel):
    user_id: str
    word_id: str
    word_list_id: Optional[str] = None
    wrong_count: int
    last_wrong_at: str
    word: Optional[str] = None
    meaning: Optional[str] = None


# --- Request bodies ---
class Credentials(ApiModel):
    username: constr(min_length=3, max_length=24, pattern=r"^[a-zA-Z0-9_]+$")
    password: constr(min_length=6, max_length=64)


class WordEntry(ApiModel):
    word: str
    meaning: str = ""


class WordListCreate(ApiModel):
    title: Optional[constr(min_length=1, max_length=80)] = None
    source_type: SourceType = "text"
    entries: List[WordEntry]


class StartSessionRequest(ApiModel):
    list_id: Optional[UUID]
    mode: QuizMode
    shuffle: bool = False
    wrong_only: bool = False


class AnswerRequest(ApiModel):
    session_id: UUID
    word_id: UUID
    correct: bool
    current_index: Optional[conint(ge=0)] = None
    correct_ids: Optional[List[UUID]] = None
    incorrect_ids: Optional[List[UUID]] = None


class FinishRequest(ApiModel):
    session_id: UUID
    accuracy: Optional[float] = None
