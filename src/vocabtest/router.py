from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .auth import AuthService
from .errors import Unauthorized
from .models import (
    AnswerRequest,
    Credentials,
    FinishRequest,
    SessionUser,
    StartSessionRequest,
    TestSession,
    Word,
    WordListCreate,
)
from .quiz import QuizSessionManager
from .vocabulary import VocabularyManager
from .wrong_words import WrongWordTracker

router = APIRouter()


# --- Dependencies ---
def get_auth(request: Request) -> AuthService:
    return request.app.state.auth


def get_quiz(request: Request) -> QuizSessionManager:
    return request.app.state.quiz


def get_vocab(request: Request) -> VocabularyManager:
    return request.app.state.vocab


def get_tracker(request: Request) -> WrongWordTracker:
    return request.app.state.quiz.tracker


def get_current_user(request: Request, auth: AuthService = Depends(get_auth)) -> SessionUser:
    user = auth.resolve(auth.token_from(request))
    if user is None:
        raise Unauthorized()
    return user


def _session_payload(session: Optional[TestSession], words: List[Word]) -> dict:
    return {
        "session": session.to_json() if session else None,
        "words": [w.to_json() for w in words],
    }


# --- Auth ---
@router.post("/api/auth/register")
def register(body: Credentials, auth: AuthService = Depends(get_auth)):
    user, token, expires_at = auth.register(body.username, body.password)
    response = JSONResponse({"user": user.to_json()})
    auth.set_cookie(response, token, expires_at)
    return response


@router.post("/api/auth/login")
def login(body: Credentials, auth: AuthService = Depends(get_auth)):
    user, token, expires_at = auth.login(body.username, body.password)
    response = JSONResponse({"user": user.to_json()})
    auth.set_cookie(response, token, expires_at)
    return response


@router.post("/api/auth/logout")
def logout(request: Request, auth: AuthService = Depends(get_auth)):
    auth.logout(auth.token_from(request))
    response = JSONResponse({"ok": True})
    auth.clear_cookie(response)
    return response


@router.get("/api/auth/me")
def me(user: SessionUser = Depends(get_current_user)):
    return {"user": user.to_json()}


# --- Word lists ---
@router.get("/api/word-lists")
def list_word_lists(
    user: SessionUser = Depends(get_current_user), vocab: VocabularyManager = Depends(get_vocab)
):
    return {"lists": [wl.to_json() for wl in vocab.get_lists(user)]}


@router.post("/api/word-lists")
def create_word_list(
    body: WordListCreate,
    user: SessionUser = Depends(get_current_user),
    vocab: VocabularyManager = Depends(get_vocab),
):
    word_list, words = vocab.create_list(user, body.entries, body.title, body.source_type)
    return {"list": word_list.to_json(), "words": [w.to_json() for w in words]}


@router.post("/api/word-lists/import")
async def import_word_list(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    user: SessionUser = Depends(get_current_user),
    vocab: VocabularyManager = Depends(get_vocab),
):
    content = await file.read()
    word_list, words = await run_in_threadpool(vocab.import_csv, user, content, title=title)
    return {"list": word_list.to_json(), "words": [w.to_json() for w in words]}


# --- Test sessions ---
@router.post("/api/test/start")
def start_test(
    body: StartSessionRequest,
    user: SessionUser = Depends(get_current_user),
    quiz: QuizSessionManager = Depends(get_quiz),
):
    session, words = quiz.start_session(
        user,
        str(body.list_id) if body.list_id else None,
        body.mode,
        shuffle=body.shuffle,
        wrong_only=body.wrong_only,
    )
    return _session_payload(session, words)


@router.get("/api/test/active")
def active_test(
    user: SessionUser = Depends(get_current_user), quiz: QuizSessionManager = Depends(get_quiz)
):
    session, words = quiz.get_active_session(user)
    return _session_payload(session, words)


@router.post("/api/test/answer")
def answer_test(
    body: AnswerRequest,
    user: SessionUser = Depends(get_current_user),
    quiz: QuizSessionManager = Depends(get_quiz),
):
    session = quiz.submit_answer(
        user,
        str(body.session_id),
        str(body.word_id),
        body.correct,
        current_index=body.current_index,
        correct_ids=[str(i) for i in body.correct_ids] if body.correct_ids is not None else None,
        incorrect_ids=(
            [str(i) for i in body.incorrect_ids] if body.incorrect_ids is not None else None
        ),
    )
    return {"ok": True, "session": session.to_json()}


@router.post("/api/test/finish")
def finish_test(
    body: FinishRequest,
    user: SessionUser = Depends(get_current_user),
    quiz: QuizSessionManager = Depends(get_quiz),
):
    session = quiz.finish_session(user, str(body.session_id), body.accuracy)
    return {"ok": True, "session": session.to_json()}


# --- Wrong words & history ---
@router.get("/api/wrong-words")
def wrong_words(
    listId: Optional[str] = None,
    scope: Optional[str] = None,
    user: SessionUser = Depends(get_current_user),
    tracker: WrongWordTracker = Depends(get_tracker),
):
    items = tracker.query(user.id, list_id=listId, scope=scope)
    return {"items": [item.to_json() for item in items]}


@router.get("/api/history")
def history(
    user: SessionUser = Depends(get_current_user), quiz: QuizSessionManager = Depends(get_quiz)
):
    items = [
        {
            "id": s.id,
            "mode": s.mode,
            "accuracy": s.accuracy,
            "finishedAt": s.finished_at,
            "wordListId": s.word_list_id,
        }
        for s in quiz.history(user)
    ]
    return {"items": items}


@router.get("/health")
async def health():
    return {"status": "ok"}
