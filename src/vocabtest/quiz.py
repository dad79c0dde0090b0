"""
Quiz session lifecycle: start, answer, resume, finish.

A session freezes its question order (``order_ids``) at creation. Progress
fields on the session row are a cached view that is always recomputed from the
append-only answer log, so a replayed or stale client snapshot can never move
the cursor backwards or put a word in both the correct and incorrect sets.
"""

import logging
import math
import random
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from .errors import InvalidInput, InvalidState, NotFound
from .gateway import PersistenceGateway, new_id
from .models import QuizMode, SessionUser, TestAnswer, TestSession, Word
from .wrong_words import WrongWordTracker

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 12


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def round_accuracy(value: Optional[float]) -> Optional[int]:
    """Half-up rounding into 0..100; non-finite values become ``None``."""
    if value is None or not math.isfinite(value):
        return None
    return max(0, min(100, int(math.floor(value + 0.5))))


def answered_accuracy(correct: int, answered: int) -> Optional[int]:
    if answered <= 0:
        return None
    return round_accuracy(correct * 100 / answered)


def derive_progress(answers: List[TestAnswer]) -> Tuple[List[str], List[str]]:
    """Correct and incorrect word ids from the answer log; first answer per word wins."""
    seen = set()
    correct_ids, incorrect_ids = [], []
    for answer in answers:
        if answer.word_id in seen:
            continue
        seen.add(answer.word_id)
        (correct_ids if answer.correct else incorrect_ids).append(answer.word_id)
    return correct_ids, incorrect_ids


# --- Strategy Pattern: candidate word sources ---
class CandidateSource(ABC):
    """Resolves the words a new session quizzes over."""

    def __init__(self, list_id: Optional[str]):
        self.list_id = list_id

    @abstractmethod
    def resolve(self, gateway: PersistenceGateway, user: SessionUser) -> List[Word]:
        pass

    @property
    def session_list_id(self) -> Optional[str]:
        return self.list_id

    def _require_list(self, gateway: PersistenceGateway, user: SessionUser) -> None:
        if gateway.get_word_list(self.list_id, user.id) is None:
            raise NotFound("List not found")


class ListWordsSource(CandidateSource):
    """Every word of one of the user's lists, in stored order."""

    def resolve(self, gateway, user):
        self._require_list(gateway, user)
        return gateway.list_words(self.list_id)


class ListWrongWordsSource(CandidateSource):
    """Words the user missed while being quizzed on one list."""

    def resolve(self, gateway, user):
        self._require_list(gateway, user)
        return gateway.wrong_word_pool(user.id, self.list_id)


class GlobalWrongWordsSource(CandidateSource):
    """The user's global wrong-word pool."""

    def __init__(self):
        super().__init__(None)

    def resolve(self, gateway, user):
        return gateway.wrong_word_pool(user.id, None)


class SourceFactory:
    @staticmethod
    def create(list_id: Optional[str], wrong_only: bool) -> CandidateSource:
        if wrong_only:
            return ListWrongWordsSource(list_id) if list_id else GlobalWrongWordsSource()
        if list_id:
            return ListWordsSource(list_id)
        raise InvalidInput("List required")


# --- Service Layer: quiz sessions ---
class QuizSessionManager:
    def __init__(
        self,
        gateway: PersistenceGateway,
        tracker: Optional[WrongWordTracker] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], str] = utcnow,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.gateway = gateway
        self.tracker = tracker or WrongWordTracker(gateway)
        self.rng = rng or random.Random()
        self.clock = clock
        self.history_limit = history_limit

    def start_session(
        self,
        user: SessionUser,
        list_id: Optional[str],
        mode: QuizMode,
        shuffle: bool = False,
        wrong_only: bool = False,
    ) -> Tuple[TestSession, List[Word]]:
        source = SourceFactory.create(list_id, wrong_only)
        words = source.resolve(self.gateway, user)
        if not words:
            raise InvalidInput("No words available")

        ordered = list(words)
        if shuffle:
            self.rng.shuffle(ordered)

        now = self.clock()
        self._close_active_sessions(user, now)

        session = TestSession(
            id=new_id(),
            user_id=user.id,
            word_list_id=source.session_list_id,
            mode=mode,
            status="active",
            order_ids=[w.id for w in ordered],
            started_at=now,
        )
        self.gateway.insert_test_session(session)
        logger.info(
            f"New session: {session.id} [user={user.username}, list={session.word_list_id}, "
            f"mode={mode}, words={len(ordered)}, shuffle={shuffle}, wrong_only={wrong_only}]"
        )
        return session, ordered

    def get_active_session(self, user: SessionUser) -> Tuple[Optional[TestSession], List[Word]]:
        sessions = self.gateway.active_sessions(user.id)
        if not sessions:
            return None, []
        session = sessions[0]
        return session, self._words_in_order(session)

    def submit_answer(
        self,
        user: SessionUser,
        session_id: str,
        word_id: str,
        correct: bool,
        current_index: Optional[int] = None,
        correct_ids: Optional[List[str]] = None,
        incorrect_ids: Optional[List[str]] = None,
    ) -> TestSession:
        session = self._owned_session(user, session_id)
        if not session.is_active:
            raise InvalidState("Session is not active")
        if word_id not in session.order_ids:
            raise InvalidInput("Word is not part of this session")

        answers = self.gateway.list_test_answers(session.id)
        done_correct, done_incorrect = derive_progress(answers)
        if word_id in done_correct or word_id in done_incorrect:
            # Logged and counted, but the first answer keeps deciding progress.
            logger.info(f"Repeated answer: session={session.id} word={word_id}")
        else:
            expected = session.order_ids[len(done_correct) + len(done_incorrect)]
            if word_id != expected:
                logger.warning(
                    f"Out-of-order answer rejected: session={session.id} word={word_id} "
                    f"expected={expected}"
                )
                raise InvalidInput("Answer out of order")

        now = self.clock()
        answer = TestAnswer(
            id=new_id(),
            test_session_id=session.id,
            word_id=word_id,
            correct=correct,
            answered_at=now,
        )
        self.gateway.insert_test_answer(answer)
        if not correct:
            self.tracker.record_wrong(user.id, word_id, session.word_list_id, now)

        done_correct, done_incorrect = derive_progress(answers + [answer])
        updated = self._sync_progress(session, done_correct, done_incorrect)
        self._check_client_snapshot(updated, current_index, correct_ids, incorrect_ids)
        return updated

    def finish_session(
        self, user: SessionUser, session_id: str, accuracy: Optional[float] = None
    ) -> TestSession:
        session = self._owned_session(user, session_id)
        if not session.is_active:
            logger.info(f"Session {session.id} already finished at {session.finished_at}")
            return session

        if accuracy is None:
            recorded = answered_accuracy(len(session.correct_ids), len(session.answered_ids))
        else:
            recorded = round_accuracy(accuracy)
        self.gateway.mark_finished(session.id, self.clock(), recorded)
        logger.info(f"Session finished: {session.id} [accuracy={recorded}]")
        return self.gateway.get_test_session(session.id)

    def history(self, user: SessionUser) -> List[TestSession]:
        return self.gateway.finished_sessions(user.id, self.history_limit)

    # --- helpers ---
    def _owned_session(self, user: SessionUser, session_id: str) -> TestSession:
        session = self.gateway.get_test_session(session_id)
        if session is None or session.user_id != user.id:
            raise NotFound("Session not found")
        return session

    def _words_in_order(self, session: TestSession) -> List[Word]:
        by_id = {w.id: w for w in self.gateway.get_words(session.order_ids)}
        return [by_id[i] for i in session.order_ids if i in by_id]

    def _sync_progress(
        self, session: TestSession, correct_ids: List[str], incorrect_ids: List[str]
    ) -> TestSession:
        updated = session.model_copy(
            update={
                "correct_ids": correct_ids,
                "incorrect_ids": incorrect_ids,
                "current_index": len(correct_ids) + len(incorrect_ids),
            }
        )
        if updated != session:
            self.gateway.update_session_progress(updated)
        return updated

    def _close_active_sessions(self, user: SessionUser, now: str) -> None:
        for stale in self.gateway.active_sessions(user.id):
            accuracy = answered_accuracy(len(stale.correct_ids), len(stale.answered_ids))
            self.gateway.mark_finished(stale.id, now, accuracy)
            logger.info(f"Closed previous active session {stale.id} for {user.username}")

    @staticmethod
    def _check_client_snapshot(
        session: TestSession,
        current_index: Optional[int],
        correct_ids: Optional[List[str]],
        incorrect_ids: Optional[List[str]],
    ) -> None:
        mismatched = (
            (current_index is not None and current_index != session.current_index)
            or (correct_ids is not None and list(correct_ids) != session.correct_ids)
            or (incorrect_ids is not None and list(incorrect_ids) != session.incorrect_ids)
        )
        if mismatched:
            logger.warning(
                f"Client progress for session {session.id} disagrees with the answer log; "
                "keeping server values"
            )
