import io
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .errors import InvalidInput
from .gateway import PersistenceGateway, new_id
from .models import SessionUser, Word, WordEntry, WordList

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("word", "meaning")
MAX_TITLE_LENGTH = 80


def normalize_entries(entries: Iterable[WordEntry]) -> List[Tuple[str, str]]:
    """Trims pairs, drops blank words and case-insensitive duplicates (first one kept)."""
    seen = set()
    cleaned = []
    for entry in entries:
        word = (entry.word or "").strip()
        meaning = (entry.meaning or "").strip()
        if not word or word.lower() in seen:
            continue
        seen.add(word.lower())
        cleaned.append((word, meaning))
    return cleaned


def default_title(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"Manual input {now.strftime('%Y-%m-%d %H:%M')}"


class VocabularyManager:
    """Stores normalized (word, meaning) pairs as word lists owned by a user."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def create_list(
        self,
        user: SessionUser,
        entries: Iterable[WordEntry],
        title: Optional[str] = None,
        source_type: str = "text",
    ) -> Tuple[WordList, List[Word]]:
        pairs = normalize_entries(entries)
        if not pairs:
            raise InvalidInput("No words found")

        title = (title or "").strip() or default_title()
        word_list = WordList(
            id=new_id(),
            owner_id=user.id,
            title=title[:MAX_TITLE_LENGTH],
            source_type=source_type,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        words = self.gateway.create_word_list(word_list, pairs)
        logger.info(f"Created list {word_list.id} '{word_list.title}' with {len(words)} words")
        return word_list, words

    def import_csv(
        self, user: SessionUser, content: bytes, title: Optional[str] = None
    ) -> Tuple[WordList, List[Word]]:
        try:
            df = pd.read_csv(io.BytesIO(content), encoding="utf-8", dtype=str)
        except (ValueError, UnicodeDecodeError, pd.errors.ParserError) as e:
            logger.error(f"Failed to parse CSV upload: {e}")
            raise InvalidInput("Could not read CSV file")

        df.columns = [str(c).strip().lower() for c in df.columns]
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            logger.error(f"Skipping CSV upload: missing columns {missing}")
            raise InvalidInput(f"Missing columns: {', '.join(missing)}")

        df = df.fillna("")
        entries = [
            WordEntry(word=row["word"], meaning=row["meaning"])
            for row in df[list(REQUIRED_COLUMNS)].to_dict("records")
        ]
        logger.info(f"Read {len(entries)} rows from CSV upload")
        return self.create_list(user, entries, title=title, source_type="text")

    def get_lists(self, user: SessionUser) -> List[WordList]:
        return self.gateway.list_word_lists(user.id)
