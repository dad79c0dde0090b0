import pytest

from vocabtest.wrong_words import WrongWordTracker

MODE = "chinese-to-english"


@pytest.fixture
def tracker(gateway):
    return WrongWordTracker(gateway)


class TestWrongWordUpsert:
    def test_first_wrong_answer_creates_entry(self, tracker, gateway, alice, word_list):
        wl, words = word_list

        tracker.record_wrong(alice.id, words[0].id, wl.id, "2024-01-01T00:00:00+00:00")

        entry = gateway.get_wrong_word(alice.id, words[0].id, wl.id)
        assert entry.wrong_count == 1
        assert entry.last_wrong_at == "2024-01-01T00:00:00+00:00"
        assert entry.word == "apple"
        assert entry.meaning == "苹果"

    def test_repeat_wrong_answer_increments(self, tracker, gateway, alice, word_list):
        wl, words = word_list
        tracker.record_wrong(alice.id, words[0].id, wl.id, "2024-01-01T00:00:00+00:00")
        tracker.record_wrong(alice.id, words[0].id, wl.id, "2024-01-02T00:00:00+00:00")
        tracker.record_wrong(alice.id, words[0].id, wl.id, "2024-01-03T00:00:00+00:00")

        scoped = gateway.get_wrong_word(alice.id, words[0].id, wl.id)
        pooled = gateway.get_wrong_word(alice.id, words[0].id, None)
        assert scoped.wrong_count == 3
        assert pooled.wrong_count == 3
        assert pooled.last_wrong_at == "2024-01-03T00:00:00+00:00"

    def test_global_only_write_counts_once(self, tracker, gateway, alice, word_list):
        _, words = word_list

        tracker.record_wrong(alice.id, words[1].id, None, "2024-01-01T00:00:00+00:00")

        assert gateway.get_wrong_word(alice.id, words[1].id, None).wrong_count == 1
        assert len(gateway.list_wrong_words(alice.id)) == 1

    def test_counters_are_per_user(self, tracker, gateway, alice, bob, word_list):
        wl, words = word_list
        tracker.record_wrong(alice.id, words[0].id, wl.id, "2024-01-01T00:00:00+00:00")

        assert gateway.get_wrong_word(bob.id, words[0].id, wl.id) is None
        assert tracker.all_entries(bob.id) == []


class TestWrongWordsFromQuiz:
    def test_wrong_answers_across_sessions_accumulate(self, manager, gateway, alice, word_list):
        wl, words = word_list
        for _ in range(2):
            session, _ = manager.start_session(alice, wl.id, MODE)
            manager.submit_answer(alice, session.id, words[0].id, False)

        assert gateway.get_wrong_word(alice.id, words[0].id, wl.id).wrong_count == 2
        assert gateway.get_wrong_word(alice.id, words[0].id, None).wrong_count == 2

    def test_global_pool_session_only_touches_global_entry(
        self, manager, gateway, alice, word_list
    ):
        wl, words = word_list
        first, _ = manager.start_session(alice, wl.id, MODE)
        manager.submit_answer(alice, first.id, words[0].id, False)

        review, _ = manager.start_session(alice, None, MODE, wrong_only=True)
        manager.submit_answer(alice, review.id, words[0].id, False)

        assert gateway.get_wrong_word(alice.id, words[0].id, wl.id).wrong_count == 1
        assert gateway.get_wrong_word(alice.id, words[0].id, None).wrong_count == 2


class TestWrongWordViews:
    @pytest.fixture
    def seeded(self, tracker, alice, vocab, word_list):
        from vocabtest.models import WordEntry

        wl, words = word_list
        other, other_words = vocab.create_list(alice, [WordEntry(word="cloud", meaning="云")])
        for _ in range(3):
            tracker.record_wrong(alice.id, words[2].id, wl.id, "2024-01-01T00:00:00+00:00")
        tracker.record_wrong(alice.id, words[0].id, wl.id, "2024-01-02T00:00:00+00:00")
        for _ in range(2):
            tracker.record_wrong(alice.id, other_words[0].id, other.id, "2024-01-03T00:00:00+00:00")
        return wl, words, other, other_words

    def test_list_view_sorted_by_count(self, tracker, alice, seeded):
        wl, words, _, _ = seeded

        items = tracker.list_view(alice.id, wl.id)

        assert [i.word_id for i in items] == [words[2].id, words[0].id]
        assert [i.wrong_count for i in items] == [3, 1]
        assert all(i.word_list_id == wl.id for i in items)

    def test_global_view_spans_lists(self, tracker, alice, seeded):
        _, words, _, other_words = seeded

        items = tracker.global_view(alice.id)

        assert [i.word_id for i in items] == [words[2].id, other_words[0].id, words[0].id]
        assert all(i.word_list_id is None for i in items)

    def test_query_dispatch(self, tracker, alice, seeded):
        wl, _, _, _ = seeded

        assert len(tracker.query(alice.id, list_id=wl.id)) == 2
        assert len(tracker.query(alice.id, scope="global")) == 3
        assert len(tracker.query(alice.id)) == 6
        counts = [i.wrong_count for i in tracker.query(alice.id)]
        assert counts == sorted(counts, reverse=True)
