from flashcards.session import Session, DEFAULT_NEW_CARDS_PER_DAY
from flashcards.review_queue import ReviewQueue, build_queue
from flashcards.scheduler import Scheduler
from flashcards.parameters import SchedulingParameters
from flashcards.repository import CardFilter, InMemoryCardRepository
from flashcards.card import CardState, State
from flashcards.rating import Rating
from flashcards.errors import EmptyQueueError, NothingToUndoError

from datetime import datetime, timedelta, timezone
import logging
import pytest
import random

NOW = datetime(2024, 3, 1, 12, 0, 0, 0, timezone.utc)


class FakeClock:
    def __init__(self, start=NOW):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_card(card_id, state, **kwargs):
    if state in (State.Review, State.Relearning, State.Learning):
        kwargs.setdefault("stability", 10.0)
        kwargs.setdefault("difficulty", 5.0)
        kwargs.setdefault("last_review", NOW - timedelta(days=10))
        kwargs.setdefault("reps", 3)
    return CardState(card_id=card_id, state=state, due_date=NOW, **kwargs)


def make_cards(new=0, learning=0, review=0):
    cards = []
    for i in range(new):
        cards.append(make_card(100 + i, State.New))
    for i in range(learning):
        cards.append(make_card(200 + i, State.Learning if i % 2 == 0 else State.Relearning))
    for i in range(review):
        cards.append(make_card(300 + i, State.Review))
    return cards


def make_session(cards, **kwargs):
    kwargs.setdefault("rng", random.Random(1234))
    kwargs.setdefault("clock", FakeClock())
    kwargs.setdefault(
        "scheduler", Scheduler(SchedulingParameters(fuzz_enabled=False))
    )
    return Session(cards, **kwargs)


def drain(session):
    card_ids = []
    card = session.next()
    while card is not None:
        card_ids.append(card.card_id)
        card = session.next()
    return card_ids


class TestBuildQueue:
    def test_queue_construction(self):
        cards = make_cards(new=10, learning=5, review=20)
        random.Random(99).shuffle(cards)
        new_ids = [card.card_id for card in cards if card.state == State.New]
        review_ids = [card.card_id for card in cards if card.state == State.Review]
        learning_ids = [
            card.card_id
            for card in cards
            if card.state in (State.Learning, State.Relearning)
        ]

        queue, counts = build_queue(
            cards, new_daily_cap=3, new_done_today=0, rng=random.Random(5)
        )
        queue_ids = [card.card_id for card in queue]

        assert len(queue) == 28
        assert queue_ids[:5] == learning_ids

        rest = queue_ids[5:]
        assert [card_id for card_id in rest if card_id in new_ids] == new_ids[:3]
        assert [card_id for card_id in rest if card_id in review_ids] == review_ids

        assert counts.new == 3
        assert counts.learning == 5
        assert counts.review == 20
        assert counts.total == 28

    def test_new_cards_done_today_reduce_allowance(self):
        cards = make_cards(new=10, review=2)

        queue, counts = build_queue(cards, 3, 2, random.Random(0))
        assert counts.new == 1
        assert [card.card_id for card in queue if card.state == State.New] == [100]

        _, counts = build_queue(cards, 3, 5, random.Random(0))
        assert counts.new == 0

    def test_no_daily_cap(self):
        cards = make_cards(new=10, review=2)

        _, counts = build_queue(cards, None, 50, random.Random(0))

        assert counts.new == 10

    def test_interleave_weighting(self):
        cards = make_cards(new=3, review=3)

        queue, _ = build_queue(cards, None, 0, random.Random(0), review_probability=1.0)
        assert [card.state for card in queue] == [State.Review] * 3 + [State.New] * 3

        queue, _ = build_queue(cards, None, 0, random.Random(0), review_probability=0.0)
        assert [card.state for card in queue] == [State.New] * 3 + [State.Review] * 3

    def test_interleave_prefers_review_cards(self):
        cards = make_cards(new=200, review=200)

        queue, _ = build_queue(cards, None, 0, random.Random(2024))
        first_half = queue[:200]
        reviews = sum(1 for card in first_half if card.state == State.Review)

        assert 120 <= reviews <= 160

    def test_seeded_interleave_is_reproducible(self):
        cards = make_cards(new=10, review=10)

        first, _ = build_queue(cards, None, 0, random.Random(8))
        second, _ = build_queue(cards, None, 0, random.Random(8))

        assert [card.card_id for card in first] == [card.card_id for card in second]


class TestReviewQueue:
    def test_fresh_cards_before_revisits(self):
        queue = ReviewQueue(make_cards(review=2))
        queue.push_revisit(make_card(1, State.Learning))

        assert len(queue) == 3
        assert [card.card_id for card in queue] == [300, 301, 1]
        assert queue.popleft().card_id == 300
        assert queue.popleft().card_id == 301
        assert queue.popleft().card_id == 1
        assert not queue

        with pytest.raises(IndexError):
            queue.popleft()

    def test_discard_revisits_matches_identity(self):
        queue = ReviewQueue()
        older = make_card(1, State.Learning, learning_step=0)
        other = make_card(2, State.Learning)
        latest = make_card(1, State.Learning, learning_step=1)
        queue.push_revisit(latest)
        queue.push_revisit(older)
        queue.push_revisit(other)
        queue.push_revisit(latest)

        assert queue.discard_revisits(latest) == 2
        assert [card for card in queue] == [older, other]
        assert queue.discard_revisits(latest) == 0


class TestSession:
    def test_session_stats_from_queue(self):
        session = make_session(make_cards(new=10, learning=5, review=20), new_daily_cap=3)

        assert session.stats.total == 28
        assert session.stats.new == 3
        assert session.stats.learning == 5
        assert session.stats.review == 20
        assert session.remaining() == 28

    def test_current_and_next(self):
        session = make_session(make_cards(review=2))

        assert session.current() is None
        assert session.next().card_id == 300
        assert session.current().card_id == 300
        assert session.next().card_id == 301
        assert session.next() is None
        assert session.current() is None
        assert session.next() is None

    def test_empty_session(self):
        session = make_session([])

        assert session.next() is None
        assert session.progress() == 1.0

        with pytest.raises(EmptyQueueError):
            session.answer(Rating.Correct)

        with pytest.raises(EmptyQueueError):
            session.skip()

        summary = session.summary()
        assert summary.reviewed == 0
        assert summary.retention_rate == 0
        assert summary.avg_seconds == 0

    def test_answer_requires_current_card(self):
        session = make_session(make_cards(review=1))

        with pytest.raises(EmptyQueueError):
            session.answer(Rating.Correct)

    def test_answer_review_card(self):
        session = make_session(make_cards(review=2))
        session.next()

        new_card, interval = session.answer(Rating.Correct)

        assert new_card.state == State.Review
        assert interval.days >= 1
        assert session.stats.correct == 1
        assert session.stats.wrong == 0
        assert len(session.reviews) == 1
        assert session.reviews[0].card_id == 300
        # not re-enqueued
        assert drain(session) == [301]

    def test_wrong_answer_requeues_learning_card(self):
        session = make_session(make_cards(new=1, review=1), review_probability=1.0)
        assert session.next().card_id == 300

        session.answer(Rating.Wrong)

        assert session.stats.wrong == 1
        assert session.current().state == State.Relearning
        assert session.remaining() == 2
        assert drain(session) == [100, 300]

    def test_revisited_card_carries_new_state(self):
        session = make_session(make_cards(new=1))
        session.next()
        session.answer(Rating.Correct)

        revisit = session.next()

        assert revisit.card_id == 100
        assert revisit.state == State.Learning
        assert revisit.learning_step == 1

        # the 60 minute step is too far away to come back in this session
        session.answer(Rating.Correct)
        assert session.next() is None

    def test_review_duration(self):
        clock = FakeClock()
        session = make_session(make_cards(review=1), clock=clock)
        session.next()
        clock.advance(seconds=4)

        session.answer(Rating.Correct)

        assert session.reviews[0].review_duration == 4000
        assert session.reviews[0].review_datetime == NOW + timedelta(seconds=4)

    def test_undo_restores_prior_state(self):
        repository = InMemoryCardRepository()
        card = make_card(1, State.Review)
        repository.add_card(card)

        session = Session.from_repository(
            repository,
            scheduler=Scheduler(SchedulingParameters(fuzz_enabled=False)),
            rng=random.Random(0),
            clock=FakeClock(),
        )
        session.next()
        session.answer(Rating.Correct)
        assert repository.get_card(1) != card

        restored = session.undo()

        assert restored == card
        assert repository.get_card(1) == card
        assert session.current() == card
        assert session.stats.correct == 0
        assert session.reviews == []

    def test_undo_drops_pending_revisit(self):
        session = make_session(make_cards(new=1, review=1), review_probability=0.0)
        session.next()
        session.answer(Rating.Wrong)
        assert session.remaining() == 2

        session.undo()

        assert session.stats.wrong == 0
        assert session.current().state == State.New
        assert session.remaining() == 1
        assert drain(session) == [300]

    def test_undo_after_next_moves_back_one_card(self):
        session = make_session(make_cards(review=3))
        session.next()
        session.answer(Rating.Wrong)
        session.next()
        assert session.current().card_id == 301

        session.undo()

        assert session.current().card_id == 300
        assert session.current().state == State.Review
        # the undone card can be answered again, then the queue continues
        session.answer(Rating.Correct)
        assert drain(session) == [301, 302]

    def test_undo_twice(self):
        session = make_session(make_cards(review=3))
        session.next()
        session.answer(Rating.Correct)
        session.next()
        session.answer(Rating.Wrong)
        session.next()

        session.undo()
        assert session.current().card_id == 301
        session.undo()
        assert session.current().card_id == 300

        assert session.stats.correct == 0
        assert session.stats.wrong == 0

        with pytest.raises(NothingToUndoError):
            session.undo()

    def test_undo_after_answer_and_skip(self):
        repository = InMemoryCardRepository()
        repository.add_card(make_card(1, State.New))
        repository.add_card(make_card(2, State.New))
        session = Session.from_repository(
            repository,
            scheduler=Scheduler(SchedulingParameters(fuzz_enabled=False)),
            rng=random.Random(0),
            clock=FakeClock(),
        )
        assert session.next().card_id == 1
        session.answer(Rating.Wrong)
        assert session.skip().card_id == 2

        session.undo()

        assert repository.get_card(1).state == State.New
        assert session.current().card_id == 1
        assert session.current().state == State.New
        assert session.remaining() == 1
        assert drain(session) == [2]

    def test_undo_drops_shown_but_unanswered_revisit(self):
        session = make_session(make_cards(new=1, review=1), review_probability=0.0)
        session.next()
        session.answer(Rating.Wrong)
        assert session.next().card_id == 300
        revisit = session.next()
        assert revisit.card_id == 100
        assert revisit.state == State.Learning

        session.undo()

        assert session.current().card_id == 100
        assert session.current().state == State.New
        assert drain(session) == [300]
        assert session.remaining() == 0

    def test_nothing_to_undo(self):
        session = make_session(make_cards(review=1))

        with pytest.raises(NothingToUndoError):
            session.undo()

    def test_skip(self):
        session = make_session(make_cards(review=3))
        session.next()

        skipped_to = session.skip()

        assert skipped_to.card_id == 301
        assert session.current().card_id == 301
        assert session.stats.correct == 0
        assert session.stats.wrong == 0
        assert drain(session) == [302, 300]

    def test_skip_last_card(self):
        session = make_session(make_cards(review=1))
        session.next()

        assert session.skip().card_id == 300
        assert session.current().card_id == 300

    def test_progress_and_remaining(self):
        session = make_session(make_cards(review=4))

        assert session.progress() == 0
        session.next()
        assert session.progress() == 0.25
        assert session.remaining() == 3
        assert session.has_more()

        drain(session)
        assert session.remaining() == 0
        assert not session.has_more()

    def test_summary(self):
        clock = FakeClock()
        session = make_session(make_cards(review=5), clock=clock)

        for rating in (Rating.Correct, Rating.Correct, Rating.Wrong, Rating.Correct):
            session.next()
            clock.advance(seconds=10)
            session.answer(rating)

        summary = session.summary()

        assert summary.total_cards == 5
        assert summary.reviewed == 4
        assert summary.correct == 3
        assert summary.wrong == 1
        assert summary.retention_rate == pytest.approx(75.0)
        assert summary.elapsed_seconds == pytest.approx(40)
        assert summary.avg_seconds == pytest.approx(10)
        assert session.elapsed() == pytest.approx(40)
        # the Wrong answer is queued for a revisit
        assert summary.remaining == 2

    def test_preview_current_card(self):
        session = make_session(make_cards(new=1))

        with pytest.raises(EmptyQueueError):
            session.preview()

        session.next()
        previews = session.preview()

        assert previews[Rating.Wrong].days == pytest.approx(1 / 1440)
        assert previews[Rating.Correct].days == pytest.approx(10 / 1440)
        assert session.current().state == State.New

    def test_session_logs_queue(self, caplog):
        with caplog.at_level(logging.INFO, logger="flashcards.session"):
            make_session(make_cards(new=1, learning=1, review=1))

        assert "3 cards" in caplog.text


class FailingRepository(InMemoryCardRepository):
    def persist_state(self, card_id, state):
        raise RuntimeError("disk full")


class TestSessionWithRepository:
    def test_answers_are_persisted(self):
        repository = InMemoryCardRepository()
        for card in make_cards(new=2, review=1):
            repository.add_card(card)

        session = Session.from_repository(
            repository, rng=random.Random(0), clock=FakeClock()
        )
        card = session.next()
        new_card, _ = session.answer(Rating.Correct)

        assert repository.get_card(card.card_id) == new_card
        assert len(repository.get_reviews(card.card_id)) == 1

    def test_new_cards_done_today_limit_next_session(self):
        repository = InMemoryCardRepository()
        for card in make_cards(new=3):
            repository.add_card(card)

        clock = FakeClock()
        session = Session.from_repository(
            repository, new_daily_cap=2, rng=random.Random(0), clock=clock
        )
        assert session.stats.new == 2

        session.next()
        session.answer(Rating.Correct)
        assert repository.get_new_done_today(NOW.date()) == 1

        clock.advance(minutes=1)
        next_session = Session.from_repository(
            repository, new_daily_cap=2, rng=random.Random(0), clock=clock
        )
        assert next_session.stats.new == 1
        assert next_session.stats.learning == 0

    def test_tag_filter(self):
        repository = InMemoryCardRepository()
        repository.add_card(make_card(1, State.Review), tags=["math/calculus"])
        repository.add_card(make_card(2, State.Review), tags=["history"])

        session = Session.from_repository(
            repository,
            card_filter=CardFilter(tag="math"),
            rng=random.Random(0),
            clock=FakeClock(),
        )

        assert drain(session) == [1]

    def test_undo_keeps_stored_review_record(self):
        repository = InMemoryCardRepository()
        repository.add_card(make_card(1, State.New))
        session = Session.from_repository(
            repository, rng=random.Random(0), clock=FakeClock()
        )
        session.next()
        session.answer(Rating.Correct)

        session.undo()

        assert repository.get_card(1).state == State.New
        assert session.reviews == []
        assert len(repository.get_reviews(1)) == 1
        assert repository.get_new_done_today(NOW.date()) == 1

    def test_review_probability_is_forwarded(self):
        repository = InMemoryCardRepository()
        for card in make_cards(new=3, review=3):
            repository.add_card(card)

        session = Session.from_repository(
            repository,
            rng=random.Random(0),
            clock=FakeClock(),
            review_probability=1.0,
        )

        assert drain(session) == [300, 301, 302, 100, 101, 102]

    def test_repository_errors_propagate(self):
        repository = FailingRepository()
        repository.add_card(make_card(1, State.Review))
        session = Session.from_repository(
            repository, rng=random.Random(0), clock=FakeClock()
        )
        session.next()

        with pytest.raises(RuntimeError):
            session.answer(Rating.Correct)

        assert session.stats.correct == 0
        assert session.reviews == []

        with pytest.raises(NothingToUndoError):
            session.undo()

    def test_default_new_card_cap(self):
        repository = InMemoryCardRepository()
        for card in make_cards(new=DEFAULT_NEW_CARDS_PER_DAY + 5):
            repository.add_card(card)

        session = Session.from_repository(
            repository, rng=random.Random(0), clock=FakeClock()
        )

        assert session.stats.new == DEFAULT_NEW_CARDS_PER_DAY
