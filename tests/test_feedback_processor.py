"""
Feedback Processor Tests

Covers:
1. Verdict and learning weight derivation
2. Unknown action ids and invalid verdicts
3. Re-review overwrite plus append-only event log
4. Corpus reader ordering and page cap
5. Audit log failures and malformed log lines
6. Several store instances on one actions file
"""

import pytest

from pattern_engine.action_store import ActionStore, CorpusReader
from pattern_engine.errors import InvalidRequestError, NotFoundError, PersistenceError
from pattern_engine.feedback_processor import FeedbackLog, FeedbackProcessor
from pattern_engine.pattern_model import Verdict

TEST_REVIEWER_ID = "reviewer-123"


@pytest.fixture
def feedback_log(engine_config):
    return FeedbackLog(engine_config.feedback_log_file)


@pytest.fixture
def processor(action_store, feedback_log):
    return FeedbackProcessor(action_store, feedback_log)


@pytest.fixture
def unreviewed(make_record, action_store):
    record = make_record(action_id="act-fb", description="Fixed overflow", verdict=Verdict.UNSET.value)
    action_store.add_record(record)
    return record


# =============================================================================
# 1. Learning Weights
# =============================================================================

class TestLearningWeights:

    @pytest.mark.parametrize("verdict,weight", [
        (Verdict.APPROVED.value, 1.5),
        (Verdict.REJECTED.value, 0.5),
        (Verdict.MODIFIED.value, 1.0),
    ])
    def test_weight_per_verdict(self, processor, unreviewed, verdict, weight):
        updated = processor.apply(unreviewed.id, verdict, reason="checked", reviewer_id=TEST_REVIEWER_ID)
        assert updated.verdict == verdict
        assert updated.learning_weight == weight
        assert updated.verdict_reason == "checked"
        assert updated.reviewer_id == TEST_REVIEWER_ID

    def test_verdict_persisted(self, processor, unreviewed, engine_config):
        processor.apply(unreviewed.id, Verdict.APPROVED.value)
        reopened = ActionStore(engine_config.actions_file)
        assert reopened.get_record(unreviewed.id).verdict == Verdict.APPROVED.value


# =============================================================================
# 2. Errors
# =============================================================================

class TestFeedbackErrors:

    def test_unknown_action_id(self, processor, feedback_log):
        with pytest.raises(NotFoundError):
            processor.apply("missing", Verdict.APPROVED.value)
        assert feedback_log.read() == []

    @pytest.mark.parametrize("verdict", ["unset", "APPROVED", "maybe", ""])
    def test_invalid_verdict(self, processor, unreviewed, verdict):
        with pytest.raises(InvalidRequestError):
            processor.apply(unreviewed.id, verdict)


# =============================================================================
# 3. Re-review & Audit Log
# =============================================================================

class TestReReview:

    def test_rereview_overwrites_and_logs_both(self, processor, unreviewed, feedback_log):
        processor.apply(unreviewed.id, Verdict.APPROVED.value, reason="good")
        updated = processor.apply(unreviewed.id, Verdict.REJECTED.value, reason="regressed")

        assert updated.verdict == Verdict.REJECTED.value
        assert updated.learning_weight == 0.5

        events = feedback_log.read(action_id=unreviewed.id)
        assert [e.verdict for e in events] == ["approved", "rejected"]
        assert [e.previous_verdict for e in events] == ["unset", "approved"]

    def test_history_as_dicts(self, processor, unreviewed):
        processor.apply(unreviewed.id, Verdict.MODIFIED.value)
        history = processor.history(unreviewed.id)
        assert len(history) == 1
        assert history[0]["verdict"] == "modified"


# =============================================================================
# 4. Corpus Reader
# =============================================================================

class TestCorpusReader:

    def test_only_reviewed_newest_first(self, make_record, action_store):
        old = action_store.add_record(make_record(action_id="old"))
        action_store.add_record(make_record(action_id="pending", verdict=Verdict.UNSET.value))
        new = action_store.add_record(make_record(action_id="new", verdict=Verdict.REJECTED.value))

        records = CorpusReader(action_store, page_size=10).read_recent()
        assert [r.id for r in records] == [new.id, old.id]

    def test_page_size_caps_read(self, make_record, action_store):
        for _ in range(5):
            action_store.add_record(make_record())
        assert len(CorpusReader(action_store, page_size=3).read_recent()) == 3

    def test_empty_corpus(self, action_store):
        assert CorpusReader(action_store, page_size=10).read_recent() == []


# =============================================================================
# 5. Audit Log Failures
# =============================================================================

class TestAuditLogFailures:

    def test_failed_append_rolls_back_verdict(self, processor, unreviewed, feedback_log, action_store, monkeypatch):
        def failing_append(event):
            raise PersistenceError("Failed to append feedback event", error="disk full")

        monkeypatch.setattr(feedback_log, "append", failing_append)
        with pytest.raises(PersistenceError):
            processor.apply(unreviewed.id, Verdict.APPROVED.value)

        stored = action_store.get_record(unreviewed.id)
        assert stored.verdict == Verdict.UNSET.value
        assert stored.learning_weight == 1.0

    def test_failed_append_keeps_previous_review(self, processor, unreviewed, feedback_log, action_store, monkeypatch):
        processor.apply(unreviewed.id, Verdict.REJECTED.value, reason="broke layout")

        def failing_append(event):
            raise PersistenceError("Failed to append feedback event")

        monkeypatch.setattr(feedback_log, "append", failing_append)
        with pytest.raises(PersistenceError):
            processor.apply(unreviewed.id, Verdict.APPROVED.value)

        stored = action_store.get_record(unreviewed.id)
        assert stored.verdict == Verdict.REJECTED.value
        assert stored.verdict_reason == "broke layout"

    def test_malformed_lines_skipped(self, processor, unreviewed, feedback_log, engine_config):
        processor.apply(unreviewed.id, Verdict.APPROVED.value)
        with open(engine_config.feedback_log_file, "a") as f:
            f.write("[1, 2, 3]\n")
            f.write('"just a string"\n')
            f.write('{"action_id": "act-fb", "verdict": "approved"}\n')
            f.write("not json\n")

        events = feedback_log.read(action_id=unreviewed.id)
        assert [e.verdict for e in events] == ["approved"]
        assert len(feedback_log.read()) == 1


# =============================================================================
# 6. Shared Actions File
# =============================================================================

class TestSharedActionsFile:

    def test_records_from_producer_instance_survive_feedback(self, make_record, engine, engine_config):
        first = engine.action_store.add_record(make_record(action_id="a", verdict=Verdict.UNSET.value))

        producer = ActionStore(engine_config.actions_file)
        late = producer.add_record(make_record(action_id="b", verdict=Verdict.UNSET.value))

        engine.feedback(first.id, Verdict.APPROVED.value)

        reopened = ActionStore(engine_config.actions_file)
        assert reopened.get_record(late.id) is not None
        assert reopened.get_record(first.id).verdict == Verdict.APPROVED.value

    def test_engine_sees_records_added_after_start(self, make_record, engine, engine_config):
        producer = ActionStore(engine_config.actions_file)
        for i in range(3):
            producer.add_record(make_record(description=f"import a{i} from 'b{i}'"))

        assert engine.action_store.count() == 3
        assert engine.train().records_analyzed == 3
