from datetime import timedelta

import pytest

from conftest import department
from ova.models import FeedbackToken, Notification, NotificationType
from ova.models.notification import NotificationChannel
from ova.services import feedback_tokens as fb
from ova.services import notifications
from ova.services.occurrences import refer_occurrences
from ova.utils.timez import utcnow


@pytest.fixture()
def qa(make_user):
    return make_user("QUALITY_ASSURANCE", "Quality")


@pytest.fixture()
def assignment_id(db, qa, make_occurrence):
    occ = make_occurrence(qa)
    ids = refer_occurrences(db,
                            occurrence_ids=[occ.id],
                            department_ids=[department(db, "Nursing").id],
                            message="Please review",
                            user=qa)
    return ids[0]


class TestGenerateToken:

    def test_token_shape_and_expiry(self, db, qa, assignment_id):
        now = utcnow()
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id,
                                now=now)
        assert len(row.token) == 64
        int(row.token, 16)
        assert row.used is False
        assert row.expires_at == now + timedelta(hours=24)

    def test_link(self, db, qa, assignment_id):
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        assert fb.feedback_link(row.token) == f"http://ova.test/feedback/{row.token}"

    def test_replaces_live_token(self, db, qa, assignment_id):
        first = fb.generate_token(db,
                                  assignment_id=assignment_id,
                                  shared_by_id=qa.id)
        first_id, first_value = first.id, first.token
        second = fb.generate_token(db,
                                   assignment_id=assignment_id,
                                   shared_by_id=qa.id)
        tokens = fb.tokens_for_assignment(db, assignment_id)
        assert [t.token for t in tokens] == [second.token]
        assert fb.validate_token(db, first_value).reason == fb.REASON_INVALID
        # no stale copy of the replaced row left in the session
        # (sqlite may hand its id to the new token)
        same_id = db.get(FeedbackToken, first_id)
        assert same_id is None or same_id.token == second.token

    def test_keeps_used_and_expired_tokens(self, db, qa, assignment_id):
        past = utcnow() - timedelta(days=3)
        fb.generate_token(db,
                          assignment_id=assignment_id,
                          shared_by_id=qa.id,
                          now=past)
        used = fb.generate_token(db,
                                 assignment_id=assignment_id,
                                 shared_by_id=qa.id)
        fb.submit_feedback(db, token=used.token, message="Handled it")
        fb.generate_token(db,
                          assignment_id=assignment_id,
                          shared_by_id=qa.id)
        assert len(fb.tokens_for_assignment(db, assignment_id)) == 3

    def test_unknown_assignment(self, db, qa):
        with pytest.raises(fb.FeedbackTokenError) as exc:
            fb.generate_token(db, assignment_id=9999, shared_by_id=qa.id)
        assert exc.value.status_code == 404


class TestValidateToken:

    def test_unknown(self, db):
        check = fb.validate_token(db, "deadbeef")
        assert not check.valid
        assert check.reason == fb.REASON_INVALID
        assert check.message == "Invalid token"

    def test_empty(self, db):
        assert fb.validate_token(db, "").reason == fb.REASON_INVALID

    def test_valid_carries_context(self, db, qa, assignment_id):
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        check = fb.validate_token(db, row.token)
        assert check.valid
        assert check.reason is None
        assert check.token.assignment.department.name == "Nursing"
        assert check.token.assignment.occurrence.occurrence_no
        assert check.token.shared_by.id == qa.id

    def test_expired(self, db, qa, assignment_id):
        issued = utcnow() - timedelta(hours=25)
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id,
                                now=issued)
        check = fb.validate_token(db, row.token)
        assert check.reason == fb.REASON_EXPIRED

    def test_expiry_boundary(self, db, qa, assignment_id):
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        assert fb.validate_token(db, row.token, now=row.expires_at).valid
        late = row.expires_at + timedelta(microseconds=1)
        assert fb.validate_token(db, row.token,
                                 now=late).reason == fb.REASON_EXPIRED

    def test_expired_reported_before_used(self, db, qa, assignment_id):
        issued = utcnow() - timedelta(hours=30)
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id,
                                now=issued)
        fb.submit_feedback(db,
                           token=row.token,
                           message="Late answer",
                           now=issued + timedelta(hours=1))
        assert fb.validate_token(db, row.token).reason == fb.REASON_EXPIRED


class TestSubmitFeedback:

    def test_single_use(self, db, qa, assignment_id):
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        done = fb.submit_feedback(db,
                                  token=row.token,
                                  message="  Staff were debriefed  ")
        assert done.used is True
        assert done.response_message == "Staff were debriefed"
        assert done.responded_at is not None

        check = fb.validate_token(db, row.token)
        assert check.reason == fb.REASON_USED

        with pytest.raises(fb.FeedbackTokenError) as exc:
            fb.submit_feedback(db, token=row.token, message="Second try")
        assert exc.value.status_code == 400
        assert exc.value.reason == fb.REASON_USED

        stored = db.query(FeedbackToken).filter(
            FeedbackToken.token == row.token).one()
        assert stored.response_message == "Staff were debriefed"

    def test_lost_race_is_refused(self, db, qa, assignment_id, monkeypatch):
        """Another submission flips `used` between the check and the write."""
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        real_validate = fb.validate_token

        def validate_then_race(db_, token, now=None):
            check = real_validate(db_, token, now=now)
            db_.query(FeedbackToken).filter(
                FeedbackToken.id == check.token.id).update(
                    {"used": True, "response_message": "first"},
                    synchronize_session=False)
            return check

        monkeypatch.setattr(fb, "validate_token", validate_then_race)
        with pytest.raises(fb.FeedbackTokenError) as exc:
            fb.submit_feedback(db, token=row.token, message="second")
        assert exc.value.reason == fb.REASON_USED

    def test_invalid_token(self, db):
        with pytest.raises(fb.FeedbackTokenError) as exc:
            fb.submit_feedback(db, token="nope", message="Hello there")
        assert exc.value.reason == fb.REASON_INVALID

    def test_empty_message(self, db, qa, assignment_id):
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        with pytest.raises(fb.FeedbackTokenError) as exc:
            fb.submit_feedback(db, token=row.token, message="   ")
        assert exc.value.status_code == 422
        assert fb.validate_token(db, row.token).valid

    def test_issuer_notified(self, db, qa, assignment_id, outbox):
        notifications.save_preference(db,
                                      qa,
                                      enabled=True,
                                      channel=NotificationChannel.EMAIL)
        row = fb.generate_token(db,
                                assignment_id=assignment_id,
                                shared_by_id=qa.id)
        fb.submit_feedback(db, token=row.token, message="Root cause found")

        n = db.query(Notification).filter(
            Notification.user_id == qa.id,
            Notification.type == NotificationType.FEEDBACK).one()
        assert "Nursing" in n.message
        assert n.meta["message_snippet"] == "Root cause found"
        outbox.assert_called_once()
