import pytest

from conftest import department, severity
from ova.models import Notification, NotificationType
from ova.models.notification import NotificationChannel
from ova.services import notifications as svc
from ova.services.occurrences import refer_occurrences


def _prefs(db, user, *, channel=NotificationChannel.EMAIL, **kw):
    return svc.save_preference(db, user, enabled=True, channel=channel, **kw)


def _inbox(db, user):
    return db.query(Notification).filter(
        Notification.user_id == user.id).order_by(Notification.id).all()


class TestPreferences:

    def test_one_row_per_user(self, db, make_user, taxonomy):
        u = make_user("QUALITY_ASSURANCE")
        _prefs(db, u, severity_ids=[severity(db, "HIGH").id])
        _prefs(db,
               u,
               channel=NotificationChannel.BOTH,
               incident_ids=[taxonomy["verbal"].id])
        prefs = svc.get_preferences(db, u.id)
        assert len(prefs) == 1
        assert prefs[0].channel == NotificationChannel.BOTH
        assert prefs[0].severity_ids == []
        assert prefs[0].incident_ids == [taxonomy["verbal"].id]

    def test_only_top_level_incidents(self, db, make_user, taxonomy):
        u = make_user()
        with pytest.raises(ValueError):
            _prefs(db, u, incident_ids=[taxonomy["punching"].id])

    def test_unknown_severity(self, db, make_user):
        with pytest.raises(ValueError):
            _prefs(db, make_user(), severity_ids=[999])


class TestSendNotification:

    def test_nothing_without_enabled_preference(self, db, make_user, outbox):
        u = make_user()
        assert svc.send_notification(db,
                                     user=u,
                                     title="t",
                                     message="m",
                                     type=NotificationType.REFERRAL) is None
        svc.save_preference(db,
                            u,
                            enabled=False,
                            channel=NotificationChannel.EMAIL)
        assert svc.send_notification(db,
                                     user=u,
                                     title="t",
                                     message="m",
                                     type=NotificationType.REFERRAL) is None
        outbox.assert_not_called()

    def test_email_goes_to_preference_address(self, db, make_user, outbox):
        u = make_user()
        _prefs(db, u, email="alerts@ova.org")
        n = svc.send_notification(db,
                                  user=u,
                                  title="Hello",
                                  message="World",
                                  type=NotificationType.REFERRAL,
                                  reference_ids=[5])
        assert n.channel == NotificationChannel.EMAIL
        assert n.reference_ids == [5]
        outbox.assert_called_once_with("alerts@ova.org", "Hello", "World")

    def test_falls_back_to_account_email(self, db, make_user, outbox):
        u = make_user(email="person@ova.org")
        _prefs(db, u)
        svc.send_notification(db,
                              user=u,
                              title="Hi",
                              message="There",
                              type=NotificationType.FEEDBACK)
        outbox.assert_called_once_with("person@ova.org", "Hi", "There")

    def test_mobile_is_not_emailed(self, db, make_user, outbox):
        u = make_user()
        _prefs(db, u, channel=NotificationChannel.MOBILE, mobile="0400")
        n = svc.send_notification(db,
                                  user=u,
                                  title="Hi",
                                  message="There",
                                  type=NotificationType.FEEDBACK)
        assert n.channel == NotificationChannel.MOBILE
        outbox.assert_not_called()

    def test_delivery_failure_is_swallowed(self, db, make_user, outbox):
        outbox.side_effect = OSError("smtp down")
        u = make_user()
        _prefs(db, u)
        n = svc.send_notification(db,
                                  user=u,
                                  title="Hi",
                                  message="There",
                                  type=NotificationType.FEEDBACK)
        assert n.id is not None


class TestMatching:

    def test_empty_selection_matches_nothing(self, db, make_user, taxonomy):
        u = make_user("QUALITY_ASSURANCE")
        _prefs(db, u)
        assert not svc.wants_occurrence(u,
                                        top_incident_id=taxonomy["physical"].id,
                                        severity_id=severity(db, "HIGH").id)

    def test_by_top_incident_or_severity(self, db, make_user, taxonomy):
        by_incident = make_user("QUALITY_ASSURANCE")
        _prefs(db, by_incident, incident_ids=[taxonomy["physical"].id])
        by_severity = make_user("QUALITY_ASSURANCE")
        _prefs(db, by_severity, severity_ids=[severity(db, "LOW").id])

        high = severity(db, "HIGH").id
        assert svc.wants_occurrence(by_incident,
                                    top_incident_id=taxonomy["physical"].id,
                                    severity_id=high)
        assert not svc.wants_occurrence(by_severity,
                                        top_incident_id=taxonomy["physical"].id,
                                        severity_id=high)


class TestTriggers:

    def test_created_goes_to_matching_quality_roles(self, db, make_user,
                                                    make_occurrence, taxonomy,
                                                    outbox):
        qa = make_user("QUALITY_ASSURANCE")
        _prefs(db, qa, incident_ids=[taxonomy["physical"].id])
        uninterested = make_user("QUALITY_MANAGER")
        _prefs(db, uninterested, incident_ids=[taxonomy["verbal"].id])
        employee = make_user("EMPLOYEE")
        _prefs(db, employee, incident_ids=[taxonomy["physical"].id])

        # sub-sub incident still matches on its top-level ancestor
        occ = make_occurrence(None, incident=taxonomy["weapon"])

        [n] = _inbox(db, qa)
        assert n.type == NotificationType.OCCURRENCE_CREATED
        assert n.reference_ids == [occ.id]
        assert n.meta["occurrence_no"] == occ.occurrence_no
        assert _inbox(db, uninterested) == []
        assert _inbox(db, employee) == []

    def test_referral_goes_to_target_department_managers(
            self, db, make_user, make_occurrence, taxonomy):
        qa = make_user("QUALITY_ASSURANCE", "Quality")
        nursing = make_user("DEPARTMENT_MANAGER", "Nursing")
        security = make_user("DEPARTMENT_MANAGER", "Security")
        for u in (nursing, security):
            _prefs(db, u, severity_ids=[severity(db, "HIGH").id])

        occ = make_occurrence(qa)
        refer_occurrences(db,
                          occurrence_ids=[occ.id],
                          department_ids=[department(db, "Nursing").id],
                          message="Over to you",
                          user=qa)

        [n] = _inbox(db, nursing)
        assert n.type == NotificationType.REFERRAL
        assert n.meta["message"] == "Over to you"
        assert n.meta["department_name"] == "Nursing"
        assert _inbox(db, security) == []

    def test_message_notifies_reporter_not_sender(self, db, make_user,
                                                  make_occurrence):
        from ova.services.occurrences import send_message

        reporter = make_user("EMPLOYEE")
        _prefs(db, reporter)
        qa = make_user("QUALITY_ASSURANCE", "Quality")
        _prefs(db, qa)
        nursing = make_user("DEPARTMENT_MANAGER", "Nursing")
        _prefs(db, nursing)

        occ = make_occurrence(reporter)
        refer_occurrences(db,
                          occurrence_ids=[occ.id],
                          department_ids=[department(db, "Nursing").id],
                          message=None,
                          user=qa)
        send_message(db, occ, nursing, "We spoke to the staff member")

        assert len(_inbox(db, reporter)) == 1
        assert _inbox(db, nursing) == []
        # single assigned department posted -> ANSWERED -> QA hears too
        [n] = _inbox(db, qa)
        assert n.meta["sender_department"] == "Nursing"

    def test_resolved_notifies_reporter_and_departments(
            self, db, make_user, make_occurrence):
        from ova.services.occurrences import resolve_occurrence

        reporter = make_user("EMPLOYEE")
        _prefs(db, reporter)
        nursing = make_user("DEPARTMENT_MANAGER", "Nursing")
        _prefs(db, nursing)
        qa = make_user("QUALITY_ASSURANCE", "Quality")

        occ = make_occurrence(reporter)
        refer_occurrences(db,
                          occurrence_ids=[occ.id],
                          department_ids=[department(db, "Nursing").id],
                          message=None,
                          user=qa)
        resolve_occurrence(db, occ, qa)

        assert "has been resolved" in _inbox(db, reporter)[0].message
        assert "assigned to your department" in _inbox(db, nursing)[0].message


class TestInbox:

    def _seed(self, db, user, n=3):
        _prefs(db, user, channel=NotificationChannel.MOBILE)
        for i in range(n):
            svc.send_notification(db,
                                  user=user,
                                  title=f"n{i}",
                                  message="m",
                                  type=NotificationType.REFERRAL)
        db.commit()

    def test_unread_and_mark(self, db, make_user):
        u = make_user()
        other = make_user()
        self._seed(db, u)
        self._seed(db, other, n=1)

        assert svc.unread_count(db, u.id) == 3
        assert len(svc.unread_notifications(db, u.id, limit=2)) == 2

        mine = svc.unread_notifications(db, u.id)[0]
        theirs = svc.unread_notifications(db, other.id)[0]
        assert svc.mark_read(db, u.id, mine.id)
        assert not svc.mark_read(db, u.id, theirs.id)
        assert svc.unread_count(db, u.id) == 2
        assert svc.unread_count(db, other.id) == 1

        assert svc.mark_all_read(db, u.id) == 2
        assert svc.unread_count(db, u.id) == 0
        assert svc.unread_count(db, other.id) == 1
