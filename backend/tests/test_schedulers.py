"""Tests for campaign schedulers and detectors (welcome, abandoned resume, re-engagement)"""
import pytest
from datetime import datetime, timedelta, timezone

from drip.models.audit_log import AuditLog
from drip.models.email_job import EmailJob, EmailCampaign, EmailJobStatus
from drip.models.resume import ResumeStatus
from drip.services.schedulers import (
    bucket_for_inactivity,
    cancel_welcome_series,
    find_abandoned_resumes,
    find_inactive_users,
    schedule_abandoned_resume_email,
    schedule_next_welcome_step,
    schedule_reengagement_email,
    schedule_welcome_series,
)
from drip.tasks.detect_campaigns import detect_abandoned_resumes, detect_inactive_users
from drip.tasks.process_emails import process_email_jobs
from drip.utils.dates import ensure_utc

NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


def _jobs(db_session, user, campaign):
    return db_session.query(EmailJob).filter(
        EmailJob.user_id == user.id,
        EmailJob.campaign == campaign.value
    ).all()


def _sent_job(db_session, user, campaign, sent_at):
    job = EmailJob(
        user_id=user.id,
        campaign=campaign.value,
        status=EmailJobStatus.SENT.value,
        scheduled_at=sent_at,
        sent_at=sent_at,
        job_metadata={}
    )
    db_session.add(job)
    db_session.commit()
    return job


@pytest.mark.critical
class TestWelcomeScheduler:
    """Test welcome series scheduling"""

    def test_schedule_creates_day0_job(self, db_session, test_user):
        """Test the series starts with a PENDING day 0 job due immediately"""
        job = schedule_welcome_series(test_user.id, db_session, now=NOW)

        assert job is not None
        assert job.status == EmailJobStatus.PENDING.value
        assert ensure_utc(job.scheduled_at) == NOW
        assert job.job_metadata == {"step": 0, "key": "day0", "dayOffset": 0, "totalSteps": 4}

    def test_schedule_is_idempotent(self, db_session, test_user):
        """Test scheduling twice leaves one PENDING welcome job"""
        first = schedule_welcome_series(test_user.id, db_session, now=NOW)
        second = schedule_welcome_series(test_user.id, db_session, now=NOW + timedelta(minutes=5))

        assert first.id == second.id
        assert len(_jobs(db_session, test_user, EmailCampaign.WELCOME)) == 1

    def test_schedule_skips_opted_out_user(self, db_session, make_user):
        """Test opted-out users never get a welcome job"""
        user = make_user(email_opt_out=True)

        assert schedule_welcome_series(user.id, db_session, now=NOW) is None
        assert _jobs(db_session, user, EmailCampaign.WELCOME) == []

    def test_schedule_skips_unknown_user(self, db_session):
        """Test a missing user yields None rather than an error"""
        assert schedule_welcome_series("no_such_user", db_session, now=NOW) is None

    def test_schedule_respects_campaign_preference(self, db_session, make_user):
        """Test a user unsubscribed from welcome emails only is skipped"""
        user = make_user(email_preferences={"locale": "en", "WELCOME": False})

        assert schedule_welcome_series(user.id, db_session, now=NOW) is None

    def test_next_step_anchored_on_signup(self, db_session, test_user):
        """Test step 1 is due two days after signup"""
        job = schedule_next_welcome_step(test_user.id, 0, NOW, db_session, now=NOW)

        assert job.job_metadata["step"] == 1
        assert job.job_metadata["key"] == "day2"
        assert ensure_utc(job.scheduled_at) == NOW + timedelta(days=2)

    def test_next_step_in_past_clamped_to_now(self, db_session, test_user):
        """Test a delayed chain schedules the next step immediately"""
        signup = NOW - timedelta(days=10)

        job = schedule_next_welcome_step(test_user.id, 1, signup, db_session, now=NOW)

        assert job.job_metadata["key"] == "day7"
        assert ensure_utc(job.scheduled_at) == NOW

        # Due immediately: the next processing run sends it
        summary = process_email_jobs(db_session, now=NOW)

        assert summary.sent == 1
        db_session.refresh(job)
        assert job.status == EmailJobStatus.SENT.value

    def test_series_ends_after_last_step(self, db_session, test_user):
        """Test no job follows the day 14 email"""
        assert schedule_next_welcome_step(test_user.id, 3, NOW, db_session, now=NOW) is None
        assert _jobs(db_session, test_user, EmailCampaign.WELCOME) == []

    def test_next_step_stops_when_opted_out(self, db_session, make_user):
        """Test opting out mid-series stops the chain"""
        user = make_user(email_opt_out=True)

        assert schedule_next_welcome_step(user.id, 0, NOW, db_session, now=NOW) is None

    def test_cancel_welcome_series(self, db_session, test_user):
        """Test cancelling the pending welcome job"""
        schedule_welcome_series(test_user.id, db_session, now=NOW)

        assert cancel_welcome_series(test_user.id, db_session) == 1
        assert cancel_welcome_series(test_user.id, db_session) == 0


@pytest.mark.critical
class TestAbandonedResumeDetection:
    """Test the 24-48h abandoned draft window and its exclusions"""

    def test_window_boundaries(self, db_session, make_user, make_resume):
        """Test drafts inside the window are found and drafts outside are not"""
        too_fresh = make_user()
        inside = make_user()
        too_old = make_user()
        make_resume(too_fresh, NOW - timedelta(hours=23, minutes=59))
        make_resume(inside, NOW - timedelta(hours=24, minutes=1))
        make_resume(too_old, NOW - timedelta(hours=48, minutes=1))

        found = find_abandoned_resumes(db_session, now=NOW)

        assert [item.user_id for item in found] == [inside.id]

    def test_window_edges_inclusive(self, db_session, make_user, make_resume):
        """Test exactly 24h and exactly 48h both qualify"""
        at_24 = make_user()
        at_48 = make_user()
        make_resume(at_24, NOW - timedelta(hours=24))
        make_resume(at_48, NOW - timedelta(hours=48))

        found = {item.user_id for item in find_abandoned_resumes(db_session, now=NOW)}

        assert found == {at_24.id, at_48.id}

    def test_only_drafts(self, db_session, make_user, make_resume):
        """Test published resumes are never reported"""
        user = make_user()
        make_resume(user, NOW - timedelta(hours=30), status=ResumeStatus.PUBLISHED.value)

        assert find_abandoned_resumes(db_session, now=NOW) == []

    def test_one_result_per_user_most_recent(self, db_session, make_user, make_resume):
        """Test a user with several drafts is reported once, for the latest edit"""
        user = make_user()
        make_resume(user, NOW - timedelta(hours=40), title="Old draft")
        latest = make_resume(user, NOW - timedelta(hours=26), title="New draft")

        found = find_abandoned_resumes(db_session, now=NOW)

        assert len(found) == 1
        assert found[0].resume_id == latest.id
        assert found[0].resume_title == "New draft"

    def test_opted_out_users_excluded(self, db_session, make_user, make_resume):
        """Test global and per-campaign opt-outs are both honoured"""
        global_out = make_user(email_opt_out=True)
        campaign_out = make_user(email_preferences={"ABANDONED_RESUME": False})
        make_resume(global_out, NOW - timedelta(hours=30))
        make_resume(campaign_out, NOW - timedelta(hours=30))

        assert find_abandoned_resumes(db_session, now=NOW) == []

    def test_pending_reminder_excludes_user(self, db_session, make_user, make_resume):
        """Test a user with a queued reminder is not detected again"""
        user = make_user()
        resume = make_resume(user, NOW - timedelta(hours=30))
        schedule_abandoned_resume_email(user.id, resume.id, resume.title, db_session, now=NOW)

        assert find_abandoned_resumes(db_session, now=NOW) == []

    def test_cooldown_after_sent_reminder(self, db_session, make_user, make_resume):
        """Test a reminder sent 6 days ago blocks detection while one sent 8 days ago does not"""
        recent = make_user()
        older = make_user()
        make_resume(recent, NOW - timedelta(hours=30))
        make_resume(older, NOW - timedelta(hours=30))
        _sent_job(db_session, recent, EmailCampaign.ABANDONED_RESUME, NOW - timedelta(days=6))
        _sent_job(db_session, older, EmailCampaign.ABANDONED_RESUME, NOW - timedelta(days=8))

        found = find_abandoned_resumes(db_session, now=NOW)

        assert [item.user_id for item in found] == [older.id]

    def test_schedule_sets_metadata(self, db_session, make_user, make_resume):
        """Test the queued job carries the resume details"""
        user = make_user()
        resume = make_resume(user, NOW - timedelta(hours=30), title="Data Analyst")

        job = schedule_abandoned_resume_email(
            user.id, resume.id, resume.title, db_session, now=NOW, last_edited=resume.updated_at
        )

        assert ensure_utc(job.scheduled_at) == NOW
        assert job.job_metadata["resumeId"] == resume.id
        assert job.job_metadata["resumeTitle"] == "Data Analyst"
        assert job.job_metadata["lastEdited"] == "2026-03-01"

    def test_detect_schedules_and_audits(self, db_session, make_user, make_resume):
        """Test the detector run queues one job per user and writes an audit entry"""
        first = make_user()
        second = make_user()
        make_resume(first, NOW - timedelta(hours=30))
        make_resume(second, NOW - timedelta(hours=36))

        summary = detect_abandoned_resumes(db_session, now=NOW)

        assert summary.detected == 2
        assert summary.scheduled == 2
        assert summary.failed == 0
        audit = db_session.query(AuditLog).filter(AuditLog.action == "DETECT_ABANDONED_RESUMES").one()
        assert audit.actor == "system:cron"
        assert audit.details == {"detected": 2, "scheduled": 2, "failed": 0}

        # A second run finds nothing new
        assert detect_abandoned_resumes(db_session, now=NOW).detected == 0


@pytest.mark.critical
class TestReengagementDetection:
    """Test inactivity thresholds, cooldown and tiering"""

    def test_bucket_for_inactivity(self):
        """Test the largest qualifying threshold is chosen"""
        assert bucket_for_inactivity(95, 30) == 90
        assert bucket_for_inactivity(90, 30) == 90
        assert bucket_for_inactivity(61, 30) == 60
        assert bucket_for_inactivity(30, 30) == 30
        assert bucket_for_inactivity(10, 30) == 30

    def test_inactive_user_found_with_bucket(self, db_session, make_user):
        """Test a 95-day inactive user is reported in the 90-day tier"""
        user = make_user(last_login_at=NOW - timedelta(days=95))

        found = find_inactive_users(db_session, threshold=30, now=NOW)

        assert len(found) == 1
        assert found[0].user_id == user.id
        assert found[0].inactive_days == 95
        assert found[0].threshold == 90

    def test_recent_and_unknown_logins_excluded(self, db_session, make_user):
        """Test active users and users without a login timestamp are skipped"""
        make_user(last_login_at=NOW - timedelta(days=29))
        make_user(last_login_at=None)

        assert find_inactive_users(db_session, threshold=30, now=NOW) == []

    def test_most_inactive_first_and_limit(self, db_session, make_user):
        """Test ordering by last login and the result limit"""
        mid = make_user(last_login_at=NOW - timedelta(days=40))
        oldest = make_user(last_login_at=NOW - timedelta(days=120))
        make_user(last_login_at=NOW - timedelta(days=31))

        found = find_inactive_users(db_session, threshold=30, limit=2, now=NOW)

        assert [item.user_id for item in found] == [oldest.id, mid.id]

    def test_opted_out_excluded(self, db_session, make_user):
        """Test global and per-campaign opt-outs are honoured"""
        make_user(last_login_at=NOW - timedelta(days=45), email_opt_out=True)
        make_user(last_login_at=NOW - timedelta(days=45), email_preferences={"RE_ENGAGEMENT": False})

        assert find_inactive_users(db_session, threshold=30, now=NOW) == []

    def test_campaign_opt_outs_do_not_fill_limit(self, db_session, make_user):
        """Test users unsubscribed from re-engagement don't take the limited result slots"""
        for _ in range(3):
            make_user(last_login_at=NOW - timedelta(days=200), email_preferences={"RE_ENGAGEMENT": False})
        eligible = make_user(last_login_at=NOW - timedelta(days=45))

        found = find_inactive_users(db_session, threshold=30, limit=3, now=NOW)

        assert [item.user_id for item in found] == [eligible.id]

    def test_detect_reaches_users_behind_many_opt_outs(self, db_session, make_user):
        """Test a full page of campaign opt-outs doesn't block detection"""
        for _ in range(100):
            make_user(last_login_at=NOW - timedelta(days=200), email_preferences={"locale": "en", "RE_ENGAGEMENT": False})
        eligible = make_user(last_login_at=NOW - timedelta(days=95))

        summary = detect_inactive_users(db_session, now=NOW)

        assert summary.scheduled == 1
        assert summary.by_threshold == {90: 1, 60: 0, 30: 0}
        assert len(_jobs(db_session, eligible, EmailCampaign.RE_ENGAGEMENT)) == 1

    def test_cooldown_after_sent_email(self, db_session, make_user):
        """Test an email sent 20 days ago blocks the user, one sent 31 days ago does not"""
        recent = make_user(last_login_at=NOW - timedelta(days=70))
        older = make_user(last_login_at=NOW - timedelta(days=70))
        _sent_job(db_session, recent, EmailCampaign.RE_ENGAGEMENT, NOW - timedelta(days=20))
        _sent_job(db_session, older, EmailCampaign.RE_ENGAGEMENT, NOW - timedelta(days=31))

        found = find_inactive_users(db_session, threshold=30, now=NOW)

        assert [item.user_id for item in found] == [older.id]

    def test_schedule_is_idempotent(self, db_session, make_user):
        """Test repeated scheduling keeps a single PENDING job"""
        user = make_user(last_login_at=NOW - timedelta(days=65))

        first = schedule_reengagement_email(user.id, 60, 65, db_session, now=NOW)
        second = schedule_reengagement_email(user.id, 60, 65, db_session, now=NOW)

        assert first.id == second.id
        assert first.job_metadata == {"threshold": 60, "inactiveDays": 65}

    def test_detect_assigns_each_user_one_tier(self, db_session, make_user):
        """Test longest thresholds run first and users are not double-scheduled"""
        at_90 = make_user(last_login_at=NOW - timedelta(days=95))
        at_60 = make_user(last_login_at=NOW - timedelta(days=65))
        at_30 = make_user(last_login_at=NOW - timedelta(days=35))

        summary = detect_inactive_users(db_session, now=NOW)

        assert summary.by_threshold == {90: 1, 60: 1, 30: 1}
        assert summary.detected == 3
        assert summary.scheduled == 3
        for user, threshold in ((at_90, 90), (at_60, 60), (at_30, 30)):
            jobs = _jobs(db_session, user, EmailCampaign.RE_ENGAGEMENT)
            assert len(jobs) == 1
            assert jobs[0].job_metadata["threshold"] == threshold

        audit = db_session.query(AuditLog).filter(AuditLog.action == "DETECT_REENGAGEMENT").one()
        assert audit.details["byThreshold"] == {"90": 1, "60": 1, "30": 1}
