"""API endpoint tests (cron triggers, welcome enqueue, unsubscribe, admin stats, monitoring)"""
import pytest
from datetime import timedelta
from unittest.mock import patch

from drip.core.config import settings
from drip.models.audit_log import AuditLog
from drip.models.email_job import EmailJob, EmailCampaign, EmailJobStatus
from drip.models.user import User
from drip.services.email_service import generate_unsubscribe_token
from drip.services.schedulers import schedule_welcome_series
from drip.utils.dates import utcnow

CRON_FIELDS = {"success", "message", "timestamp"}


@pytest.mark.critical
class TestCronAuth:
    """Test the CRON_SECRET bearer guard"""

    def test_missing_header_rejected(self, client):
        """Test requests without a bearer token are unauthorized"""
        response = client.post("/api/cron/process-emails")
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"

    def test_wrong_secret_rejected(self, client):
        """Test a wrong bearer token is unauthorized"""
        response = client.post("/api/cron/process-emails", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_unset_secret_disables_endpoint(self, client, cron_headers):
        """Test cron endpoints refuse to run without a configured secret"""
        with patch.object(settings, "CRON_SECRET", ""):
            response = client.post("/api/cron/process-emails", headers=cron_headers)
        assert response.status_code == 503
        assert response.json()["detail"] == "Cron endpoint not configured"

    @pytest.mark.parametrize("path", ["/api/cron/process-emails", "/api/cron/detect-abandoned", "/api/cron/detect-reengagement"])
    def test_get_and_post_accepted(self, client, cron_headers, path):
        """Test every cron endpoint answers GET and POST"""
        assert client.get(path, headers=cron_headers).status_code == 200
        assert client.post(path, headers=cron_headers).status_code == 200


@pytest.mark.critical
class TestProcessEmailsEndpoint:
    """Test the process-emails trigger"""

    def test_no_pending_jobs(self, client, cron_headers):
        """Test the response contract for an empty run"""
        response = client.post("/api/cron/process-emails", headers=cron_headers)

        assert response.status_code == 200
        data = response.json()
        assert CRON_FIELDS <= set(data)
        assert data["success"] is True
        assert data["message"] == "No pending email jobs"
        assert data["processed"] == 0
        assert data["sent"] == 0

    def test_processes_due_job(self, client, cron_headers, db_session, test_user, mock_resend):
        """Test a due job is sent through the endpoint"""
        schedule_welcome_series(test_user.id, db_session, now=utcnow() - timedelta(minutes=1))

        response = client.post("/api/cron/process-emails", headers=cron_headers)

        data = response.json()
        assert data["message"] == "Processed 1 email jobs: 1 sent, 0 failed, 0 skipped"
        assert data["processed"] == 1
        assert data["sent"] == 1
        mock_resend.Emails.send.assert_called_once()

    def test_unexpected_error_returns_500(self, client, cron_headers):
        """Test an unhandled processor error is reported as a failed cron job"""
        with patch("drip.api.cron.process_email_jobs", side_effect=RuntimeError("db gone")):
            response = client.post("/api/cron/process-emails", headers=cron_headers)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Cron job failed"}


@pytest.mark.critical
class TestDetectEndpoints:
    """Test the detector triggers"""

    def test_detect_abandoned(self, client, cron_headers, db_session, make_user, make_resume):
        """Test abandoned drafts are detected and scheduled"""
        user = make_user()
        make_resume(user, utcnow() - timedelta(hours=30))

        response = client.post("/api/cron/detect-abandoned", headers=cron_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["detected"] == 1
        assert data["scheduled"] == 1
        assert data["message"] == "Detected 1 abandoned resumes, scheduled 1 emails"
        job = db_session.query(EmailJob).filter(EmailJob.user_id == user.id).one()
        assert job.campaign == EmailCampaign.ABANDONED_RESUME.value

    def test_detect_abandoned_nothing_found(self, client, cron_headers):
        """Test the empty detector message"""
        data = client.post("/api/cron/detect-abandoned", headers=cron_headers).json()

        assert data["detected"] == 0
        assert data["message"] == "No abandoned resumes detected"

    def test_detect_reengagement(self, client, cron_headers, db_session, make_user):
        """Test inactive users are tiered and reported per threshold"""
        now = utcnow()
        make_user(last_login_at=now - timedelta(days=100))
        make_user(last_login_at=now - timedelta(days=45))
        make_user(last_login_at=now - timedelta(days=5))

        response = client.post("/api/cron/detect-reengagement", headers=cron_headers)

        data = response.json()
        assert data["detected"] == 2
        assert data["scheduled"] == 2
        assert data["byThreshold"] == {"90": 1, "60": 0, "30": 1}
        assert data["message"] == "Detected 2 inactive users, scheduled 2 re-engagement emails"
        assert db_session.query(AuditLog).filter(AuditLog.action == "DETECT_REENGAGEMENT").count() == 1


@pytest.mark.high
class TestWelcomeEndpoints:
    """Test the welcome series endpoints used by the signup flow"""

    def test_enqueue_welcome(self, client, cron_headers, test_user):
        """Test a new user gets a day 0 welcome job"""
        response = client.post(f"/api/email/users/{test_user.id}/welcome", headers=cron_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["scheduled"] is True
        assert data["job"]["campaign"] == "WELCOME"
        assert data["job"]["status"] == "PENDING"
        assert data["job"]["metadata"]["key"] == "day0"

    def test_enqueue_for_opted_out_user(self, client, cron_headers, make_user):
        """Test nothing is scheduled for an opted-out user"""
        user = make_user(email_opt_out=True)

        response = client.post(f"/api/email/users/{user.id}/welcome", headers=cron_headers)

        assert response.json() == {"scheduled": False}

    def test_enqueue_requires_auth(self, client, test_user):
        """Test the endpoint is protected by the cron secret"""
        assert client.post(f"/api/email/users/{test_user.id}/welcome").status_code == 401

    def test_cancel_welcome(self, client, cron_headers, db_session, test_user):
        """Test the pending welcome job can be cancelled"""
        schedule_welcome_series(test_user.id, db_session)

        response = client.delete(f"/api/email/users/{test_user.id}/welcome", headers=cron_headers)

        assert response.json() == {"cancelled": 1}


@pytest.mark.critical
class TestUnsubscribeEndpoints:
    """Test unsubscribe links and one-click unsubscribe"""

    def test_link_unsubscribes(self, client, db_session, test_user):
        """Test following the email link disables the campaign and cancels pending jobs"""
        job = schedule_welcome_series(test_user.id, db_session)
        token = generate_unsubscribe_token(test_user.id, EmailCampaign.WELCOME)

        response = client.get("/api/unsubscribe", params={"token": token})

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "You have been unsubscribed" in response.text
        db_session.expire_all()
        assert db_session.query(User).filter(User.id == test_user.id).one().email_preferences["WELCOME"] is False
        assert db_session.query(EmailJob).filter(EmailJob.id == job.id).one().status == EmailJobStatus.CANCELLED.value

    def test_one_click_post(self, client, db_session, test_user):
        """Test RFC 8058 one-click unsubscribe with the token in the query string"""
        token = generate_unsubscribe_token(test_user.id, EmailCampaign.RE_ENGAGEMENT)

        response = client.post(
            f"/api/unsubscribe?token={token}",
            content="List-Unsubscribe=One-Click",
            headers={"Content-Type": "application/x-www-form-urlencoded"}
        )

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_json_body_post(self, client, test_user):
        """Test the token can be posted as JSON"""
        token = generate_unsubscribe_token(test_user.id, EmailCampaign.ABANDONED_RESUME)

        response = client.post("/api/unsubscribe", json={"token": token})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "You have been unsubscribed from these emails."}

    def test_invalid_token(self, client):
        """Test a forged token is a bad request"""
        response = client.get("/api/unsubscribe", params={"token": "forged.token"})
        assert response.status_code == 400

    def test_missing_token(self, client):
        """Test a request without a token is a bad request"""
        response = client.post("/api/unsubscribe", json={})
        assert response.status_code == 400

    def test_rate_limited(self, client, test_user):
        """Test repeated requests from one client are throttled"""
        token = generate_unsubscribe_token(test_user.id, EmailCampaign.WELCOME)

        with patch.object(settings, "UNSUBSCRIBE_RATE_LIMIT_REQUESTS", 2):
            codes = [client.get("/api/unsubscribe", params={"token": token}).status_code for _ in range(3)]

        assert codes == [200, 200, 429]

    def test_redis_outage_fails_open(self, client, test_user):
        """Test unsubscribes still work when Redis is unreachable"""
        token = generate_unsubscribe_token(test_user.id, EmailCampaign.WELCOME)

        with patch("drip.core.security.redis_check_rate_limit", side_effect=ConnectionError("redis down")):
            response = client.get("/api/unsubscribe", params={"token": token})

        assert response.status_code == 200


@pytest.mark.high
class TestAdminStats:
    """Test the admin statistics endpoint"""

    def test_requires_token(self, client):
        """Test stats are not public"""
        assert client.get("/api/admin/email/stats").status_code == 401

    def test_stats_overview(self, client, admin_headers, db_session, make_user, mock_resend):
        """Test the overview reflects jobs and delivery logs"""
        sent_user = make_user()
        pending_user = make_user()
        schedule_welcome_series(sent_user.id, db_session, now=utcnow() - timedelta(minutes=1))
        client.post("/api/cron/process-emails", headers={"Authorization": "Bearer test-cron-secret"})
        db_session.add(EmailJob(
            user_id=pending_user.id,
            campaign=EmailCampaign.RE_ENGAGEMENT.value,
            status=EmailJobStatus.PENDING.value,
            scheduled_at=utcnow() + timedelta(days=1),
            job_metadata={"threshold": 30}
        ))
        db_session.commit()

        response = client.get("/api/admin/email/stats", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        # One sent log; pending jobs are the next welcome step plus the re-engagement job
        assert data["overview"] == {"totalSent": 1, "totalPending": 2, "totalFailed": 0}
        assert data["jobsByStatus"]["SENT"] == 1
        assert data["campaignCounts"]["WELCOME"] == 2
        assert data["deliveryCounts"] == {"SENT": 1}
        assert len(data["recentLogs"]) == 1
        assert data["recentLogs"][0]["campaign"] == "WELCOME"
        assert sum(day["count"] for day in data["dailySentCounts"]) == 1


@pytest.mark.medium
class TestMonitoring:
    """Test health and metrics endpoints"""

    def test_health(self, client):
        """Test the health check reports a reachable database"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics(self, client, db_session, test_user):
        """Test Prometheus metrics include the job gauges"""
        schedule_welcome_series(test_user.id, db_session)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "drip_email_jobs" in response.text
