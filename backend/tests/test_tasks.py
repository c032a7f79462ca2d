"""
Tests for Celery Background Tasks

Tests cover:
- Celery app configuration
- send_email task (skip without provider key, delivery, retries)
- Best-effort enqueueing from the request path
"""

import httpx
import pytest
from unittest.mock import MagicMock, patch
from celery.exceptions import Retry

from jobboard.celery import celery_app
from jobboard.services.notifications import dispatch_email
from jobboard.tasks.notifications import RESEND_API_URL, send_email


class TestCeleryApp:
    """Test Celery app configuration."""

    def test_celery_app_exists(self):
        assert celery_app is not None
        assert celery_app.main == "jobboard"

    def test_celery_uses_redis_broker(self):
        assert "redis" in celery_app.conf.broker_url

    def test_celery_uses_redis_backend(self):
        assert "redis" in celery_app.conf.result_backend

    def test_email_routed_to_notifications_queue(self):
        routes = celery_app.conf.task_routes
        assert routes["jobboard.tasks.notifications.send_email"] == {"queue": "notifications"}


class TestSendEmailTask:
    """Test send_email task."""

    @pytest.fixture
    def mock_settings(self):
        settings = MagicMock()
        settings.resend_api_key = "re_test_key"
        settings.resend_from_email = "Jobboard <noreply@example.com>"
        with patch("jobboard.tasks.notifications.get_settings", return_value=settings):
            yield settings

    def test_skips_without_api_key(self):
        with patch("jobboard.tasks.notifications.httpx.post") as mock_post:
            result = send_email.run("owner@example.com", "Subject", "<p>Body</p>")

        assert result == {"sent": False, "reason": "not_configured"}
        mock_post.assert_not_called()

    def test_sends_through_provider(self, mock_settings):
        response = MagicMock()
        response.json.return_value = {"id": "email-123"}

        with patch("jobboard.tasks.notifications.httpx.post", return_value=response) as mock_post:
            result = send_email.run("owner@example.com", "Your ad expires today", "<p>Renew</p>")

        assert result == {"sent": True, "id": "email-123"}
        args, kwargs = mock_post.call_args
        assert args[0] == RESEND_API_URL
        assert kwargs["headers"] == {"Authorization": "Bearer re_test_key"}
        assert kwargs["json"]["to"] == ["owner@example.com"]
        assert kwargs["json"]["from"] == "Jobboard <noreply@example.com>"
        response.raise_for_status.assert_called_once()

    def test_retries_on_transport_error(self, mock_settings):
        error = httpx.ConnectError("connection refused")

        with patch("jobboard.tasks.notifications.httpx.post", side_effect=error):
            with patch.object(send_email, "retry", side_effect=Retry("retrying")) as mock_retry:
                with pytest.raises(Retry):
                    send_email.run("owner@example.com", "Subject", "<p>Body</p>")

        mock_retry.assert_called_once_with(exc=error, countdown=60)


class TestDispatchEmail:
    """Test enqueueing from request handlers and jobs."""

    def test_enqueues_task(self):
        with patch.object(send_email, "delay") as mock_delay:
            assert dispatch_email("owner@example.com", "Subject", "<p>Body</p>")
        mock_delay.assert_called_once_with("owner@example.com", "Subject", "<p>Body</p>")

    def test_broker_outage_does_not_raise(self):
        with patch.object(send_email, "delay", side_effect=ConnectionError("broker down")):
            assert dispatch_email("owner@example.com", "Subject", "<p>Body</p>") is False
