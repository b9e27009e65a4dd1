# tests/test_email_service.py
import smtplib
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from welfare.config import Settings
from welfare.services.email import (
    ConsoleTransport,
    EmailService,
    EmergencyAlertNotice,
    MemoryTransport,
    SmtpTransport,
    build_transport,
)


@pytest.fixture()
def user():
    return SimpleNamespace(
        first_name="Rajesh",
        last_name="Sharma",
        email="colonel.sharma@army.gov.in",
        role="officer",
        service_number="IC-45678",
        unit=None,
    )


@pytest.fixture()
def service(mail):
    return EmailService(transport=mail, config=Settings(frontend_url="https://welfare.example.org/"))


def test_welcome_email(service, mail, user):
    result = service.send_welcome_email(user)

    assert result.success
    assert result.message_id == "memory-1"
    sent = mail.outbox[0]
    assert sent.to == user.email
    assert sent.subject == "Welcome to Armed Forces Welfare Management System"
    assert "IC-45678" in sent.html
    assert "https://welfare.example.org" in sent.text


def test_password_reset_link(service, mail, user):
    service.send_password_reset_email(user, "tok123")
    assert "https://welfare.example.org/reset-password?token=tok123" in mail.outbox[0].html


def test_grievance_status_email(service, mail, user):
    grievance = SimpleNamespace(id="grv_1", grievance_id="GRV2026100042", stage="UnderReview")
    service.send_grievance_status_email(user, grievance)

    assert mail.outbox[0].subject == "Grievance Update - Ticket #GRV2026100042"
    assert "being investigated" in mail.outbox[0].html


def test_emergency_alert_email(service, mail, user):
    alert = EmergencyAlertNotice(title="Flood warning", message="Move to higher ground", severity="critical")
    service.send_emergency_alert_email(user, alert)

    assert mail.outbox[0].subject == "EMERGENCY ALERT - Flood warning"
    assert "CRITICAL" in mail.outbox[0].html


def test_notification_email(service, mail, user):
    result = service.send_notification_email(user, "New Grievance Submitted", "Please review")
    assert result.success
    assert mail.outbox[0].subject == "New Grievance Submitted - AFWMS"


def test_invalid_recipient_is_reported(service, mail, user):
    user.email = "not-an-email"
    result = service.send_welcome_email(user)
    assert not result.success
    assert "Invalid recipient" in result.error
    assert mail.outbox == []


def test_unconfigured_service():
    result = EmailService(transport=None).send_email("a@b.co", "s", "<p>h</p>", "t")
    assert not result.success
    assert result.error == "Email service not configured"


@pytest.mark.parametrize(
    "address, valid",
    [("a@b.co", True), ("first.last@army.gov.in", True), ("no-at-sign", False), ("a b@c.de", False), ("", False)],
)
def test_is_valid_email(address, valid):
    assert EmailService.is_valid_email(address) is valid


def test_build_transport_by_setting():
    assert isinstance(build_transport(Settings(email_transport="memory")), MemoryTransport)
    assert isinstance(build_transport(Settings(email_transport="console")), ConsoleTransport)
    assert build_transport(Settings(email_transport="smtp", smtp_user=None, smtp_password=None)) is None
    assert isinstance(
        build_transport(Settings(email_transport="smtp", smtp_user="u@x.org", smtp_password="pw")),
        SmtpTransport,
    )
    with pytest.raises(ValueError):
        build_transport(Settings(email_transport="pigeon"))


def test_smtp_transport_uses_starttls_and_login(user):
    transport = SmtpTransport("smtp.example.org", 587, "noreply@example.org", "pw", from_name="AFWMS")
    with patch("smtplib.SMTP") as smtp_cls:
        smtp = MagicMock()
        smtp_cls.return_value.__enter__.return_value = smtp
        result = EmailService(transport=transport).send_welcome_email(user)

    assert result.success
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("noreply@example.org", "pw")
    sent = smtp.send_message.call_args[0][0]
    assert sent["To"] == user.email
    assert "AFWMS" in sent["From"]


def test_smtp_failure_is_returned_not_raised(user):
    transport = SmtpTransport("smtp.example.org", 587, "noreply@example.org", "pw")
    with patch("smtplib.SMTP") as smtp_cls:
        smtp_cls.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad")
        result = EmailService(transport=transport).send_welcome_email(user)

    assert not result.success
    assert "535" in result.error


def test_user_text_is_escaped_in_html(service, mail, user):
    user.first_name = "<b>Rajesh</b>"
    service.send_notification_email(user, "<script>alert(1)</script>", 'Filed: <img src=x onerror=alert(1)>')

    html = mail.outbox[0].html
    assert "<script>" not in html
    assert "<img" not in html
    assert "&lt;img src=x onerror=alert(1)&gt;" in html
    assert "&lt;b&gt;Rajesh&lt;/b&gt;" in html
    assert "<img src=x onerror=alert(1)>" in mail.outbox[0].text


def test_application_notes_are_escaped(service, mail, user):
    application = SimpleNamespace(
        application_id="APP2026100001",
        stage="Approved",
        admin_comments='<a href="javascript:x">click</a>',
        submitted_at=None,
    )
    scheme = SimpleNamespace(name="Medical & Dental")
    service.send_application_update_email(user, application, scheme)

    html = mail.outbox[0].html
    assert "&lt;a href=&quot;javascript:x&quot;&gt;click&lt;/a&gt;" in html
    assert "Medical &amp; Dental" in html


def test_subject_is_kept_on_one_line(service, mail, user):
    result = service.send_notification_email(user, "Hello\r\nBcc: someone@example.org", "body")

    assert result.success
    assert mail.outbox[0].subject == "Hello Bcc: someone@example.org - AFWMS"


def test_header_error_is_returned_not_raised(user):
    transport = SmtpTransport("smtp.example.org", 587, "noreply@example.org", "pw", from_name="AFWMS\r\nBcc: x@y.org")
    with patch("smtplib.SMTP") as smtp_cls:
        result = EmailService(transport=transport).send_welcome_email(user)

    assert not result.success
    assert "linefeed" in result.error
    smtp_cls.assert_not_called()
