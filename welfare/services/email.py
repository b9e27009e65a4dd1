"""
Email Service - transactional mail for users of the welfare portal.

Delivery problems never raise: every ``send_*`` method returns an
``EmailResult`` and logs the failure, so a broken mail server cannot undo
the request that triggered the message.
"""
import html
import logging
import re
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Any, List, Optional

from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NOT_CONFIGURED = "Email service not configured"


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class EmergencyAlertNotice:
    title: str
    message: str
    severity: str = "high"
    location: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    text: str


# ============================================================================
# Transports
# ============================================================================

class SmtpTransport:
    """Delivers through an SMTP relay with STARTTLS and login."""

    def __init__(self, host: str, port: int, user: str, password: str, use_tls: bool = True, from_name: str = ""):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_name = from_name

    def deliver(self, email: OutgoingEmail) -> str:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.user))
        message["To"] = email.to
        message["Subject"] = email.subject
        message["Message-ID"] = make_msgid(domain=self.user.split("@")[-1])
        message.set_content(email.text)
        message.add_alternative(email.html, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(message)
        return message["Message-ID"]


class ConsoleTransport:
    """Writes messages to the log instead of sending them (development)."""

    def __init__(self):
        self._counter = 0

    def deliver(self, email: OutgoingEmail) -> str:
        self._counter += 1
        logger.info("[email] to=%s subject=%r\n%s", email.to, email.subject, email.text)
        return f"console-{self._counter}"


class MemoryTransport:
    """Keeps every message in ``outbox``; used by the test-suite."""

    def __init__(self):
        self.outbox: List[OutgoingEmail] = []

    def deliver(self, email: OutgoingEmail) -> str:
        self.outbox.append(email)
        return f"memory-{len(self.outbox)}"

    def clear(self) -> None:
        self.outbox.clear()


def build_transport(config: Settings) -> Optional[Any]:
    """Transport selected by ``EMAIL_TRANSPORT``; None when SMTP lacks credentials."""
    kind = config.email_transport.lower()
    if kind == "memory":
        return MemoryTransport()
    if kind == "console":
        return ConsoleTransport()
    if kind == "smtp":
        if not config.smtp_user or not config.smtp_password:
            logger.warning("Email service not configured - missing SMTP_USER or SMTP_PASSWORD")
            return None
        return SmtpTransport(
            host=config.smtp_host,
            port=config.smtp_port,
            user=config.smtp_user,
            password=config.smtp_password,
            use_tls=config.smtp_use_tls,
            from_name=config.email_from_name,
        )
    raise ValueError(f"Unknown email transport: {config.email_transport}")


# ============================================================================
# Templates
# ============================================================================

BASE_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { color: white; padding: 20px; text-align: center; }
    .content { padding: 20px; background: #f9f9f9; }
    .footer { text-align: center; padding: 20px; font-size: 12px; color: #666; }
    .button { color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px; display: inline-block; }
"""


def _h(value: Any) -> str:
    return html.escape(str(value))


def _layout(title: str, body: str, accent: str = "#2c5aa0") -> str:
    return f"""<!DOCTYPE html>
<html>
<head><style>{BASE_STYLE}</style></head>
<body>
  <div class="container">
    <div class="header" style="background: {accent};"><h1>{_h(title)}</h1></div>
    <div class="content">{body}</div>
    <div class="footer">
      <p>Armed Forces Welfare Management System</p>
      <p>This is an automated message. Please do not reply to this email.</p>
    </div>
  </div>
</body>
</html>"""


def _button(href: str, label: str, accent: str = "#2c5aa0") -> str:
    return f'<p><a href="{_h(href)}" class="button" style="background: {accent};">{_h(label)}</a></p>'


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%d %b %Y") if value else "N/A"


APPLICATION_STAGE_MESSAGES = {
    "Draft": "Your application has been saved as a draft.",
    "Submitted": "Your application has been submitted successfully and is awaiting review.",
    "Processing": "Your application is currently being processed by our team.",
    "Approved": "Congratulations! Your application has been approved.",
}

GRIEVANCE_STAGE_MESSAGES = {
    "Draft": "Your grievance has been saved as a draft.",
    "Submitted": "Your grievance has been submitted and assigned a ticket number.",
    "UnderReview": "Your grievance is currently being investigated.",
    "Resolved": "Your grievance has been resolved.",
}


class EmailService:
    def __init__(self, transport: Optional[Any] = None, config: Optional[Settings] = None):
        self.config = config or default_settings
        self.transport = transport

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "EmailService":
        config = config or default_settings
        return cls(build_transport(config), config)

    @property
    def frontend_url(self) -> str:
        return self.config.frontend_url.rstrip("/")

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        return bool(email) and EMAIL_RE.match(email) is not None

    def send_email(self, to: str, subject: str, html: str, text: str) -> EmailResult:
        if self.transport is None:
            logger.error("Email service not initialized")
            return EmailResult(success=False, error=NOT_CONFIGURED)
        if not self.is_valid_email(to):
            return EmailResult(success=False, error=f"Invalid recipient address: {to}")

        # user text reaches the subject; keep it on one header line
        subject = " ".join(subject.split())
        try:
            message_id = self.transport.deliver(OutgoingEmail(to=to, subject=subject, html=html, text=text))
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            logger.error("Failed to send email to %s: %s", to, exc)
            return EmailResult(success=False, error=str(exc))

        logger.info("Email sent successfully to %s (message_id=%s)", to, message_id)
        return EmailResult(success=True, message_id=message_id)

    # ------------------------------------------------------------------------
    # Account mail
    # ------------------------------------------------------------------------

    def send_welcome_email(self, user) -> EmailResult:
        body = f"""
            <h2>Hello {_h(user.first_name)} {_h(user.last_name)}!</h2>
            <p>Welcome to the Armed Forces Welfare Management System. Your account has been successfully created.</p>
            <h3>Your Account Details:</h3>
            <ul>
              <li><strong>Email:</strong> {_h(user.email)}</li>
              <li><strong>Role:</strong> {_h(_value(user.role))}</li>
              <li><strong>Service Number:</strong> {_h(user.service_number or 'N/A')}</li>
              <li><strong>Unit:</strong> {_h(user.unit or 'N/A')}</li>
            </ul>
            <p>With this system, you can apply for welfare schemes and submit and track grievances.</p>
            {_button(self.frontend_url, 'Access Portal')}
            <p>Thank you for your service!</p>
        """
        return self.send_email(
            to=user.email,
            subject="Welcome to Armed Forces Welfare Management System",
            html=_layout("Welcome to Armed Forces Welfare Management System", body),
            text=f"Welcome to AFWMS! Your account has been created successfully. "
                 f"Visit {self.frontend_url} to access the portal.",
        )

    def send_password_reset_email(self, user, reset_token: str) -> EmailResult:
        reset_url = f"{self.frontend_url}/reset-password?token={reset_token}"
        body = f"""
            <h2>Hello {_h(user.first_name)}!</h2>
            <p>You have requested to reset your password for the Armed Forces Welfare Management System.</p>
            {_button(reset_url, 'Reset Password')}
            <p>If the button doesn't work, copy and paste this link into your browser:</p>
            <p><a href="{_h(reset_url)}">{_h(reset_url)}</a></p>
            <p><strong>This link will expire in 1 hour.</strong></p>
            <p>If you didn't request this password reset, please ignore this email.</p>
        """
        return self.send_email(
            to=user.email,
            subject="Password Reset Request - AFWMS",
            html=_layout("Password Reset Request", body),
            text=f"Password reset requested. Click this link to reset: {reset_url} (expires in 1 hour)",
        )

    def send_notification_email(self, user, title: str, message: str, link: Optional[str] = None) -> EmailResult:
        body = f"""
            <h2>Hello {_h(user.first_name)}!</h2>
            <h3>{_h(title)}</h3>
            <p>{_h(message)}</p>
            {_button(self.frontend_url + (link or ''), 'Open Portal')}
        """
        return self.send_email(
            to=user.email,
            subject=f"{title} - AFWMS",
            html=_layout("Notification", body),
            text=f"{title}: {message}",
        )

    # ------------------------------------------------------------------------
    # Workflow mail
    # ------------------------------------------------------------------------

    def send_application_update_email(self, user, application, scheme) -> EmailResult:
        stage = application.stage
        status_message = APPLICATION_STAGE_MESSAGES.get(stage, f"Your application is now {stage}.")
        notes = f"<h3>Review Notes:</h3><p>{_h(application.admin_comments)}</p>" if application.admin_comments else ""
        body = f"""
            <h2>Hello {_h(user.first_name)}!</h2>
            <h3>Status: {_h(stage)}</h3>
            <p>{_h(status_message)}</p>
            <h3>Application Details:</h3>
            <ul>
              <li><strong>Reference:</strong> {_h(application.application_id)}</li>
              <li><strong>Scheme:</strong> {_h(scheme.name)}</li>
              <li><strong>Submitted On:</strong> {_date(application.submitted_at)}</li>
            </ul>
            {notes}
            {_button(f'{self.frontend_url}/applications', 'View Application')}
        """
        return self.send_email(
            to=user.email,
            subject=f"Application Status Update - {scheme.name}",
            html=_layout("Application Status Update", body),
            text=f"Your application for {scheme.name} status has been updated to: {stage}. {status_message}",
        )

    def send_grievance_status_email(self, user, grievance) -> EmailResult:
        stage = grievance.stage
        status_message = GRIEVANCE_STAGE_MESSAGES.get(stage, f"Your grievance is now {stage}.")
        body = f"""
            <h2>Hello {_h(user.first_name)}!</h2>
            <p>Status: {_h(stage)} - {_h(status_message)}</p>
            <p>Ticket: #{_h(grievance.grievance_id)}</p>
            {_button(f'{self.frontend_url}/grievances/{grievance.id}', 'View Grievance', '#6c757d')}
        """
        return self.send_email(
            to=user.email,
            subject=f"Grievance Update - Ticket #{grievance.grievance_id}",
            html=_layout("Grievance Update", body, accent="#6c757d"),
            text=f"Grievance Update: Ticket #{grievance.grievance_id} status changed to {stage}.",
        )

    def send_emergency_alert_email(self, user, alert: EmergencyAlertNotice) -> EmailResult:
        location = f"<p><strong>Location:</strong> {_h(alert.location)}</p>" if alert.location else ""
        body = f"""
            <h2>{_h(alert.title)}</h2>
            <p><strong>Severity: {_h(alert.severity.upper())}</strong></p>
            <p><strong>Message:</strong> {_h(alert.message)}</p>
            {location}
            <p><strong>Time:</strong> {alert.created_at.strftime('%d %b %Y %H:%M')}</p>
            <p><strong>Action Required:</strong> Please check the emergency portal for detailed instructions and updates.</p>
            {_button(f'{self.frontend_url}/emergency', 'View Emergency Portal', '#dc3545')}
        """
        return self.send_email(
            to=user.email,
            subject=f"EMERGENCY ALERT - {alert.title}",
            html=_layout("EMERGENCY ALERT", body, accent="#dc3545"),
            text=f"EMERGENCY ALERT - {alert.title}. Severity: {alert.severity}. "
                 f"Message: {alert.message}. Check emergency portal for details.",
        )


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)
