"""
Outbound email for invites and password resets.

Each message is rendered from a plain-text template, wrapped into a small
HTML alternative and recorded as an ``EmailLog`` row before delivery. With
no MAIL_SERVER configured nothing leaves the process: the row is marked
``sent`` and the message is written to the log instead, which is what the
development and test configurations rely on.

The log row is flushed, never committed; it belongs to the caller's
transaction (creating the invite, issuing the reset token).
"""

from __future__ import annotations

import html
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr

from flask import current_app

from app.models import db, utcnow
from app.models.email import EmailLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailTemplate:
    subject: str
    text: str
    link_label: str


TEMPLATES = {
    "invite": MailTemplate(
        subject="You have been invited to ReqBridge",
        text=(
            "{inviter} invited you to collaborate on requirements in ReqBridge.\n"
            "The invitation can be used once and is valid for {expiry_days} days."
        ),
        link_label="Create your account",
    ),
    "password_reset": MailTemplate(
        subject="Reset your ReqBridge password",
        text=(
            "Hi {name},\n"
            "someone asked to reset the password of your ReqBridge account.\n"
            "The link below works for {expiry_minutes} minutes. If it was not you, "
            "ignore this email and your password stays as it is."
        ),
        link_label="Choose a new password",
    ),
}

_HTML_SHELL = (
    '<div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto;">'
    '<h2 style="font-size: 18px; color: #1e293b;">ReqBridge</h2>'
    '{paragraphs}'
    '<p><a href="{link}" style="color: #2563eb;">{label}</a></p>'
    "</div>"
)


def _app_link(path: str) -> str:
    return current_app.config.get("APP_BASE_URL", "").rstrip("/") + path


class EmailService:

    @staticmethod
    def is_configured() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def render(template_name: str, link: str, **context) -> tuple[str, str, str]:
        """Return ``(subject, text, html)`` for a named template.

        Raises:
            KeyError: unknown template name.
        """
        tpl = TEMPLATES[template_name]
        body = tpl.text.format(**context)
        text = f"{body}\n\n{tpl.link_label}: {link}\n"
        paragraphs = "".join(
            f'<p style="color: #475569; line-height: 1.6;">{html.escape(chunk)}</p>'
            for chunk in body.split("\n")
        )
        markup = _HTML_SHELL.format(paragraphs=paragraphs, link=html.escape(link, quote=True),
                                    label=html.escape(tpl.link_label))
        return tpl.subject, text, markup

    @classmethod
    def send(cls, template_name: str, *, to_email: str, to_name: str | None = None,
             link: str, category: str, **context) -> EmailLog:
        subject, text, markup = cls.render(template_name, link, **context)

        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject,
            template_name=template_name,
            category=category,
            status="queued",
        )
        db.session.add(log)
        db.session.flush()

        if not cls.is_configured():
            log.status = "sent"
            log.sent_at = utcnow()
            logger.info("Email not delivered (no MAIL_SERVER): %s to %s, link %s",
                        template_name, to_email, link)
            return log

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = current_app.config.get("MAIL_DEFAULT_SENDER")
        msg["To"] = formataddr((to_name or "", to_email))
        msg.set_content(text)
        msg.add_alternative(markup, subtype="html")

        try:
            cls._deliver(msg)
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email %s to %s failed: %s", template_name, to_email, exc)
        else:
            log.status = "sent"
            log.sent_at = utcnow()
            logger.info("Email %s sent to %s", template_name, to_email)
        return log

    @staticmethod
    def _deliver(msg: EmailMessage) -> None:
        cfg = current_app.config
        with smtplib.SMTP(cfg["MAIL_SERVER"], cfg.get("MAIL_PORT", 587), timeout=30) as smtp:
            if cfg.get("MAIL_USE_TLS", True):
                smtp.starttls()
            if cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"):
                smtp.login(cfg["MAIL_USERNAME"], cfg["MAIL_PASSWORD"])
            smtp.send_message(msg)

    # ── Application emails ───────────────────────────────────────────────

    @classmethod
    def send_invite(cls, invite, inviter_name: str) -> EmailLog:
        return cls.send(
            "invite",
            to_email=invite.email,
            link=_app_link(f"/register?invite={invite.token}"),
            category="invite",
            inviter=inviter_name,
            expiry_days=current_app.config.get("INVITE_EXPIRY_DAYS", 7),
        )

    @classmethod
    def send_password_reset(cls, user, token: str) -> EmailLog:
        return cls.send(
            "password_reset",
            to_email=user.email,
            to_name=user.display_name,
            link=_app_link(f"/reset-password?token={token}"),
            category="password_reset",
            name=user.display_name,
            expiry_minutes=current_app.config.get("RESET_TOKEN_EXPIRY_MINUTES", 60),
        )
