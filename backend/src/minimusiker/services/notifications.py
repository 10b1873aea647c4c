"""Transactional emails (German) and their dispatch.

Every email is a side effect of some primary action; dispatch goes through
``fire_and_forget`` so a failing send is logged and never fails the action.
"""

from datetime import date
from html import escape
from typing import List, Optional

from fastapi import BackgroundTasks

from minimusiker.clients.mailer import ResendMailer
from minimusiker.core.background import fire_and_forget
from minimusiker.core.config import settings


def _wrap(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #2d5f4f;">{escape(title)}</h1>'
        f"{body}"
        '<p style="color: #888; font-size: 12px;">Minimusiker · Musik macht Schule</p>'
        "</div>"
    )


def _format_date(value: Optional[date]) -> str:
    return value.strftime("%d.%m.%Y") if value else "-"


def magic_link_email(teacher_name: str, link: str) -> tuple:
    subject = "Dein Login-Link für das Minimusiker Pädagogen-Portal"
    body = (
        f"<p>Hallo {escape(teacher_name or '')},</p>"
        "<p>klicke auf den folgenden Link, um dich im Pädagogen-Portal anzumelden:</p>"
        f'<p><a href="{escape(link)}" style="background: #2d5f4f; color: #fff; '
        'padding: 12px 24px; text-decoration: none; border-radius: 6px;">Jetzt anmelden</a></p>'
        f"<p>Der Link ist {settings.MAGIC_LINK_TTL_HOURS} Stunden gültig und kann nur "
        "einmal verwendet werden.</p>"
    )
    return subject, _wrap("Anmeldung im Pädagogen-Portal", body)


def schulsong_teacher_approved_email(
    school_name: str, event_date: Optional[date], teacher_email: str
) -> tuple:
    subject = f"Schulsong freigegeben: {school_name} - {_format_date(event_date)}"
    body = (
        "<p>Der Lehrer hat den Schulsong freigegeben. Bitte prüfen und bestätigen "
        "Sie die Veröffentlichung.</p>"
        f"<p><strong>Schule:</strong> {escape(school_name)}<br>"
        f"<strong>Datum:</strong> {_format_date(event_date)}<br>"
        f"<strong>Freigegeben von:</strong> {escape(teacher_email)}</p>"
    )
    return subject, _wrap("Schulsong vom Lehrer freigegeben", body)


def schulsong_released_email(school_name: str, link: str) -> tuple:
    subject = f"Euer Schulsong ist da: {school_name}"
    body = (
        "<p>Liebe Pädagoginnen und Pädagogen,</p>"
        f"<p>der Schulsong der {escape(school_name)} ist jetzt veröffentlicht.</p>"
        f'<p><a href="{escape(link)}">Zum Pädagogen-Portal</a></p>'
    )
    return subject, _wrap("Der Schulsong ist veröffentlicht", body)


class NotificationService:
    def __init__(self, mailer: ResendMailer):
        self.mailer = mailer

    def _dispatch(
        self,
        background_tasks: Optional[BackgroundTasks],
        to: List[str],
        message: tuple,
        label: str,
    ) -> None:
        subject, html = message
        fire_and_forget(background_tasks, self.mailer.send, to, subject, html, label=label)

    def send_magic_link(
        self,
        email: str,
        teacher_name: str,
        token: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> None:
        link = f"{settings.APP_URL}/teacher-login?token={token}"
        self._dispatch(
            background_tasks, [email], magic_link_email(teacher_name, link), "magic-link-email"
        )

    def notify_schulsong_teacher_approved(
        self,
        school_name: str,
        event_date: Optional[date],
        teacher_email: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> None:
        recipients = list(settings.ADMIN_NOTIFICATION_EMAILS)
        if not recipients:
            return
        self._dispatch(
            background_tasks,
            recipients,
            schulsong_teacher_approved_email(school_name, event_date, teacher_email),
            "schulsong-teacher-approved-email",
        )

    def notify_schulsong_released(
        self,
        teacher_emails: List[str],
        school_name: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> None:
        if not teacher_emails:
            return
        self._dispatch(
            background_tasks,
            teacher_emails,
            schulsong_released_email(school_name, f"{settings.APP_URL}/paedagogen"),
            "schulsong-released-email",
        )
