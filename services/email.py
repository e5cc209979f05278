import logging
import os
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import settings
from tasks.notification_tasks import send_email_task

logger = logging.getLogger(__name__)

_templates_env = Environment(
    loader=FileSystemLoader(searchpath=os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")),
    autoescape=select_autoescape(["html", "xml"]),
)


def render_template(template_path: str, context: Dict[str, Any]) -> str:
    """Render a text template from templates/ directory with provided context."""
    template = _templates_env.get_template(template_path)
    return template.render(**context)


def send_email(to_email: str, subject: str, body: str) -> None:
    """Queue an e-mail on the Celery worker. Returns without waiting for delivery."""
    if not settings.NOTIFICATION_EMAILS_ENABLED:
        logger.debug("Notification e-mails disabled; not sending %r to %s", subject, to_email)
        return
    send_email_task.delay(to_email, subject, body)


def send_templated_email(to_email: str, subject: str, template_path: str, context: Dict[str, Any]) -> None:
    body = render_template(template_path, context)
    send_email(to_email, subject, body)
