from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import logging

import boto3
from jinja2 import Environment, FileSystemLoader, select_autoescape

from partnerhub.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"


@dataclass
class EmailPayload:
    subject: str
    body_text: str
    body_html: str


class EmailService:
    def __init__(self) -> None:
        self.enabled = settings.email_enabled
        self.client = boto3.client("ses", region_name=settings.ses_region) if self.enabled else None
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
        )

    def render(self, template_name: str, context: Dict[str, object]) -> EmailPayload:
        html_template = self.env.get_template(f"{template_name}.html.j2")
        text_template = self.env.get_template(f"{template_name}.txt.j2")
        subject = context.get("subject", f"{settings.app_name} からのお知らせ")
        context = {"app_name": settings.app_name, **context}
        return EmailPayload(
            subject=str(subject),
            body_text=text_template.render(**context),
            body_html=html_template.render(**context),
        )

    def send(self, recipients: List[str], payload: EmailPayload) -> None:
        if not self.enabled:
            return
        if not recipients:
            return
        if not self.client:
            return
        for recipient in recipients:
            try:
                self.client.send_email(
                    Source=settings.ses_sender,
                    Destination={"ToAddresses": [recipient]},
                    Message={
                        "Subject": {"Data": payload.subject, "Charset": "UTF-8"},
                        "Body": {
                            "Text": {"Data": payload.body_text, "Charset": "UTF-8"},
                            "Html": {"Data": payload.body_html, "Charset": "UTF-8"},
                        },
                    },
                )
            except Exception as exc:
                logger.exception("email send failed", extra={"recipient": recipient, "error": str(exc)})
