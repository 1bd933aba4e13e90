"""Template rendering for digest emails using Jinja2.

Strict undefined checking makes a missing context variable fail the render
instead of producing a half-empty email.
"""

import logging
from typing import Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders the digest subject line and HTML/plain-text bodies.

    Templates live in the jobdigest.notifications.email_templates package
    directory and are cached by the Jinja2 environment after first load.
    Only ``.html.j2`` templates are autoescaped.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        subject_template: str = "digest_subject.j2",
        html_template: str = "digest_body.html.j2",
        text_template: str = "digest_body.txt.j2",
    ):
        self.subject_template_name = subject_template
        self.html_template_name = html_template
        self.text_template_name = text_template

        self.env = Environment(
            loader=PackageLoader("jobdigest.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, context: Dict) -> Dict[str, str]:
        """Render all digest templates with the provided context.

        Returns:
            Dictionary with ``subject`` (single line), ``html_body`` and ``text_body``

        Raises:
            NotificationTemplateError: If any template fails to load or render
        """
        try:
            subject_template = self.env.get_template(self.subject_template_name)
            html_template = self.env.get_template(self.html_template_name)
            text_template = self.env.get_template(self.text_template_name)

            subject = " ".join(subject_template.render(context).split())
            html_body = html_template.render(context)
            text_body = text_template.render(context)
        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        return {
            "subject": subject,
            "html_body": html_body,
            "text_body": text_body,
        }
