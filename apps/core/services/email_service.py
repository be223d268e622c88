"""
Transactional email service.

Renders ``templates/emails/<name>.html`` (and ``.txt`` when present) and
sends through the configured Django email backend.
"""
import logging
from typing import Dict, Any, List, Optional
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)


class EmailServiceError(Exception):
    """Base exception for email service errors."""
    pass


class EmailService:
    """
    Transactional email service.

    Supports HTML templates with a plain-text alternative and multiple
    recipients.
    """

    @classmethod
    def send_email(
        cls,
        to_emails: List[str],
        subject: str,
        template_name: Optional[str] = None,
        template_context: Optional[Dict[str, Any]] = None,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
        from_email: Optional[str] = None,
        reply_to: Optional[str] = None,
        fail_silently: bool = False
    ) -> bool:
        """
        Send email through the Django email backend.

        Args:
            to_emails: List of recipient email addresses
            subject: Email subject line
            template_name: Optional template name (without extension)
            template_context: Context variables for template rendering
            html_content: Raw HTML content (if not using template)
            text_content: Raw text content (if not using template)
            from_email: Sender email (uses DEFAULT_FROM_EMAIL if not provided)
            reply_to: Reply-to email address
            fail_silently: Whether to suppress exceptions

        Returns:
            True if email was sent successfully, False otherwise

        Raises:
            EmailServiceError: If rendering or sending fails and fail_silently is False
        """
        try:
            if template_name:
                html_content, text_content = cls._render_template(
                    template_name, template_context or {}
                )
            elif not html_content and not text_content:
                raise EmailServiceError("Either template_name or content must be provided")

            if html_content and not text_content:
                text_content = strip_tags(html_content)

            message = EmailMultiAlternatives(
                subject=subject,
                body=text_content,
                from_email=from_email or settings.DEFAULT_FROM_EMAIL,
                to=to_emails,
                reply_to=[reply_to] if reply_to else None,
            )
            if html_content:
                message.attach_alternative(html_content, 'text/html')

            sent = message.send(fail_silently=False)

            logger.info(
                f"Email sent to {len(to_emails)} recipients",
                extra={'template_name': template_name, 'email_subject': subject}
            )
            return bool(sent)

        except Exception as e:
            logger.error(
                f"Failed to send email: {e}",
                extra={'template_name': template_name, 'email_subject': subject}
            )
            if not fail_silently:
                if isinstance(e, EmailServiceError):
                    raise
                raise EmailServiceError(f"Email sending failed: {e}") from e
            return False

    @classmethod
    def _render_template(cls, template_name: str, context: Dict[str, Any]) -> tuple:
        """
        Render HTML and text email templates.

        Returns:
            Tuple of (html_content, text_content)
        """
        platform_context = {
            'platform_name': 'Tender Hub',
            'platform_url': settings.FRONTEND_URL,
            'support_email': settings.SUPPORT_EMAIL,
            **context
        }

        try:
            html_content = render_to_string(f'emails/{template_name}.html', platform_context)
        except TemplateDoesNotExist as e:
            logger.error(f"Email template '{template_name}' not found")
            raise EmailServiceError(f"Template rendering failed: {e}") from e

        try:
            text_content = render_to_string(f'emails/{template_name}.txt', platform_context)
        except TemplateDoesNotExist:
            text_content = strip_tags(html_content)

        return html_content, text_content
