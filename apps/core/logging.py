"""
Custom logging formatters and filters for structured JSON logging.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk


class PIIMasker:
    """
    Utility class to mask sensitive PII data in logs.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
    SECRET_PATTERN = re.compile(r'(token|secret|password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE)

    # Sensitive field names that should be masked
    SENSITIVE_FIELDS = {
        'password', 'password_hash', 'passwd',
        'token', 'access_token', 'bearer_token', 'session_token',
        'secret', 'secret_key',
    }

    @classmethod
    def mask_email(cls, text):
        """Mask email addresses in text, keeping the first character and the domain."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            masked_username = username[0] + '*' * (len(username) - 1) if len(username) > 1 else username
            return f"{masked_username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        """Mask tokens, secrets and passwords in text."""
        if not isinstance(text, str):
            return text
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        return cls.mask_secrets(cls.mask_email(text))

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive data in dictionaries."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if any(sensitive in key.lower() for sensitive in cls.SENSITIVE_FIELDS):
                masked[key] = '********' if value and not isinstance(value, (dict, list)) else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            else:
                masked[key] = cls.mask_text(value)

        return masked


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.
    Includes request_id and user_id from extra fields if available.
    Automatically masks sensitive PII data.
    """

    RESERVED_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
        'pathname', 'process', 'processName', 'relativeCreated',
        'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
        'taskName', 'request_id',
    }

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if getattr(record, 'request_id', None):
            log_data['request_id'] = record.request_id

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        # Add any extra fields
        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            masked_value = PIIMasker.mask_dict(value) if isinstance(value, dict) else PIIMasker.mask_text(value)
            try:
                json.dumps(masked_value)
                log_data[key] = masked_value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SanitizingFilter(logging.Filter):
    """
    Logging filter that redacts credentials from log messages before formatting.
    """

    PATTERNS = [
        (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),
        (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),
        (re.compile(r'password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),
        (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),
        (re.compile(r'token["\s:=]+([a-zA-Z0-9_\-\.]{32,})', re.IGNORECASE), r'token=[REDACTED]'),
        (re.compile(r'://([^:/]+):([^@]+)@'), r'://\1:[REDACTED]@'),
    ]

    @classmethod
    def sanitize(cls, text: str) -> str:
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self.sanitize(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(self.sanitize(arg) if isinstance(arg, str) else arg for arg in record.args)

        return True


class SecurityLogger:
    """
    Centralized security event logging.

    Events go to the ``security`` logger with structured data. Critical
    events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'four_eyes_violation',
        'suspicious_activity',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'failed_login', 'permission_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (ip_address, user_email, etc.)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(
            f"Security event: {event_type}",
            extra=log_data
        )

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, user_agent: str = None, reason: str = None):
        """Log a failed login attempt."""
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason
        )

    @staticmethod
    def log_permission_denied(user, required_role: str, ip_address: str, endpoint: str = None):
        """Log a request rejected for insufficient role."""
        SecurityLogger.log_event(
            'permission_denied',
            level='warning',
            user_id=str(user.id) if user else None,
            user_role=getattr(user, 'role', None),
            required_role=required_role,
            ip_address=ip_address,
            endpoint=endpoint
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, user_email: str = None, limit: str = None):
        """Log a rate limit violation."""
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            user_email=user_email,
            limit=limit
        )

    @staticmethod
    def log_four_eyes_violation(user_id: str, operation: str, ip_address: str = None):
        """
        Log an attempt by a user to approve their own request.

        Args:
            user_id: User who both requested and tried to review
            operation: Operation being attempted (e.g., 'profile_update_review')
            ip_address: IP address of the request
        """
        SecurityLogger.log_event(
            'four_eyes_violation',
            level='error',
            user_id=user_id,
            operation=operation,
            ip_address=ip_address
        )
