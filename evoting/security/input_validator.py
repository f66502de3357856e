# evoting/security/input_validator.py

import re
import bleach
from datetime import datetime, timezone
from urllib.parse import urlparse

from evoting.errors import InvalidCount, InvalidInput

# Input validation and sanitization for form and JSON fields


class InputValidator:
    def __init__(self):
        self.patterns = {
            'token': re.compile(r'^[0-9a-f]{32}$'),
            'username': re.compile(r'^[A-Za-z0-9_.-]{3,150}$'),
        }

    def sanitize_string(self, input_str, max_length=255, required=True, field='value'):
        if input_str is None or (isinstance(input_str, str) and not input_str.strip()):
            if required:
                raise InvalidInput(f"{field} is required")
            return ''
        if not isinstance(input_str, str):
            raise InvalidInput(f"{field} must be a string")
        if len(input_str) > max_length:
            input_str = input_str[:max_length]
        # strip every tag; these fields are displayed as plain text
        return bleach.clean(input_str, tags=[], attributes={}, strip=True).strip()

    def parse_id(self, value, field='id'):
        if isinstance(value, bool):
            raise InvalidInput(f"{field} must be a positive integer")
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            raise InvalidInput(f"{field} must be a positive integer")
        if parsed <= 0:
            raise InvalidInput(f"{field} must be a positive integer")
        return parsed

    def parse_count(self, value):
        # range is checked by the token store
        if isinstance(value, bool):
            raise InvalidCount("count must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise InvalidCount("count must be an integer")

    def parse_datetime(self, value, field='date'):
        if not isinstance(value, datetime):
            if not isinstance(value, str) or not value.strip():
                raise InvalidInput(f"{field} is required")
            try:
                value = datetime.fromisoformat(value.strip())
            except ValueError:
                raise InvalidInput(f"Invalid {field} format")
        # stored as naive UTC, like every other timestamp
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def validate_token_format(self, token):
        return isinstance(token, str) and bool(self.patterns['token'].match(token))

    def validate_username(self, username):
        return isinstance(username, str) and bool(self.patterns['username'].match(username))

    def validate_photo_url(self, url):
        if not url:
            return None
        if not isinstance(url, str) or len(url) > 500:
            raise InvalidInput("Invalid photo URL")
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise InvalidInput("Photo URL must be an http(s) URL")
        return url

    def validate_choice(self, value, choices, field='value'):
        if value not in choices:
            raise InvalidInput(f"Invalid {field}")
        return value
