import re
import logging

logger = logging.getLogger(__name__)

class DiscordConfigValidator:
    """
    Validates the Discord credentials the storage providers are built from.

    Missing or mistyped fields and impossible segment sizes are errors.
    A token or webhook URL that does not look like Discord's is only a warning.
    """

    # Format: MTk4NjIyNDgzNDcxOTI1MjQ4.Cl2FMQ.ZnCjm1XVW7vRze4b7Cq4se7kKWs (example)
    BOT_TOKEN_PATTERN = re.compile(r'^(Bot )?[A-Za-z0-9_-]{20,}\.[A-Za-z0-9_-]{6,}\.[A-Za-z0-9_-]{27,}$')

    # https://discord.com/api/webhooks/<snowflake>/<token>
    WEBHOOK_URL_PATTERN = re.compile(
        r'^https://(?:(?:ptb|canary)\.)?discord(?:app)?\.com/api(?:/v\d+)?/webhooks/\d{17,20}/[A-Za-z0-9_-]+$'
    )

    # Segment size limits
    MIN_SEGMENT_SIZE = 1024  # 1KB minimum
    MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB (Discord free account limit)

    def __init__(self, config):
        self.config = config
        self.errors = []
        self.warnings = []

    def validate(self, allow_errors=False) -> bool:
        """
        Validates the credentials and transfer limits.

        Each layer only runs when the previous one found no errors. With
        allow_errors=True the result is always True and callers are expected
        to inspect get_errors() themselves.
        """
        self.errors = []
        self.warnings = []

        for layer in (self._validate_schema, self._validate_formats, self._validate_business_rules):
            layer()
            if self.errors:
                break

        for error in self.errors:
            logger.error(f"Discord credentials invalid: {error}")
        for warning in self.warnings:
            logger.warning(f"Discord credentials look unusual: {warning}")
        logger.debug(f"Checked Discord credentials: {len(self.errors)} error(s), {len(self.warnings)} warning(s)")

        return allow_errors or not self.errors

    def _validate_schema(self):
        """Validates required fields exist and have correct types."""
        if not isinstance(self.config, dict):
            self.errors.append("Config must be a dictionary")
            return

        bot_token = self.config.get('bot_token')
        if not bot_token:
            self.errors.append("Missing required field: 'bot_token'")
        elif not isinstance(bot_token, str):
            self.errors.append(f"Field 'bot_token' must be str, got {type(bot_token).__name__}")

        webhook_urls = self.config.get('webhook_urls')
        if not webhook_urls:
            self.errors.append("At least one webhook URL is required in 'webhook_urls'")
        elif not isinstance(webhook_urls, (list, tuple)):
            self.errors.append(f"Field 'webhook_urls' must be a list, got {type(webhook_urls).__name__}")
        else:
            for position, url in enumerate(webhook_urls, start=1):
                if not url or not isinstance(url, str):
                    self.errors.append(f"Webhook URL #{position} cannot be empty")

        # Optional fields with type checking
        optional_fields = {
            'max_segment_size': int,
            'max_upload_size': int,
        }

        for field, expected_type in optional_fields.items():
            if field in self.config:
                value = self.config[field]
                if value is not None and (isinstance(value, bool) or not isinstance(value, expected_type)):
                    self.errors.append(
                        f"Optional field '{field}' must be {expected_type.__name__}, got {type(value).__name__}"
                    )

    def _validate_formats(self):
        """Validates field formats and patterns."""
        bot_token = str(self.config.get('bot_token', ''))
        if bot_token and not self.BOT_TOKEN_PATTERN.match(bot_token):
            self.warnings.append(
                "Bot token doesn't match expected Discord token format. "
                "This might be a test token or incorrectly formatted."
            )

        for position, url in enumerate(self.config.get('webhook_urls', []), start=1):
            if not self.WEBHOOK_URL_PATTERN.match(url):
                # Never echo the URL, it embeds the webhook token
                self.warnings.append(
                    f"Webhook URL #{position} doesn't look like a Discord webhook URL"
                )

    def _validate_business_rules(self):
        """Validates segment sizing constraints."""
        max_upload_size = self.config.get('max_upload_size')
        max_segment_size = self.config.get('max_segment_size')

        if max_upload_size is not None and max_upload_size > self.MAX_UPLOAD_SIZE:
            self.warnings.append(
                f"max_upload_size ({max_upload_size}) exceeds Discord's limit. "
                f"Maximum is {self.MAX_UPLOAD_SIZE} bytes"
            )

        if max_segment_size is not None:
            if max_segment_size < self.MIN_SEGMENT_SIZE:
                self.errors.append(
                    f"max_segment_size ({max_segment_size}) is too small. "
                    f"Minimum is {self.MIN_SEGMENT_SIZE} bytes"
                )
            elif max_upload_size is not None and max_segment_size > max_upload_size:
                self.errors.append(
                    f"max_segment_size ({max_segment_size}) cannot exceed "
                    f"max_upload_size ({max_upload_size})"
                )

    def get_errors(self):
        """Returns list of validation errors."""
        return self.errors.copy()

    def get_warnings(self):
        """Returns list of validation warnings."""
        return self.warnings.copy()

    def get_validation_report(self):
        """Returns a formatted validation report."""
        report = []

        if not self.errors and not self.warnings:
            report.append("[+] Configuration is valid")
        else:
            if self.errors:
                report.append(f"[x] {len(self.errors)} error(s) found:")
                for error in self.errors:
                    report.append(f"  - {error}")

            if self.warnings:
                report.append(f"[!] {len(self.warnings)} warning(s):")
                for warning in self.warnings:
                    report.append(f"  - {warning}")

        return "\n".join(report)
