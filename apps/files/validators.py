import logging

logger = logging.getLogger(__name__)


class DescriptorValidator:
    """
    Validates the wire form of a content descriptor.

    Performs layered validation:
    1. Schema validation (known fields, types)
    2. Segment validation (element shape, contiguous indices)
    3. Business rules (a locator or segments must be present)

    Issuance requests (the body of /generate) are validated with
    allow_segments=False, since segments are only ever produced by uploads.
    """

    # Every field is optional at the schema level; business rules decide
    # which combinations are usable.
    OPTIONAL_FIELDS = {
        'channelId': str,
        'messageId': str,
        'contentName': str,
        'contentType': str,
        'originalFileName': str,
        'expiredAt': str,
        'scrambled': bool,
        'segments': list,
    }

    SEGMENT_FIELDS = {
        'channelId': str,
        'messageId': str,
        'contentName': str,
        'segmentIndex': int,
    }

    LOCATOR_FIELDS = ('channelId', 'messageId', 'contentName')

    def __init__(self, data, allow_segments=True):
        self.data = data
        self.allow_segments = allow_segments
        self.errors = []

    def validate(self) -> bool:
        """
        Validates the descriptor.

        Returns:
            bool: True if the descriptor is usable, False otherwise.
        """
        self.errors = []

        self._validate_schema()

        if not self.errors:
            self._validate_segments()

        if not self.errors:
            self._validate_business_rules()

        if self.errors:
            for error in self.errors:
                logger.debug(f"Descriptor validation error: {error}")

        return len(self.errors) == 0

    def _validate_schema(self):
        """Validates that the payload is an object and fields have correct types."""
        if not isinstance(self.data, dict):
            self.errors.append("Descriptor must be a JSON object")
            return

        for field, expected_type in self.OPTIONAL_FIELDS.items():
            if field not in self.data or self.data[field] is None:
                continue
            value = self.data[field]
            # bool is a subclass of int, and we never want True as an index
            if expected_type is not bool and isinstance(value, bool):
                self.errors.append(f"Field '{field}' must be {expected_type.__name__}, got bool")
            elif not isinstance(value, expected_type):
                self.errors.append(
                    f"Field '{field}' must be {expected_type.__name__}, got {type(value).__name__}"
                )

        if 'segments' in self.data and not self.allow_segments:
            self.errors.append("Field 'segments' cannot be supplied directly")

    def _validate_segments(self):
        """Validates each segment element and the index sequence."""
        segments = self.data.get('segments') or []
        indices = []
        for position, segment in enumerate(segments):
            if not isinstance(segment, dict):
                self.errors.append(f"Segment {position} must be an object")
                continue
            for field, expected_type in self.SEGMENT_FIELDS.items():
                value = segment.get(field)
                if value is None or value == '':
                    self.errors.append(f"Segment {position} is missing required field '{field}'")
                elif isinstance(value, bool) or not isinstance(value, expected_type):
                    self.errors.append(
                        f"Segment {position} field '{field}' must be {expected_type.__name__}, "
                        f"got {type(value).__name__}"
                    )
            if isinstance(segment.get('segmentIndex'), int):
                indices.append(segment['segmentIndex'])

        if self.errors or not indices:
            return
        if sorted(indices) != list(range(len(indices))):
            self.errors.append("Segment indices must be contiguous and start at 0")

    def _validate_business_rules(self):
        """Validates that the descriptor can actually be resolved."""
        if self.data.get('segments'):
            if not self.data.get('contentType'):
                self.errors.append("Field 'contentType' is required for segmented content")
            return

        missing = [field for field in self.LOCATOR_FIELDS if not self.data.get(field)]
        if missing:
            self.errors.append(f"{', '.join(self.LOCATOR_FIELDS)} is required (missing: {', '.join(missing)})")

    def get_errors(self):
        """Returns list of validation errors."""
        return self.errors.copy()

    def get_validation_report(self):
        """Returns the errors joined into a single message."""
        return "; ".join(self.errors)
