"""
Value objects describing where stored content lives upstream.

Everything here is immutable and serializes to the camelCase JSON shape that
is signed and encrypted into tokens.
"""
import json
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple


@dataclass(frozen=True)
class Locator:
    """Identifies one stored attachment (a whole file or a single segment)."""
    channel_id: str
    message_id: str
    content_name: str

    def to_dict(self) -> dict:
        return {
            "channelId": self.channel_id,
            "messageId": self.message_id,
            "contentName": self.content_name,
        }


@dataclass(frozen=True)
class SegmentRef:
    """Locator of one segment plus its position in the original byte order."""
    channel_id: str
    message_id: str
    content_name: str
    segment_index: int

    @classmethod
    def from_locator(cls, locator: Locator, segment_index: int) -> "SegmentRef":
        return cls(
            channel_id=locator.channel_id,
            message_id=locator.message_id,
            content_name=locator.content_name,
            segment_index=segment_index,
        )

    @property
    def locator(self) -> Locator:
        return Locator(self.channel_id, self.message_id, self.content_name)

    def to_dict(self) -> dict:
        return {
            "channelId": self.channel_id,
            "messageId": self.message_id,
            "contentName": self.content_name,
            "segmentIndex": self.segment_index,
        }


# Wire name -> attribute name, in canonical serialization order.
DESCRIPTOR_FIELDS = (
    ("channelId", "channel_id"),
    ("messageId", "message_id"),
    ("contentName", "content_name"),
    ("contentType", "content_type"),
    ("originalFileName", "original_file_name"),
    ("expiredAt", "expired_at"),
    ("scrambled", "scrambled"),
    ("segments", "segments"),
)


@dataclass(frozen=True)
class ContentDescriptor:
    channel_id: Optional[str] = None
    message_id: Optional[str] = None
    content_name: Optional[str] = None
    content_type: Optional[str] = None
    original_file_name: Optional[str] = None
    expired_at: Optional[str] = None
    scrambled: bool = False
    segments: Tuple[SegmentRef, ...] = field(default_factory=tuple)

    @property
    def is_segmented(self) -> bool:
        return len(self.segments) > 0

    @property
    def locator(self) -> Optional[Locator]:
        if not (self.channel_id and self.message_id and self.content_name):
            return None
        return Locator(self.channel_id, self.message_id, self.content_name)

    @property
    def display_name(self) -> str:
        return self.original_file_name or self.content_name or "download"

    def with_segments(self, segments) -> "ContentDescriptor":
        ordered = tuple(sorted(segments, key=lambda s: s.segment_index))
        return replace(self, segments=ordered)

    def to_dict(self) -> dict:
        """
        Returns the wire form. Unset optional fields are omitted rather than
        emitted as null, so the serialization of a descriptor is unique.
        """
        data = {}
        for wire_name, attr in DESCRIPTOR_FIELDS:
            value = getattr(self, attr)
            if attr == "segments":
                if value:
                    data[wire_name] = [segment.to_dict() for segment in value]
            elif attr == "scrambled":
                if value:
                    data[wire_name] = True
            elif value is not None:
                data[wire_name] = value
        return data

    def serialize(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "ContentDescriptor":
        """
        Builds a descriptor from its wire form. The input is expected to have
        passed DescriptorValidator already.
        """
        kwargs = {}
        for wire_name, attr in DESCRIPTOR_FIELDS:
            if wire_name not in data or data[wire_name] is None:
                continue
            kwargs[attr] = data[wire_name]
        raw_segments = kwargs.pop("segments", None) or []
        segments = [
            SegmentRef(
                channel_id=segment["channelId"],
                message_id=segment["messageId"],
                content_name=segment["contentName"],
                segment_index=segment["segmentIndex"],
            )
            for segment in raw_segments
        ]
        kwargs["scrambled"] = bool(kwargs.get("scrambled", False))
        return cls(**kwargs).with_segments(segments)
