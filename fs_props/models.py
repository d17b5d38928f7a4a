from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union


class Kind(str, Enum):
    FILE = "File"
    DIRECTORY = "Directory"


class MediaFamily(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


@dataclass(frozen=True)
class Timestamp:
    """One filesystem instant in every representation we report."""
    instant: datetime       # timezone-aware (UTC)
    ms: float               # epoch milliseconds
    local: str              # locale-formatted local time
    relative: str           # e.g. "3 days ago", computed at normalize() time


@dataclass(frozen=True)
class TimestampSet:
    created: Timestamp
    modified: Timestamp
    changed: Timestamp
    accessed: Timestamp


@dataclass(frozen=True)
class Contains:
    files: int
    folders: int


@dataclass(frozen=True)
class SizeResult:
    """
    Output of the SizeAggregator. `contains` is None for files.
    """
    size: int
    contains: Optional[Contains] = None


@dataclass(frozen=True)
class ImageMetadata:
    family: ClassVar[MediaFamily] = MediaFamily.IMAGE

    width: Optional[int] = None
    height: Optional[int] = None
    dimensions: Optional[str] = None
    x_resolution: Optional[float] = None
    y_resolution: Optional[float] = None
    resolution: Optional[str] = None
    orientation: Optional[str] = None
    bit_depth: Optional[str] = None
    color_type: Optional[str] = None
    sub_sampling: Optional[str] = None
    compression: Optional[str] = None
    filter: Optional[str] = None
    resource_url: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AudioMetadata:
    family: ClassVar[MediaFamily] = MediaFamily.AUDIO

    title: Optional[str] = None
    album: Optional[str] = None
    artist: Optional[str] = None
    composer: Optional[str] = None
    genre: Optional[str] = None
    year: Optional[str] = None
    duration: Optional[float] = None        # seconds
    duration_ms: Optional[float] = None
    duration_display: Optional[str] = None
    bit_rate: Optional[int] = None
    bit_rate_display: Optional[str] = None
    channels: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VideoMetadata:
    family: ClassVar[MediaFamily] = MediaFamily.VIDEO

    width: Optional[int] = None
    height: Optional[int] = None
    dimensions: Optional[str] = None
    resolution: Optional[str] = None
    duration: Optional[float] = None
    duration_ms: Optional[float] = None
    duration_display: Optional[str] = None
    bit_rate: Optional[int] = None
    bit_rate_display: Optional[str] = None
    frame_rate: Optional[float] = None
    frame_rate_display: Optional[str] = None
    aspect_ratio: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


MediaMetadata = Union[ImageMetadata, AudioMetadata, VideoMetadata]


@dataclass(frozen=True)
class PropertyRecord:
    """
    Represents one filesystem node visited during a traversal.

    `mime_type` is set only for files; `contained_files`/`contained_folders`
    only for directories; `media` only for files whose MIME type selected a
    media family and whose extractor produced something.
    """
    name: str
    base_name: str
    extension: Optional[str]
    directory: str
    location: str
    kind: Kind
    size: int
    size_display: str
    timestamps: TimestampSet
    mime_type: Optional[str] = None
    contained_files: Optional[int] = None
    contained_folders: Optional[int] = None
    contains_display: Optional[str] = None
    media: Optional[MediaMetadata] = None

    @property
    def is_file(self) -> bool:
        return self.kind is Kind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is Kind.DIRECTORY
