import mimetypes
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .. import config
from ..models import Kind, MediaFamily


@dataclass(frozen=True)
class Classification:
    kind: Kind
    mime_type: Optional[str] = None
    family: Optional[MediaFamily] = None


def guess_mime(path: Path) -> str:
    """Extension-only MIME lookup; never opens the file."""
    mime, _ = mimetypes.guess_type(Path(path).name, strict=False)
    return mime or config.UNKNOWN_MIME


def media_family(mime_type: Optional[str]) -> Optional[MediaFamily]:
    if not mime_type:
        return None
    for prefix, family in config.MEDIA_PREFIXES.items():
        if mime_type.startswith(prefix):
            return MediaFamily(family)
    return None


def classify(path: Path, st: Optional[os.stat_result] = None) -> Classification:
    """
    Kind comes from the entry type, never from the name. Pass an existing
    stat snapshot to avoid a second stat call.
    """
    if st is None:
        st = os.stat(path)
    if stat.S_ISDIR(st.st_mode):
        return Classification(kind=Kind.DIRECTORY)

    mime = guess_mime(path)
    return Classification(kind=Kind.FILE, mime_type=mime, family=media_family(mime))
