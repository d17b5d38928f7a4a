"""
Thin wrapper around the `ffprobe` command line tool, plus parsers for the
textual values it reports.
"""
import json
import logging
import re
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

from .. import config
from ..exceptions import MalformedMetadataError, MetadataExtractionError

_RATE_RE = re.compile(r'^\s*(\d+)\s*/\s*(\d+)\s*$')


def parse_frame_rate(expr: Optional[str]) -> Optional[float]:
    """
    Parses an ffprobe rational like "30000/1001" into 29.97.

    Only `integer "/" integer` is accepted; anything else (including a zero
    denominator) raises MalformedMetadataError. None and "" give None.
    """
    if expr is None or not str(expr).strip():
        return None
    m = _RATE_RE.match(str(expr))
    if not m:
        raise MalformedMetadataError(f"Not a rational frame rate: {expr!r}")
    num, den = int(m.group(1)), int(m.group(2))
    if den == 0:
        raise MalformedMetadataError(f"Zero denominator in frame rate: {expr!r}")
    return round(num / den, 2)


def parse_int(value: Any) -> Optional[int]:
    """ffprobe reports most numbers as strings ("128000"); tolerate junk."""
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class FFProbe:
    """
    Runs ffprobe against a file and returns its JSON report.

    The binary location is fixed at construction; nothing here reads or
    mutates process-wide state.
    """

    def __init__(self, binary: str = config.DEFAULT_FFPROBE_PATH, timeout: float = config.PROBE_TIMEOUT_SEC):
        self.binary = binary
        self.timeout = timeout

    def probe(self, path: Path) -> Dict[str, Any]:
        # -show_format/-show_streams = container + per-stream info
        cmd = [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]
        try:
            out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise MetadataExtractionError(f"ffprobe not found at {self.binary!r}") from e
        except subprocess.TimeoutExpired as e:
            raise MetadataExtractionError(f"ffprobe timed out after {self.timeout}s on {path}") from e
        except (subprocess.CalledProcessError, OSError) as e:
            raise MetadataExtractionError(f"ffprobe failed on {path}: {e}") from e

        try:
            data = json.loads(out)
        except ValueError as e:
            raise MetadataExtractionError(f"ffprobe returned invalid JSON for {path}") from e

        if not isinstance(data, dict) or not data.get("streams"):
            raise MetadataExtractionError(f"ffprobe found no streams in {path}")
        logging.debug(f"ffprobe: {len(data['streams'])} streams in {path}")
        return data


def find_stream(data: Dict[str, Any], codec_type: str) -> Dict[str, Any]:
    """First stream of the given codec_type, or {}."""
    for stream in data.get("streams", []):
        if stream.get("codec_type") == codec_type:
            return stream
    return {}
