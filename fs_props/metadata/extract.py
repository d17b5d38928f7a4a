import logging
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image, JpegImagePlugin

from .. import config
from ..exceptions import MalformedMetadataError, MetadataExtractionError
from ..formatting import convert_bit_rate, humanize_duration
from ..models import AudioMetadata, ImageMetadata, MediaFamily, MediaMetadata, VideoMetadata
from .probe import FFProbe, find_stream, parse_float, parse_frame_rate, parse_int

# Optional imports handled gracefully to prevent crashes if libs are missing
try:
    import exifread
except ImportError:
    exifread = None

MediaInfo: Any = None
try:
    from pymediainfo import MediaInfo
except ImportError:
    MediaInfo = None


def _json_safe(value: Any) -> Any:
    """Makes decoder output JSON friendly: bytes are dropped, oddities stringified."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (bytes, bytearray)):
        return None
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items() if not isinstance(v, (bytes, bytearray))}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return str(value)


def _dimensions(width, height) -> Optional[str]:
    if width is None or height is None:
        return None
    return config.DIMENSIONS_FORMAT.format(width=width, height=height)


def _duration_fields(duration: Optional[float]) -> Dict[str, Any]:
    duration_ms = duration * 1000 if duration is not None else None
    return {
        'duration': duration,
        'duration_ms': duration_ms,
        'duration_display': humanize_duration(duration_ms),
    }


class ImageExtractor:
    """
    Strategies:
      - 'exifread' for the rich EXIF fields (fast, Python-native).
      - Pillow as a minimal prober when exifread fails or reports no dimensions.
    """

    def extract(self, path: Path) -> Optional[ImageMetadata]:
        fields: Dict[str, Any] = {}
        raw: Dict[str, Any] = {}

        if exifread is None:
            logging.debug("exifread module not found. Using Pillow only.")
        else:
            try:
                fields, raw = self._extract_exif(path)
            except Exception as e:
                logging.warning(f"ExifRead failed for {path}: {e}")

        if fields.get('width') is None or fields.get('height') is None:
            try:
                probed, probed_raw = self._extract_pillow(path)
            except Exception as e:
                logging.debug(f"Pillow could not open {path}: {e}")
            else:
                for key, value in probed.items():
                    if fields.get(key) is None:
                        fields[key] = value
                raw = raw or probed_raw

        # neither decoder reports the PNG filter method
        try:
            for key, value in self._png_header(path).items():
                if fields.get(key) is None:
                    fields[key] = value
        except OSError as e:
            logging.debug(f"Could not read PNG header of {path}: {e}")

        if not any(v is not None for v in fields.values()):
            return None

        x_res = fields.get('x_resolution')
        y_res = fields.get('y_resolution')
        resolution = None
        if x_res or y_res:
            resolution = config.RESOLUTION_FORMAT.format(x=int(x_res or 0), y=int(y_res or 0))

        return ImageMetadata(
            dimensions=_dimensions(fields.get('width'), fields.get('height')),
            resolution=resolution,
            raw=raw,
            **fields,
        )

    # --- Internal Extraction Helpers ---

    def _extract_exif(self, path: Path):
        with path.open('rb') as f:
            # details=False skips MakerNotes, which we never report
            tags = exifread.process_file(f, details=False)

        if not tags:
            logging.debug(f"No EXIF tags found for {path}")
            return {}, {}

        width = self._first_number(tags, config.EXIF_WIDTH_TAGS)
        height = self._first_number(tags, config.EXIF_HEIGHT_TAGS)
        resource_url = next((str(v) for k, v in tags.items() if k.endswith('ResourceURL')), None)

        fields = {
            'width': int(width) if width is not None else None,
            'height': int(height) if height is not None else None,
            'x_resolution': self._tag_number(tags.get('Image XResolution')),
            'y_resolution': self._tag_number(tags.get('Image YResolution')),
            'orientation': self._first_text(tags, ['Image Orientation']),
            'bit_depth': self._first_text(tags, config.EXIF_BIT_DEPTH_TAGS),
            'color_type': self._first_text(tags, config.EXIF_COLOR_TAGS),
            'sub_sampling': self._first_text(tags, config.EXIF_SUBSAMPLING_TAGS),
            'compression': self._first_text(tags, ['Image Compression']),
            'resource_url': resource_url,
        }
        raw = {k: str(v) for k, v in tags.items() if 'Thumbnail' not in k}
        return fields, raw

    def _extract_pillow(self, path: Path):
        with Image.open(path) as im:
            fields: Dict[str, Any] = {
                'width': im.width,
                'height': im.height,
                'color_type': im.mode,
            }
            depth = config.PIL_MODE_BIT_DEPTH.get(im.mode)
            if depth:
                fields['bit_depth'] = str(depth)

            dpi = im.info.get('dpi')
            if dpi:
                fields['x_resolution'], fields['y_resolution'] = float(dpi[0]), float(dpi[1])

            orientation = im.getexif().get(0x0112)
            if orientation is not None:
                fields['orientation'] = str(orientation)

            if im.info.get('compression'):
                fields['compression'] = str(im.info['compression'])

            if im.format == 'JPEG':
                sampling = JpegImagePlugin.get_sampling(im)
                if sampling in config.JPEG_SUBSAMPLING:
                    fields['sub_sampling'] = config.JPEG_SUBSAMPLING[sampling]

            raw = {
                'format': im.format,
                'mode': im.mode,
                'size': [im.width, im.height],
                'info': _json_safe(dict(im.info)),
            }
        return fields, raw

    def _png_header(self, path: Path) -> Dict[str, str]:
        """Compression and filter method from the IHDR chunk; empty for non-PNG files."""
        with path.open('rb') as f:
            head = f.read(config.PNG_IHDR_FILTER_OFFSET + 1)
        if len(head) <= config.PNG_IHDR_FILTER_OFFSET or not head.startswith(config.PNG_SIGNATURE):
            return {}
        compression = head[config.PNG_IHDR_COMPRESSION_OFFSET]
        method = head[config.PNG_IHDR_FILTER_OFFSET]
        return {
            'compression': config.PNG_COMPRESSION_METHODS.get(compression, str(compression)),
            'filter': config.PNG_FILTER_METHODS.get(method, str(method)),
        }

    def _first_number(self, tags, names) -> Optional[float]:
        for name in names:
            value = self._tag_number(tags.get(name))
            if value is not None:
                return value
        return None

    def _first_text(self, tags, names) -> Optional[str]:
        for name in names:
            if name in tags:
                text = str(tags[name]).strip()
                if text:
                    return text
        return None

    def _tag_number(self, tag) -> Optional[float]:
        """exifread values are lists of ints or Ratios; take the first."""
        if tag is None:
            return None
        values = tag.values
        if isinstance(values, (list, tuple)):
            if not values:
                return None
            values = values[0]
        try:
            return float(values)
        except (TypeError, ValueError):
            num, den = getattr(values, 'num', None), getattr(values, 'den', None)
            if num is None or not den:
                return None
            return num / den


class _ProbeExtractor:
    """
    Shared ffprobe -> pymediainfo fallback chain for audio and video.
    """
    stream_type = ''

    def __init__(self, ffprobe: Optional[FFProbe] = None):
        self.ffprobe = ffprobe or FFProbe()

    def extract(self, path: Path):
        # Strategy 1: ffprobe (richest stream info)
        try:
            return self._from_ffprobe(path, self.ffprobe.probe(path))
        except MetadataExtractionError as e:
            logging.debug(f"ffprobe failed for {path}: {e}")
        except Exception as e:
            logging.warning(f"Unexpected ffprobe output for {path}: {e}")

        # Strategy 2: MediaInfo
        if MediaInfo is None:
            logging.debug(f"pymediainfo not installed; no fallback for {path}")
            return None
        try:
            return self._from_mediainfo(path, MediaInfo.parse(str(path)))
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")
        return None

    def _tracks(self, mi):
        general = next((t for t in mi.tracks if t.track_type == "General"), None)
        stream = next((t for t in mi.tracks if t.track_type == self.stream_type.capitalize()), None)
        if stream is None:
            raise MetadataExtractionError(f"MediaInfo found no {self.stream_type} track")
        return general, stream

    def _mediainfo_raw(self, mi) -> Dict[str, Any]:
        return {'tracks': [_json_safe(t.to_data()) for t in mi.tracks if hasattr(t, 'to_data')]}

    def _mediainfo_duration(self, general) -> Optional[float]:
        # MediaInfo duration is in milliseconds
        duration_ms = parse_float(getattr(general, 'duration', None)) if general else None
        return duration_ms / 1000.0 if duration_ms is not None else None

    def _from_ffprobe(self, path: Path, data: Dict[str, Any]):
        raise NotImplementedError

    def _from_mediainfo(self, path: Path, mi):
        raise NotImplementedError


class AudioExtractor(_ProbeExtractor):
    stream_type = 'audio'

    def _from_ffprobe(self, path: Path, data: Dict[str, Any]) -> AudioMetadata:
        audio = find_stream(data, 'audio')
        if not audio:
            raise MetadataExtractionError(f"No audio stream in {path}")
        fmt = data.get('format', {})
        tags = {k.lower(): v for k, v in (fmt.get('tags') or {}).items()}

        channels = audio.get('channels')
        layout = audio.get('channel_layout')
        return self._build(
            tags=tags,
            duration=parse_float(fmt.get('duration')),
            bit_rate=parse_int(audio.get('bit_rate')) or parse_int(fmt.get('bit_rate')),
            channels=channels,
            layout=layout,
            raw=data,
        )

    def _from_mediainfo(self, path: Path, mi) -> AudioMetadata:
        general, audio = self._tracks(mi)
        tags = {}
        if general is not None:
            for key, attr in (('title', 'title'), ('album', 'album'), ('artist', 'performer'),
                              ('composer', 'composer'), ('genre', 'genre'), ('date', 'recorded_date')):
                value = getattr(general, attr, None)
                if value:
                    tags[key] = value
        return self._build(
            tags=tags,
            duration=self._mediainfo_duration(general),
            bit_rate=parse_int(getattr(audio, 'bit_rate', None)),
            channels=getattr(audio, 'channel_s', None),
            layout=getattr(audio, 'channel_layout', None),
            raw=self._mediainfo_raw(mi),
        )

    def _build(self, tags, duration, bit_rate, channels, layout, raw) -> AudioMetadata:
        channel_text = None
        if channels is not None:
            channel_text = f"{channels} ({layout})" if layout else str(channels)

        def tag(name):
            value = tags.get(name)
            return str(value) if value is not None else None

        return AudioMetadata(
            title=tag('title'),
            album=tag('album'),
            artist=tag('artist'),
            composer=tag('composer'),
            genre=tag('genre'),
            year=tag('date') or tag('year'),
            bit_rate=bit_rate,
            bit_rate_display=convert_bit_rate(bit_rate),
            channels=channel_text,
            raw=raw,
            **_duration_fields(duration),
        )


class VideoExtractor(_ProbeExtractor):
    stream_type = 'video'

    def _from_ffprobe(self, path: Path, data: Dict[str, Any]) -> VideoMetadata:
        video = find_stream(data, 'video')
        if not video:
            raise MetadataExtractionError(f"No video stream in {path}")
        fmt = data.get('format', {})

        try:
            frame_rate = parse_frame_rate(video.get('r_frame_rate'))
        except MalformedMetadataError as e:
            logging.debug(f"Ignoring frame rate for {path}: {e}")
            frame_rate = None

        return self._build(
            width=parse_int(video.get('width')),
            height=parse_int(video.get('height')),
            duration=parse_float(fmt.get('duration')),
            bit_rate=parse_int(video.get('bit_rate')) or parse_int(fmt.get('bit_rate')),
            frame_rate=frame_rate,
            aspect_ratio=video.get('display_aspect_ratio'),
            raw=data,
        )

    def _from_mediainfo(self, path: Path, mi) -> VideoMetadata:
        general, video = self._tracks(mi)

        # MediaInfo already reports decimals ("29.970"), not rationals
        frame_rate = parse_float(getattr(video, 'frame_rate', None))
        ratios = getattr(video, 'other_display_aspect_ratio', None) or []
        aspect_ratio = ratios[0] if ratios else getattr(video, 'display_aspect_ratio', None)

        return self._build(
            width=parse_int(getattr(video, 'width', None)),
            height=parse_int(getattr(video, 'height', None)),
            duration=self._mediainfo_duration(general),
            bit_rate=parse_int(getattr(video, 'bit_rate', None)),
            frame_rate=round(frame_rate, 2) if frame_rate is not None else None,
            aspect_ratio=str(aspect_ratio) if aspect_ratio is not None else None,
            raw=self._mediainfo_raw(mi),
        )

    def _build(self, width, height, duration, bit_rate, frame_rate, aspect_ratio, raw) -> VideoMetadata:
        dimensions = _dimensions(width, height)
        return VideoMetadata(
            width=width,
            height=height,
            dimensions=dimensions,
            resolution=dimensions,
            bit_rate=bit_rate,
            bit_rate_display=convert_bit_rate(bit_rate),
            frame_rate=frame_rate,
            frame_rate_display=f"{frame_rate:.2f} fps" if frame_rate else None,
            aspect_ratio=aspect_ratio,
            raw=raw,
            **_duration_fields(duration),
        )


class MediaExtractors:
    """
    Picks exactly one extractor per media family and guarantees nothing
    escapes it: any failure comes back as None ("no enrichment").
    """

    def __init__(self,
                 ffprobe_path: str = config.DEFAULT_FFPROBE_PATH,
                 probe_timeout: float = config.PROBE_TIMEOUT_SEC):
        ffprobe = FFProbe(ffprobe_path, timeout=probe_timeout)
        self.extractors = {
            MediaFamily.IMAGE: ImageExtractor(),
            MediaFamily.AUDIO: AudioExtractor(ffprobe),
            MediaFamily.VIDEO: VideoExtractor(ffprobe),
        }

    def extract(self, path: Path, family: Optional[MediaFamily]) -> Optional[MediaMetadata]:
        extractor = self.extractors.get(family) if family else None
        if extractor is None:
            return None
        try:
            return extractor.extract(Path(path))
        except Exception as e:
            logging.warning(f"{family.value} metadata extraction failed for {path}: {e}")
            return None
