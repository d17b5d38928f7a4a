import logging
import types
from fractions import Fraction

import pytest

import fs_props.metadata.extract as extract_module
from fs_props.exceptions import MetadataExtractionError
from fs_props.metadata.extract import AudioExtractor, ImageExtractor, MediaExtractors, VideoExtractor
from fs_props.metadata.probe import FFProbe
from fs_props.models import AudioMetadata, ImageMetadata, MediaFamily, VideoMetadata


# --- exifread mock (IfdTag-like) ---
class FakeTag:
    def __init__(self, values, printable=None):
        self.values = values
        self.printable = printable if printable is not None else str(values)

    def __str__(self):
        return self.printable


def fake_exifread(tags):
    return types.SimpleNamespace(process_file=lambda f, details=False: tags)


# --- MediaInfo mock, same shape as pymediainfo ---
class MockTrack:
    def __init__(self, track_type, **kwargs):
        self.track_type = track_type
        for k, v in kwargs.items():
            setattr(self, k, v)

    def to_data(self):
        return dict(vars(self))


class MockMediaInfo:
    tracks_for_parse = []

    def __init__(self, tracks):
        self.tracks = tracks

    @classmethod
    def parse(cls, path):
        return cls(cls.tracks_for_parse)


FFPROBE_VIDEO = {
    "streams": [
        {"codec_type": "video", "width": 1920, "height": 1080, "r_frame_rate": "30000/1001",
         "display_aspect_ratio": "16:9", "bit_rate": "4000000"},
        {"codec_type": "audio", "channels": 2, "channel_layout": "stereo"},
    ],
    "format": {"duration": "12.5", "bit_rate": "4200000"},
}

FFPROBE_AUDIO = {
    "streams": [{"codec_type": "audio", "bit_rate": "128000", "channels": 2, "channel_layout": "stereo"}],
    "format": {"duration": "180.0", "tags": {"TITLE": "Song", "artist": "Band", "album": "LP", "date": "1999"}},
}


def failing_probe(self, path):
    raise MetadataExtractionError("ffprobe not found")


# --- Image ---

def test_image_exif_fields(monkeypatch, tmp_path):
    img = tmp_path / "photo.jpg"
    img.write_bytes(b"placeholder")
    tags = {
        'EXIF ExifImageWidth': FakeTag([4000]),
        'EXIF ExifImageLength': FakeTag([3000]),
        'Image XResolution': FakeTag([Fraction(300, 1)], "300"),
        'Image YResolution': FakeTag([Fraction(300, 1)], "300"),
        'Image Orientation': FakeTag([6], "Rotated 90 CW"),
        'EXIF ColorSpace': FakeTag([1], "sRGB"),
        'Image Compression': FakeTag([6], "JPEG (old-style)"),
        'JPEGThumbnail': b"\xff\xd8",
    }
    monkeypatch.setattr(extract_module, "exifread", fake_exifread(tags))

    meta = ImageExtractor().extract(img)

    assert isinstance(meta, ImageMetadata)
    assert (meta.width, meta.height) == (4000, 3000)
    assert meta.dimensions == "4000 x 3000 pixels"
    assert meta.resolution == "300 x 300 Dpi"
    assert meta.orientation == "Rotated 90 CW"
    assert meta.color_type == "sRGB"
    assert meta.compression == "JPEG (old-style)"
    assert "JPEGThumbnail" not in meta.raw
    assert meta.raw["Image Orientation"] == "Rotated 90 CW"


def test_image_falls_back_to_pillow(make_image, tmp_path):
    img = make_image(tmp_path / "plain.jpg", size=(100, 50), dpi=(72, 72))

    meta = ImageExtractor().extract(img)

    assert (meta.width, meta.height) == (100, 50)
    assert meta.dimensions == "100 x 50 pixels"
    assert meta.color_type == "RGB"
    assert meta.bit_depth == "8"
    assert meta.resolution == "72 x 72 Dpi"
    assert meta.raw["format"] == "JPEG"


def test_image_exif_failure_falls_back(monkeypatch, make_image, tmp_path):
    img = make_image(tmp_path / "plain.png", size=(8, 6), fmt="PNG")

    def boom(f, details=False):
        raise ValueError("corrupt EXIF")
    monkeypatch.setattr(extract_module, "exifread", types.SimpleNamespace(process_file=boom))

    meta = ImageExtractor().extract(img)
    assert (meta.width, meta.height) == (8, 6)


def test_png_header_fills_filter_and_compression(make_image, tmp_path):
    img = make_image(tmp_path / "plain.png", size=(4, 4), fmt="PNG")

    meta = ImageExtractor().extract(img)

    assert meta.filter == "Adaptive"
    assert meta.compression == "Deflate/Inflate"


def test_jpeg_has_no_filter(make_image, tmp_path):
    img = make_image(tmp_path / "plain.jpg", size=(4, 4))
    assert ImageExtractor().extract(img).filter is None


def test_image_undecodable_returns_none(tmp_path):
    bad = tmp_path / "broken.jpg"
    bad.write_text("definitely not a jpeg")
    assert ImageExtractor().extract(bad) is None


# --- Video ---

def test_video_from_ffprobe(monkeypatch, tmp_path):
    monkeypatch.setattr(FFProbe, "probe", lambda self, path: FFPROBE_VIDEO)

    meta = VideoExtractor().extract(tmp_path / "clip.mp4")

    assert isinstance(meta, VideoMetadata)
    assert (meta.width, meta.height) == (1920, 1080)
    assert meta.dimensions == meta.resolution == "1920 x 1080 pixels"
    assert meta.frame_rate == 29.97
    assert meta.frame_rate_display == "29.97 fps"
    assert meta.aspect_ratio == "16:9"
    assert meta.duration == 12.5
    assert meta.duration_ms == 12500
    assert meta.bit_rate == 4000000
    assert meta.bit_rate_display.endswith("mbps")
    assert meta.raw is FFPROBE_VIDEO


def test_video_malformed_frame_rate_is_omitted(monkeypatch, tmp_path):
    data = {
        "streams": [{"codec_type": "video", "width": 320, "height": 240, "r_frame_rate": "30/0"}],
        "format": {"duration": "1.0"},
    }
    monkeypatch.setattr(FFProbe, "probe", lambda self, path: data)

    meta = VideoExtractor().extract(tmp_path / "clip.mp4")

    assert meta.frame_rate is None
    assert meta.frame_rate_display is None
    assert meta.width == 320


def test_video_falls_back_to_mediainfo(monkeypatch, tmp_path):
    monkeypatch.setattr(FFProbe, "probe", failing_probe)
    MockMediaInfo.tracks_for_parse = [
        MockTrack("General", duration=5000),
        MockTrack("Video", width=1280, height=720, frame_rate="25.000",
                  other_display_aspect_ratio=["16:9"], bit_rate=2000000),
    ]
    monkeypatch.setattr(extract_module, "MediaInfo", MockMediaInfo)

    meta = VideoExtractor().extract(tmp_path / "clip.mov")

    assert (meta.width, meta.height) == (1280, 720)
    assert meta.duration == 5.0
    assert meta.frame_rate == 25.0
    assert meta.aspect_ratio == "16:9"
    assert meta.raw["tracks"][0]["track_type"] == "General"


def test_video_all_strategies_fail(monkeypatch, tmp_path, no_mediainfo):
    monkeypatch.setattr(FFProbe, "probe", failing_probe)
    assert VideoExtractor().extract(tmp_path / "clip.mp4") is None


def test_missing_mediainfo_is_logged_with_path(monkeypatch, tmp_path, no_mediainfo, caplog):
    monkeypatch.setattr(FFProbe, "probe", failing_probe)
    clip = tmp_path / "clip.mp4"

    with caplog.at_level(logging.DEBUG):
        AudioExtractor().extract(clip)

    assert f"no fallback for {clip}" in caplog.text


# --- Audio ---

def test_audio_from_ffprobe(monkeypatch, tmp_path):
    monkeypatch.setattr(FFProbe, "probe", lambda self, path: FFPROBE_AUDIO)

    meta = AudioExtractor().extract(tmp_path / "song.mp3")

    assert isinstance(meta, AudioMetadata)
    assert meta.title == "Song"
    assert meta.artist == "Band"
    assert meta.album == "LP"
    assert meta.year == "1999"
    assert meta.duration == 180.0
    assert "3 minutes" in meta.duration_display
    assert meta.bit_rate == 128000
    assert meta.bit_rate_display == "125.00 kbps"
    assert meta.channels == "2 (stereo)"


def test_audio_falls_back_to_mediainfo(monkeypatch, tmp_path):
    monkeypatch.setattr(FFProbe, "probe", failing_probe)
    MockMediaInfo.tracks_for_parse = [
        MockTrack("General", duration=2000, title="Demo", performer="Someone"),
        MockTrack("Audio", bit_rate=320000, channel_s=1),
    ]
    monkeypatch.setattr(extract_module, "MediaInfo", MockMediaInfo)

    meta = AudioExtractor().extract(tmp_path / "demo.flac")

    assert meta.title == "Demo"
    assert meta.artist == "Someone"
    assert meta.duration == 2.0
    assert meta.channels == "1"


def test_audio_without_audio_track(monkeypatch, tmp_path):
    monkeypatch.setattr(FFProbe, "probe", failing_probe)
    MockMediaInfo.tracks_for_parse = [MockTrack("General", duration=2000)]
    monkeypatch.setattr(extract_module, "MediaInfo", MockMediaInfo)

    assert AudioExtractor().extract(tmp_path / "demo.flac") is None


# --- Dispatcher ---

def test_dispatch_picks_extractor_by_family(monkeypatch, tmp_path):
    monkeypatch.setattr(FFProbe, "probe", lambda self, path: FFPROBE_AUDIO)
    extractors = MediaExtractors()

    assert isinstance(extractors.extract(tmp_path / "x.mp3", MediaFamily.AUDIO), AudioMetadata)
    assert extractors.extract(tmp_path / "x.txt", None) is None


def test_dispatch_never_raises(monkeypatch, tmp_path):
    def explode(self, path):
        raise RuntimeError("decoder crashed")
    monkeypatch.setattr(ImageExtractor, "extract", explode)

    assert MediaExtractors().extract(tmp_path / "x.jpg", MediaFamily.IMAGE) is None


def test_ffprobe_path_is_threaded_through():
    extractors = MediaExtractors(ffprobe_path="/custom/ffprobe", probe_timeout=3)
    video = extractors.extractors[MediaFamily.VIDEO]
    audio = extractors.extractors[MediaFamily.AUDIO]
    assert video.ffprobe.binary == "/custom/ffprobe"
    assert video.ffprobe is audio.ffprobe
    assert video.ffprobe.timeout == 3


@pytest.mark.parametrize("family", list(MediaFamily))
def test_every_family_has_an_extractor(family):
    assert family in MediaExtractors().extractors
