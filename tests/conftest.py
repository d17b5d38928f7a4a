import pytest
from PIL import Image

from fs_props.core import PathAggregator
from fs_props.metadata.extract import MediaExtractors


@pytest.fixture
def no_mediainfo(monkeypatch):
    """Disables the pymediainfo fallback so tests never depend on libmediainfo."""
    import fs_props.metadata.extract as extract_module
    monkeypatch.setattr(extract_module, "MediaInfo", None)


@pytest.fixture
def extractors(tmp_path, no_mediainfo):
    """Real extractors wired to an ffprobe path that does not exist."""
    return MediaExtractors(ffprobe_path=str(tmp_path / "no-such-ffprobe"))


@pytest.fixture
def aggregator(extractors):
    return PathAggregator(extractors=extractors, max_workers=4)


@pytest.fixture
def make_image():
    """Writes a real image file with Pillow and returns its path."""
    def _make(path, size=(100, 50), fmt="JPEG", **save_kwargs):
        Image.new("RGB", size, color=(200, 30, 30)).save(path, fmt, **save_kwargs)
        return path
    return _make
