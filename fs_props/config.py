"""
Configuration constants for fs-props.
"""

# --- Classification ---
UNKNOWN_MIME = "[unknown]"

# MIME prefix -> media family name
# Used to pick exactly one metadata extractor per file
MEDIA_PREFIXES = {
    'image/': 'image',
    'audio/': 'audio',
    'video/': 'video',
}

# --- Formatting ---
BYTE_UNITS = ('Bytes', 'KB', 'MB', 'GB', 'TB')
BIT_RATE_UNITS = ('bps', 'kbps', 'mbps')
DIMENSIONS_FORMAT = "{width} x {height} pixels"
RESOLUTION_FORMAT = "{x} x {y} Dpi"
CONTAINS_FORMAT = "{files} Files, {folders} Folders"

# --- Concurrency ---
# Every pool in the traversal is bounded by this, whatever the directory width.
DEFAULT_MAX_WORKERS = 4
MAX_WORKERS_CAP = 32

# How often (seconds) the walk loop wakes up to check for cancellation
CANCEL_POLL_INTERVAL = 0.1

# --- External probes ---
DEFAULT_FFPROBE_PATH = "ffprobe"
FFPROBE_ENV_VAR = "FFPROBE_PATH"
PROBE_TIMEOUT_SEC = 30

# exifread tags tried (in order) for each image field
EXIF_WIDTH_TAGS = ['EXIF ExifImageWidth', 'Image ImageWidth', 'EXIF PixelXDimension']
EXIF_HEIGHT_TAGS = ['EXIF ExifImageLength', 'Image ImageLength', 'EXIF PixelYDimension']
EXIF_BIT_DEPTH_TAGS = ['Image BitsPerSample', 'EXIF BitsPerSample']
EXIF_COLOR_TAGS = ['EXIF ColorSpace', 'Image PhotometricInterpretation']
EXIF_SUBSAMPLING_TAGS = ['Image YCbCrSubSampling', 'EXIF YCbCrSubSampling']

# Pillow mode -> bits per channel, for the fallback prober
PIL_MODE_BIT_DEPTH = {
    '1': 1,
    'L': 8, 'P': 8, 'RGB': 8, 'RGBA': 8, 'CMYK': 8, 'YCbCr': 8, 'LA': 8, 'LAB': 8, 'HSV': 8,
    'I;16': 16, 'I;16B': 16, 'I;16L': 16,
    'I': 32, 'F': 32,
}

# JpegImagePlugin.get_sampling() result -> label
JPEG_SUBSAMPLING = {0: '4:4:4', 1: '4:2:2', 2: '4:2:0'}

# PNG IHDR: signature + chunk length + 'IHDR', then the header fields
PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
PNG_IHDR_COMPRESSION_OFFSET = 26
PNG_IHDR_FILTER_OFFSET = 27
PNG_COMPRESSION_METHODS = {0: 'Deflate/Inflate'}
PNG_FILTER_METHODS = {0: 'Adaptive'}


def clamp_workers(max_workers: int) -> int:
    return max(1, min(int(max_workers), MAX_WORKERS_CAP))
