import argparse
import logging
import os
import sys
from pathlib import Path

from . import config
from .core import PathAggregator
from .exceptions import RootNotAccessibleError
from .metadata.extract import MediaExtractors
from .serialize import save_json, to_json


def setup_logging(verbose: bool):
    """Logs go to stderr so stdout stays valid JSON."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="fs-props",
        description="Print the properties of a file or folder (size, counts, timestamps, media metadata) as JSON."
    )

    p.add_argument("source", nargs="?", type=Path, default=Path.cwd(), help="File or folder to inspect (default: current directory)")
    p.add_argument("save", nargs="?", type=Path, default=None, help="Write the JSON here instead of stdout")

    p.add_argument("--deep", action="store_true", help="Also report every file and folder below source")
    p.add_argument("--workers", type=int, default=config.DEFAULT_MAX_WORKERS,
                   help=f"Max parallel stat/probe operations (1-{config.MAX_WORKERS_CAP}, default: {config.DEFAULT_MAX_WORKERS})")
    p.add_argument("--ffprobe", default=os.environ.get(config.FFPROBE_ENV_VAR, config.DEFAULT_FFPROBE_PATH),
                   help=f"Path to the ffprobe binary (default: ${config.FFPROBE_ENV_VAR} or 'ffprobe' on PATH)")
    p.add_argument("--no-media", dest="media", action="store_false",
                   help="Skip image/audio/video metadata; report filesystem properties only")
    p.add_argument("--no-follow-symlinks", dest="follow_symlinks", action="store_false",
                   help="Report symlinks themselves instead of their targets")
    p.add_argument("--progress", action="store_true", help="Show a progress bar during --deep metadata extraction")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    source = args.source.resolve()
    aggregator = PathAggregator(
        extractors=MediaExtractors(ffprobe_path=args.ffprobe) if args.media else None,
        max_workers=args.workers,
        follow_symlinks=args.follow_symlinks,
        extract_media=args.media,
    )

    try:
        if args.deep:
            result = aggregator.build_tree(source, progress=args.progress)
        else:
            result = aggregator.build_record(source)
    except RootNotAccessibleError as e:
        logging.error(str(e))
        return 1
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1

    if args.save:
        save_json(result, args.save.resolve())
        logging.info(f"Saved properties to {args.save}")
    else:
        sys.stdout.write(to_json(result) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
