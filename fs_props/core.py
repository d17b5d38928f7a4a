import os
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from tqdm import tqdm

from . import config
from .exceptions import TraversalCancelled
from .formatting import convert_bytes
from .metadata.extract import MediaExtractors
from .models import Kind, MediaMetadata, PropertyRecord
from .scanning.classifier import Classification, classify
from .scanning.sizing import CancelToken, Node, SizeAggregator
from .timestamps import normalize


def _posix(path: str) -> str:
    # undecodable bytes in names come back as \xNN escapes so the text stays valid UTF-8
    text = os.path.normpath(path).replace(os.sep, "/")
    return os.fsencode(text).decode("utf-8", "backslashreplace")


class PathAggregator:
    """
    Builds PropertyRecords for a path and, for directories, its whole subtree.

    Pipeline per traversal:
      1. Walk (SizeAggregator) - one listing per directory, totals for every node
      2. Classify each node from its walk-time stat snapshot
      3. Extract media metadata for image/audio/video files (bounded pool),
         unless the aggregator was built with extract_media=False
      4. Assemble records, root first
    """

    def __init__(self,
                 extractors: Optional[MediaExtractors] = None,
                 max_workers: int = config.DEFAULT_MAX_WORKERS,
                 follow_symlinks: bool = True,
                 extract_media: bool = True):
        self.max_workers = config.clamp_workers(max_workers)
        self.sizer = SizeAggregator(max_workers=self.max_workers, follow_symlinks=follow_symlinks)
        self.extract_media = extract_media
        # filesystem-only aggregators never probe, so they need no extractors
        self.extractors = (extractors or MediaExtractors()) if extract_media else None

    def build_record(self, path, cancel: Optional[CancelToken] = None) -> PropertyRecord:
        """
        Returns the record for a single path.

        Raises RootNotAccessibleError if the path cannot be stat'd.
        """
        root = self.sizer.walk(Path(path), cancel)
        classification = classify(root.path, root.stat)
        media = None
        if self.extract_media:
            media = self.extractors.extract(root.path, classification.family)
        return self._assemble(root, classification, media)

    def build_tree(self,
                   path,
                   cancel: Optional[CancelToken] = None,
                   progress: bool = False) -> List[PropertyRecord]:
        """
        Returns records for `path` and every readable descendant, root first,
        then pre-order with children sorted by name.

        The tree is walked once; every record reuses the sizes and counts
        computed by that walk. Raises RootNotAccessibleError for a bad root and
        TraversalCancelled (with the finished records in `.partial`) when
        `cancel` is set.
        """
        logging.info(f"Traversing {path}...")
        root = self.sizer.walk(Path(path), cancel)

        nodes = list(root.iter_preorder())
        classes = [classify(node.path, node.stat) for node in nodes]
        jobs = []
        if self.extract_media:
            jobs = [(i, node, c) for i, (node, c) in enumerate(zip(nodes, classes)) if c.family is not None]

        media: Dict[int, Optional[MediaMetadata]] = {}
        try:
            self._extract_media(jobs, media, cancel, progress)
        except TraversalCancelled:
            partial = [
                self._assemble(node, c, media.get(i))
                for i, (node, c) in enumerate(zip(nodes, classes))
                if c.family is None or i in media
            ]
            raise TraversalCancelled(partial) from None

        records = [self._assemble(node, c, media.get(i)) for i, (node, c) in enumerate(zip(nodes, classes))]
        logging.info(f"Traversal complete. {len(records)} records, {len(jobs)} media files.")
        return records

    def _extract_media(self,
                       jobs: Sequence[Tuple[int, Node, Classification]],
                       media: Dict[int, Optional[MediaMetadata]],
                       cancel: Optional[CancelToken],
                       progress: bool):
        """Runs extractors with at most max_workers probes in flight; fills `media` by node index."""
        if not jobs:
            return
        queue = iter(jobs)
        in_flight: Dict[Future, int] = {}
        exhausted = False

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool, \
                tqdm(total=len(jobs), desc="Extracting metadata", disable=not progress) as bar:
            try:
                while True:
                    if cancel is not None and cancel.is_set():
                        raise TraversalCancelled()

                    while not exhausted and len(in_flight) < self.max_workers:
                        job = next(queue, None)
                        if job is None:
                            exhausted = True
                            break
                        i, node, c = job
                        in_flight[pool.submit(self.extractors.extract, node.path, c.family)] = i

                    if not in_flight:
                        break

                    done, _ = wait(in_flight, timeout=config.CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                    for future in done:
                        media[in_flight.pop(future)] = future.result()
                        bar.update(1)
            except BaseException:
                for future in in_flight:
                    future.cancel()
                raise

    def _assemble(self,
                  node: Node,
                  classification: Classification,
                  media: Optional[MediaMetadata]) -> PropertyRecord:
        location = _posix(str(node.path))
        name = os.path.basename(location) or location
        is_file = classification.kind is Kind.FILE

        if is_file:
            base_name, extension = os.path.splitext(name)
        else:
            base_name, extension = name, None

        contains = node.contains
        return PropertyRecord(
            name=name,
            base_name=base_name,
            extension=extension,
            directory=_posix(os.path.dirname(location) or "."),
            location=location,
            kind=classification.kind,
            size=node.size,
            size_display=convert_bytes(node.size),
            timestamps=normalize(node.stat),
            mime_type=classification.mime_type,
            contained_files=contains.files if contains else None,
            contained_folders=contains.folders if contains else None,
            contains_display=config.CONTAINS_FORMAT.format(files=contains.files, folders=contains.folders)
            if contains else None,
            media=media if is_file else None,
        )


def props(path, **kwargs) -> PropertyRecord:
    """Record for one path. kwargs go to PathAggregator."""
    return PathAggregator(**kwargs).build_record(path)


def deep_props(path, **kwargs) -> List[PropertyRecord]:
    """Records for a path and all its descendants, root first."""
    return PathAggregator(**kwargs).build_tree(path)


def stat(path, **kwargs) -> PropertyRecord:
    """Like props(), without media probing: filesystem properties only."""
    return PathAggregator(extract_media=False, **kwargs).build_record(path)


def deep_stat(path, **kwargs) -> List[PropertyRecord]:
    """Like deep_props(), without media probing."""
    return PathAggregator(extract_media=False, **kwargs).build_tree(path)
