import os
import logging
import stat
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Dict, FrozenSet, Iterator, List, Optional, Tuple

from .. import config
from ..exceptions import DescendantUnreadableError, RootNotAccessibleError, TraversalCancelled
from ..models import Contains, SizeResult


class CancelToken(threading.Event):
    """Caller-owned cancellation signal for a traversal."""

    def cancel(self):
        self.set()

    @property
    def cancelled(self) -> bool:
        return self.is_set()


@dataclass(eq=False)
class Node:
    """
    One visited filesystem entry.

    `stat` is the only snapshot ever taken for the entry; sizing, classification
    and timestamps all read from it. Totals are filled in bottom-up once the
    walk finishes.
    """
    path: Path
    stat: os.stat_result
    is_dir: bool
    children: List["Node"] = field(default_factory=list)
    readable: bool = True
    error: Optional[OSError] = None
    size: int = 0
    files: int = 0
    folders: int = 0
    # (st_dev, st_ino) of this directory and every directory above it
    lineage: FrozenSet[Tuple[int, int]] = frozenset()

    @property
    def contains(self) -> Optional[Contains]:
        if not self.is_dir:
            return None
        return Contains(files=self.files, folders=self.folders)

    def size_result(self) -> SizeResult:
        return SizeResult(size=self.size, contains=self.contains)

    def iter_preorder(self) -> Iterator["Node"]:
        """Yields this node, then every readable descendant (parent before children)."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            # reversed so children come out in listing order
            for child in reversed(node.children):
                if child.readable:
                    stack.append(child)


def stat_root(path: Path, follow_symlinks: bool = True) -> os.stat_result:
    try:
        return os.stat(path, follow_symlinks=follow_symlinks)
    except OSError as e:
        raise RootNotAccessibleError(path, e) from e


class SizeAggregator:
    """
    Computes cumulative size and file/folder counts for a path.

    Each directory path is listed exactly once per walk; the listing feeds
    both the counters and the recursion. A directory linked from two places
    is walked under both, and only a link back to an ancestor is cut.
    Listings run on a bounded thread pool and at most `max_workers` of them
    are in flight at any time, no matter how wide the tree is. Counters are never shared between threads: workers only
    return listings, and the totals are merged bottom-up afterwards.
    """

    def __init__(self, max_workers: int = config.DEFAULT_MAX_WORKERS, follow_symlinks: bool = True):
        self.max_workers = config.clamp_workers(max_workers)
        self.follow_symlinks = follow_symlinks

    def aggregate(self, path: Path, cancel: Optional[CancelToken] = None) -> SizeResult:
        """Returns {size, contains}; contains is None for files."""
        return self.walk(path, cancel).size_result()

    def walk(self, path: Path, cancel: Optional[CancelToken] = None) -> Node:
        """
        Walks `path` once and returns the root Node with totals for every node.

        Raises RootNotAccessibleError if the root cannot be stat'd (or, for a
        directory, listed). Unreadable descendants are dropped.
        """
        path = Path(path)
        root_stat = stat_root(path, self.follow_symlinks)
        root = Node(path=path, stat=root_stat, is_dir=stat.S_ISDIR(root_stat.st_mode))

        if not root.is_dir:
            root.size = root_stat.st_size
            return root
        root.lineage = frozenset({(root_stat.st_dev, root_stat.st_ino)})

        order = self._walk_directories(root, cancel)
        if not root.readable:
            raise RootNotAccessibleError(path, root.error)

        self._compute_totals(order)
        logging.debug(f"Walked {path}: {root.size} bytes, {root.files} files, {root.folders} folders")
        return root

    def _walk_directories(self, root: Node, cancel: Optional[CancelToken]) -> List[Node]:
        """
        Lists every directory below root on the pool. Returns all directory
        nodes in discovery order (parents before children).
        """
        pending: Deque[Node] = deque([root])
        in_flight: Dict[Future, Node] = {}
        order: List[Node] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            try:
                while pending or in_flight:
                    if cancel is not None and cancel.is_set():
                        raise TraversalCancelled()

                    while pending and len(in_flight) < self.max_workers:
                        node = pending.popleft()
                        in_flight[pool.submit(self._list_directory, node.path)] = node

                    done, _ = wait(in_flight, timeout=config.CANCEL_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                    for future in done:
                        node = in_flight.pop(future)
                        try:
                            entries = future.result()
                        except DescendantUnreadableError as e:
                            logging.debug(f"Skipping unreadable directory {node.path}: {e}")
                            node.readable = False
                            node.error = e.__cause__
                            continue

                        order.append(node)
                        for child_path, child_stat in entries:
                            is_dir = stat.S_ISDIR(child_stat.st_mode)
                            if is_dir:
                                key = (child_stat.st_dev, child_stat.st_ino)
                                if key in node.lineage:
                                    # link back to one of its own ancestors
                                    logging.debug(f"Skipping symlink loop at {child_path}")
                                    continue
                            child = Node(path=child_path, stat=child_stat, is_dir=is_dir)
                            node.children.append(child)
                            if is_dir:
                                child.lineage = node.lineage | {key}
                                pending.append(child)
            except BaseException:
                for future in in_flight:
                    future.cancel()
                raise

        return order

    def _list_directory(self, directory: Path) -> List[Tuple[Path, os.stat_result]]:
        """Lists one directory and stats each entry. Entries that fail to stat are dropped."""
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            raise DescendantUnreadableError(str(e)) from e

        # Sort for stable traversal order
        entries.sort(key=lambda e: e.name.lower())

        results = []
        for entry in entries:
            try:
                st = entry.stat(follow_symlinks=self.follow_symlinks)
            except OSError as e:
                # broken symlink, permission denied, deleted mid-walk
                logging.debug(f"Skipping unreadable entry {entry.path}: {e}")
                continue
            results.append((Path(entry.path), st))
        return results

    def _compute_totals(self, order: List[Node]):
        """Merges child totals into parents, deepest directories first."""
        for node in reversed(order):
            size = files = folders = 0
            for child in node.children:
                if not child.readable:
                    continue
                if child.is_dir:
                    folders += 1 + child.folders
                    files += child.files
                    size += child.size
                else:
                    files += 1
                    size += child.stat.st_size
                    child.size = child.stat.st_size
            node.size, node.files, node.folders = size, files, folders
