"""
YAML-backed document store and filesystem object store.

Documents live at ``<root>/<path>.yaml``; a collection is the directory
holding them, e.g. ``tournaments/abc/matches/<id>.yaml``. Writers are
serialised with a single FileLock and each file is replaced atomically.
A batch runs every version check before its first write, so a conflict
writes nothing; a filesystem error partway through the writes is not
rolled back.
"""
import logging
import os
import re
import tempfile
import time
from typing import Dict, Iterator, List, Optional

import yaml
from filelock import FileLock, Timeout

logger = logging.getLogger(__name__)

_SEGMENT_RE = re.compile(r'^[A-Za-z0-9_-]+$')
_OBJECT_SEGMENT_RE = re.compile(r'^[A-Za-z0-9_-][A-Za-z0-9_.-]*$')


class StorageError(Exception):
    """Persistence failure (unreadable document, lock timeout, bad path)."""


class ConflictError(StorageError):
    """A conditional write found a newer version than the caller expected."""

    def __init__(self, path: str, expected_version: int, actual_version: int):
        super().__init__(
            f'{path} changed while you were editing it '
            f'(expected version {expected_version}, found {actual_version}). Reload and try again.'
        )
        self.path = path
        self.expected_version = expected_version
        self.actual_version = actual_version


def set_op(path: str, doc: Dict, merge: bool = False, expected_version: Optional[int] = None) -> Dict:
    """Build a batch write that stores ``doc`` at ``path``."""
    return {'op': 'set', 'path': path, 'doc': doc, 'merge': merge, 'expected_version': expected_version}


def delete_op(path: str) -> Dict:
    """Build a batch write that removes the document at ``path``."""
    return {'op': 'delete', 'path': path}


def _split(path: str, pattern=_SEGMENT_RE) -> List[str]:
    segments = str(path).strip('/').split('/')
    if not segments or not all(pattern.match(s) for s in segments):
        raise StorageError(f'Invalid storage path: {path!r}')
    return segments


class YamlDocumentStore:
    """Document store keyed by slash-separated paths."""

    def __init__(self, root: str, lock_timeout: float = 10):
        self.root = root
        os.makedirs(root, exist_ok=True)
        self._lock = FileLock(os.path.join(root, '.lock'), timeout=lock_timeout)

    def __repr__(self):
        return f"YamlDocumentStore(root={self.root})"

    def _doc_file(self, path: str) -> str:
        return os.path.join(self.root, *_split(path)) + '.yaml'

    def _collection_dir(self, path: str) -> str:
        return os.path.join(self.root, *_split(path))

    def _read(self, file_path: str) -> Optional[Dict]:
        if not os.path.exists(file_path):
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise StorageError(f'Failed to parse {file_path}: {e}') from e
        return data if data else {}

    def _write(self, file_path: str, doc: Dict):
        directory = os.path.dirname(file_path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.dump(doc, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
            os.replace(tmp_path, file_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, path: str) -> Optional[Dict]:
        """Return the document at ``path`` or None if it does not exist."""
        return self._read(self._doc_file(path))

    def list(self, collection: str) -> List[Dict]:
        """Return every document in a collection, ordered by document id."""
        directory = self._collection_dir(collection)
        if not os.path.isdir(directory):
            return []
        docs = []
        for name in sorted(os.listdir(directory)):
            if not name.endswith('.yaml'):
                continue
            doc = self._read(os.path.join(directory, name))
            if doc is not None:
                docs.append(doc)
        return docs

    def set(self, path: str, doc: Dict, merge: bool = False, expected_version: Optional[int] = None):
        """Write a document. With ``expected_version`` the write is conditional."""
        self.run_batch([set_op(path, doc, merge=merge, expected_version=expected_version)])

    def delete(self, path: str):
        self.run_batch([delete_op(path)])

    def run_batch(self, writes: List[Dict]):
        """
        Apply several writes as one unit.

        All version checks run before anything is written. A missing document
        counts as version 0.

        Raises:
            ConflictError: a conditional write saw a different version.
            StorageError: the lock could not be acquired or a path is invalid.
        """
        planned = []
        try:
            with self._lock:
                for write in writes:
                    file_path = self._doc_file(write['path'])
                    if write['op'] == 'delete':
                        planned.append((file_path, None))
                        continue

                    current = self._read(file_path)
                    expected = write.get('expected_version')
                    if expected is not None:
                        actual = (current or {}).get('version', 0)
                        if actual != expected:
                            raise ConflictError(write['path'], expected, actual)
                    doc = dict(write['doc'])
                    if write.get('merge') and current:
                        doc = {**current, **doc}
                    planned.append((file_path, doc))

                for file_path, doc in planned:
                    if doc is None:
                        if os.path.exists(file_path):
                            os.remove(file_path)
                    else:
                        self._write(file_path, doc)
        except Timeout as e:
            raise StorageError(f'Timed out waiting for the data lock in {self.root}') from e
        logger.debug("Applied batch of %d write(s)", len(planned))

    def _signature(self, path: str, collection: bool):
        if not collection:
            file_path = self._doc_file(path)
            return os.path.getmtime(file_path) if os.path.exists(file_path) else 0.0
        directory = self._collection_dir(path)
        if not os.path.isdir(directory):
            return ()
        return tuple(
            (name, os.path.getmtime(os.path.join(directory, name)))
            for name in sorted(os.listdir(directory))
            if name.endswith('.yaml')
        )

    def subscribe(self, path: str, collection: bool = False, interval: float = 3.0,
                  max_events: Optional[int] = None) -> Iterator:
        """
        Yield a snapshot now and again every time the document (or collection) changes.

        Changes are detected by polling file modification times every
        ``interval`` seconds. ``max_events`` stops the generator after that
        many snapshots.
        """
        def snapshot():
            return self.list(path) if collection else self.get(path)

        last = self._signature(path, collection)
        yield snapshot()
        emitted = 1
        while max_events is None or emitted < max_events:
            time.sleep(interval)
            current = self._signature(path, collection)
            if current != last:
                last = current
                yield snapshot()
                emitted += 1


class FileObjectStore:
    """Stores uploaded binary objects (logos) under a directory."""

    def __init__(self, root: str, base_url: str = '/media'):
        self.root = root
        self.base_url = base_url.rstrip('/')

    def __repr__(self):
        return f"FileObjectStore(root={self.root})"

    def _file(self, path: str) -> str:
        return os.path.join(self.root, *_split(path, _OBJECT_SEGMENT_RE))

    def put(self, path: str, data: bytes) -> str:
        """Store ``data`` at ``path`` and return the URL it is served from."""
        file_path = self._file(path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, 'wb') as f:
            f.write(data)
        return f"{self.base_url}/{path.strip('/')}"

    def delete(self, path: str):
        file_path = self._file(path)
        if os.path.exists(file_path):
            os.remove(file_path)
