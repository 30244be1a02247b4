"""
Document store used for accounts and audit logs.

Connection strings:
- json:///abs/path/dir or json://relative/dir -> one JSON file per collection
- memory://                                  -> process memory (tests, demos)

Documents are plain dicts keyed by "id". Unique indexes are checked inside
the write critical section, so two requests racing on the same email cannot
both insert: the loser gets DuplicateKeyError from the write itself.
"""

from __future__ import annotations

import copy
import json
import shutil
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..utils.exceptions import ConfigError, DatabaseUnavailable
from ..utils.logger import get_logger
from .locks import acquire_lock, lock_path

logger = get_logger(__name__)

Document = Dict[str, Any]
Predicate = Callable[[Document], bool]


class DuplicateKeyError(Exception):
    """A write would violate a unique index"""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Duplicate value for unique field '{field}'")


class MemoryBackend:
    """Keeps collections in process memory"""

    def __init__(self):
        self._data: Dict[str, List[Document]] = {}

    def probe(self) -> None:
        return None

    def load(self, name: str) -> List[Document]:
        return copy.deepcopy(self._data.get(name, []))

    def save(self, name: str, documents: List[Document]) -> None:
        self._data[name] = copy.deepcopy(documents)

    @contextmanager
    def write_lock(self, name: str, timeout_seconds: float) -> Generator[None, None, None]:
        yield


class JsonFileBackend:
    """One JSON file per collection, replaced atomically on every write"""

    def __init__(self, directory: Path):
        self.directory = directory

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def probe(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        probe_file = self.directory / ".probe"
        probe_file.write_text("ok", encoding="utf-8")
        probe_file.unlink()

    def load(self, name: str) -> List[Document]:
        path = self._path(name)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise DatabaseUnavailable(f"Collection '{name}' is unreadable: {e}")
        except OSError as e:
            raise DatabaseUnavailable(f"Failed to read collection '{name}': {e}")
        return list(raw.get("documents", []))

    def save(self, name: str, documents: List[Document]) -> None:
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=str(path.parent), delete=False, encoding="utf-8"
        ) as tf:
            json.dump({"documents": documents}, tf, indent=2, ensure_ascii=False, default=str)
            temp_path = Path(tf.name)
        try:
            shutil.move(str(temp_path), str(path))
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise DatabaseUnavailable(f"Failed to save collection '{name}': {e}")

    @contextmanager
    def write_lock(self, name: str, timeout_seconds: float) -> Generator[None, None, None]:
        with acquire_lock(lock_path(self.directory, name), timeout_seconds):
            yield


def backend_for_url(url: str):
    """Build the storage backend named by a connection string"""
    parsed = urlparse(url)
    scheme = (parsed.scheme or "").lower()
    if scheme == "memory":
        return MemoryBackend()
    if scheme == "json":
        # json:///abs/dir -> path="/abs/dir"; json://rel/dir -> netloc="rel", path="/dir"
        raw_path = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
        if not raw_path:
            raise ConfigError(f"DATABASE_URL has no directory: {url}")
        return JsonFileBackend(Path(raw_path))
    raise ConfigError(f"Unsupported DATABASE_URL scheme '{scheme}' (expected json:// or memory://)")


def _matches(document: Document, filter: Optional[Dict[str, Any]], where: Optional[Predicate]) -> bool:
    if filter:
        for key, value in filter.items():
            if document.get(key) != value:
                return False
    if where is not None and not where(document):
        return False
    return True


class DocumentStore:
    """Entry point to the collections behind one connection string"""

    def __init__(
        self,
        url: str,
        connect_attempts: int = 3,
        write_timeout_seconds: float = 10.0,
        backoff_seconds: float = 0.5,
    ):
        self.url = url
        self.connect_attempts = max(1, connect_attempts)
        self.write_timeout_seconds = write_timeout_seconds
        self.backoff_seconds = backoff_seconds
        self._backend = backend_for_url(url)
        self._connected = False
        self._write_mutex = threading.Lock()
        self._collections: Dict[str, Collection] = {}

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def backend(self):
        return self._backend

    def connect(self) -> None:
        """Probe the backend, retrying with exponential backoff"""
        if self._connected:
            return
        probe = retry(
            stop=stop_after_attempt(self.connect_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=self.backoff_seconds * 8),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )(self._backend.probe)
        try:
            probe()
        except OSError as e:
            logger.error(
                "Database connection failed",
                url=self.url,
                attempts=self.connect_attempts,
                error=str(e),
            )
            raise DatabaseUnavailable("Database unavailable, please try again later")
        self._connected = True
        logger.info("Database connected", url=self.url)

    def collection(self, name: str, unique: Iterable[str] = ()) -> "Collection":
        existing = self._collections.get(name)
        if existing is not None:
            return existing
        coll = Collection(self, name, tuple(unique))
        self._collections[name] = coll
        return coll

    @contextmanager
    def write_section(self, name: str) -> Generator[None, None, None]:
        """Serialize writes in-process and across processes, bounded by the write timeout"""
        if not self._write_mutex.acquire(timeout=self.write_timeout_seconds):
            logger.error("Write timed out waiting for lock", collection=name)
            raise DatabaseUnavailable("Database write timed out")
        try:
            try:
                with self._backend.write_lock(name, self.write_timeout_seconds):
                    yield
            except TimeoutError as e:
                logger.error("Write timed out waiting for lock file", collection=name, error=str(e))
                raise DatabaseUnavailable("Database write timed out")
        finally:
            self._write_mutex.release()


class Collection:
    """A named set of documents with optional unique indexes"""

    def __init__(self, store: DocumentStore, name: str, unique: Tuple[str, ...] = ()):
        self.store = store
        self.name = name
        self.unique = unique

    def _load(self) -> List[Document]:
        self.store.connect()
        return self.store.backend.load(self.name)

    def _check_unique(self, candidate: Document, documents: List[Document], skip_id: Optional[str] = None) -> None:
        for field in self.unique:
            value = candidate.get(field)
            if value is None:
                continue
            for doc in documents:
                if skip_id is not None and doc.get("id") == skip_id:
                    continue
                if doc.get(field) == value:
                    raise DuplicateKeyError(field, value)

    def find_one(self, filter: Optional[Dict[str, Any]] = None, where: Optional[Predicate] = None) -> Optional[Document]:
        for doc in self._load():
            if _matches(doc, filter, where):
                return doc
        return None

    def find(
        self,
        filter: Optional[Dict[str, Any]] = None,
        where: Optional[Predicate] = None,
        sort: Optional[Tuple[str, bool]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Return matching documents; sort is (field, descending)"""
        docs = [d for d in self._load() if _matches(d, filter, where)]
        if sort is not None:
            field, descending = sort
            if descending:
                # ties keep newest-inserted first
                docs.reverse()
            docs.sort(key=lambda d: (d.get(field) is None, str(d.get(field) or "")), reverse=descending)
        docs = docs[max(0, skip):]
        if limit is not None:
            docs = docs[:limit]
        return docs

    def count(self, filter: Optional[Dict[str, Any]] = None, where: Optional[Predicate] = None) -> int:
        return sum(1 for d in self._load() if _matches(d, filter, where))

    def insert_one(self, document: Document) -> Document:
        doc = dict(document)
        doc.setdefault("id", uuid.uuid4().hex)
        with self.store.write_section(self.name):
            docs = self._load()
            if any(d.get("id") == doc["id"] for d in docs):
                raise DuplicateKeyError("id", doc["id"])
            self._check_unique(doc, docs)
            docs.append(doc)
            self.store.backend.save(self.name, docs)
        return dict(doc)

    def update_one(self, filter: Dict[str, Any], changes: Dict[str, Any]) -> Optional[Document]:
        """Apply field changes to the first match; returns the updated document or None"""
        with self.store.write_section(self.name):
            docs = self._load()
            for i, doc in enumerate(docs):
                if not _matches(doc, filter, None):
                    continue
                updated = {**doc, **changes, "id": doc["id"]}
                self._check_unique(updated, docs, skip_id=doc["id"])
                docs[i] = updated
                self.store.backend.save(self.name, docs)
                return dict(updated)
        return None

    def delete_one(self, filter: Dict[str, Any]) -> bool:
        with self.store.write_section(self.name):
            docs = self._load()
            for i, doc in enumerate(docs):
                if _matches(doc, filter, None):
                    del docs[i]
                    self.store.backend.save(self.name, docs)
                    return True
        return False
