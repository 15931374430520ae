"""Embedding cache: read/write embeddings.bin and manifest.tsv for a scope.

One entry per memory. Every entry in a store shares a single model (and so
a single dimension count), which is recorded in the binary header; putting
an entry for another model drops the old entries since vectors from
different models are not comparable.
"""

import hashlib
import logging
import os
import struct
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Magic number: "MEML" = 0x4D454D4C
MAGIC = 0x4D454D4C
FORMAT_VERSION = 1
HEADER_SIZE = 32

BIN_FILENAME = "embeddings.bin"
MANIFEST_FILENAME = "manifest.tsv"
MANIFEST_HEADER = "# memory_id\tindex\tmodel\tcontent_hash\ttimestamp"


class CacheFormatError(ValueError):
    """embeddings.bin / manifest.tsv do not describe a consistent cache."""


@dataclass(frozen=True)
class EmbeddingCacheEntry:
    memory_id: str
    model: str
    vector: Tuple[float, ...]
    content_hash: str
    timestamp: str


def model_hash(model_name: str) -> int:
    """First 4 bytes of SHA256 of model name as uint32."""
    h = hashlib.sha256(model_name.encode()).digest()
    return struct.unpack("I", h[:4])[0]


def content_hash(content: str) -> str:
    """Fingerprint of memory content used for staleness checks."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def is_stale(content: str, entry: Optional[EmbeddingCacheEntry]) -> bool:
    """True when there is no cached entry or the content has changed since."""
    if entry is None:
        return True
    return entry.content_hash != content_hash(content)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def write_cache(store_dir: str, entries: List[EmbeddingCacheEntry]) -> None:
    """Write entries to embeddings.bin and manifest.tsv, replacing both files."""
    out = Path(store_dir)
    out.mkdir(parents=True, exist_ok=True)
    bin_path = out / BIN_FILENAME
    manifest_path = out / MANIFEST_FILENAME

    if not entries:
        for p in (bin_path, manifest_path):
            if p.exists():
                p.unlink()
        return

    model = entries[0].model
    dims = len(entries[0].vector)
    if any(e.model != model or len(e.vector) != dims for e in entries):
        raise CacheFormatError("All cache entries must share one model and dimension count")

    header = struct.pack("IIIII", MAGIC, FORMAT_VERSION, dims, len(entries), model_hash(model))
    header += b"\x00" * (HEADER_SIZE - len(header))  # reserved
    arr = np.array([e.vector for e in entries], dtype=np.float32)

    lines = [MANIFEST_HEADER]
    for i, e in enumerate(entries):
        lines.append(f"{e.memory_id}\t{i}\t{e.model}\t{e.content_hash}\t{e.timestamp}")

    _atomic_write(bin_path, header + arr.tobytes())
    _atomic_write(manifest_path, ("\n".join(lines) + "\n").encode("utf-8"))


def load_vectors(bin_path: str) -> Tuple[np.ndarray, int, int, int]:
    """Load vectors from the binary file.

    Returns: (vectors_array, dimensions, count, model_hash)
    """
    with open(bin_path, "rb") as f:
        data = f.read(HEADER_SIZE)
        if len(data) < HEADER_SIZE:
            raise CacheFormatError("Truncated embeddings header")
        magic, version, dims, count, mhash = struct.unpack_from("IIIII", data, 0)
        if magic != MAGIC:
            raise CacheFormatError(f"Not a memlink embeddings file (magic={hex(magic)})")
        if version != FORMAT_VERSION:
            raise CacheFormatError(f"Unsupported embeddings format version {version}")

        vec_data = f.read(count * dims * 4)
        if len(vec_data) != count * dims * 4:
            raise CacheFormatError("Truncated embeddings data")
        vectors = np.frombuffer(vec_data, dtype=np.float32).reshape(count, dims)

    return vectors, dims, count, mhash


def load_manifest(manifest_path: str) -> List[Tuple[str, int, str, str, str]]:
    """Load manifest rows: (memory_id, index, model, content_hash, timestamp).

    Only the exact header line is skipped; memory ids may start with ``#``.
    """
    rows = []
    with open(manifest_path, encoding="utf-8") as f:
        for line in f:
            if line.rstrip("\n") == MANIFEST_HEADER or not line.strip():
                continue
            parts = line.rstrip("\n").split("\t")
            if len(parts) < 5:
                raise CacheFormatError(f"Malformed manifest row: {line.strip()!r}")
            rows.append((parts[0], int(parts[1]), parts[2], parts[3], parts[4]))
    return rows


def read_cache(store_dir: str) -> List[EmbeddingCacheEntry]:
    """Read every cache entry, raising CacheFormatError on inconsistency."""
    store = Path(store_dir)
    bin_path = store / BIN_FILENAME
    manifest_path = store / MANIFEST_FILENAME
    if not bin_path.exists() and not manifest_path.exists():
        return []
    if not bin_path.exists() or not manifest_path.exists():
        raise CacheFormatError("embeddings.bin and manifest.tsv must exist together")

    vectors, dims, count, mhash = load_vectors(str(bin_path))
    rows = load_manifest(str(manifest_path))
    if len(rows) != count:
        raise CacheFormatError(f"Manifest has {len(rows)} rows but header says {count}")

    entries = []
    for memory_id, index, model, chash, timestamp in rows:
        if not 0 <= index < count:
            raise CacheFormatError(f"Manifest index out of range: {index}")
        if model_hash(model) != mhash:
            raise CacheFormatError(f"Model {model!r} does not match embeddings header")
        entries.append(EmbeddingCacheEntry(
            memory_id=memory_id,
            model=model,
            vector=tuple(float(v) for v in vectors[index]),
            content_hash=chash,
            timestamp=timestamp,
        ))
    return entries


class EmbeddingCache:
    """Per-scope embedding cache keyed by memory id.

    Each operation reads the files, applies the change and writes them back;
    there is no cross-process locking, the last writer wins.
    """

    def __init__(self, store_dir):
        self._store = Path(store_dir)

    @property
    def store_dir(self) -> Path:
        return self._store

    def _load(self) -> Dict[str, EmbeddingCacheEntry]:
        try:
            entries = read_cache(str(self._store))
        except (OSError, ValueError) as e:
            logger.warning(f"Embedding cache in {self._store} is unreadable, starting fresh: {e}")
            return {}
        return {e.memory_id: e for e in entries}

    def _save(self, entries: Dict[str, EmbeddingCacheEntry]) -> None:
        write_cache(str(self._store), list(entries.values()))
        logger.debug(f"Saved embedding cache {self._store} ({len(entries)} entries)")

    def entries(self) -> List[EmbeddingCacheEntry]:
        return list(self._load().values())

    def __len__(self) -> int:
        return len(self._load())

    def __contains__(self, memory_id: str) -> bool:
        return memory_id in self._load()

    def get(self, memory_id: str, model: Optional[str] = None) -> Optional[EmbeddingCacheEntry]:
        """Cached entry for memory_id, or None (also None when tagged with another model)."""
        entry = self._load().get(memory_id)
        if entry is None or (model is not None and entry.model != model):
            return None
        return entry

    def put(
        self,
        memory_id: str,
        model: str,
        vector: Iterable[float],
        content_hash: str,
    ) -> EmbeddingCacheEntry:
        """Create or overwrite the entry for memory_id with a fresh timestamp."""
        return self.put_many([(memory_id, model, vector, content_hash)])[0]

    def put_many(
        self,
        items: Iterable[Tuple[str, str, Iterable[float], str]],
    ) -> List[EmbeddingCacheEntry]:
        entries = self._load()
        written = []
        timestamp = _now()

        for memory_id, model, vector, chash in items:
            if not memory_id or any(ch in memory_id for ch in "\t\r\n"):
                raise ValueError(f"Invalid memory id for cache: {memory_id!r}")
            vec = tuple(float(v) for v in vector)
            if not vec:
                raise ValueError(f"Cannot cache an empty vector for {memory_id}")
            dropped = [
                k for k, e in entries.items()
                if k != memory_id and (e.model != model or len(e.vector) != len(vec))
            ]
            if dropped:
                logger.info(f"Embedding model changed to {model}; invalidated {len(dropped)} cached entries")
                for k in dropped:
                    del entries[k]
            entry = EmbeddingCacheEntry(
                memory_id=memory_id, model=model, vector=vec,
                content_hash=chash, timestamp=timestamp,
            )
            entries[memory_id] = entry
            written.append(entry)

        self._save(entries)
        return written

    def remove(self, memory_id: str) -> bool:
        entries = self._load()
        if memory_id not in entries:
            return False
        del entries[memory_id]
        self._save(entries)
        return True

    def invalidate_model(self, model: str) -> int:
        """Drop every entry not tagged with model. Returns the number dropped."""
        entries = self._load()
        kept = {k: e for k, e in entries.items() if e.model == model}
        dropped = len(entries) - len(kept)
        if dropped:
            self._save(kept)
            logger.info(f"Invalidated {dropped} cached embeddings not produced by {model}")
        return dropped

    def vectors(
        self,
        model: Optional[str] = None,
        exclude: Optional[str] = None,
    ) -> List[Tuple[str, Tuple[float, ...]]]:
        """(memory_id, vector) pairs in manifest order."""
        return [
            (e.memory_id, e.vector)
            for e in self._load().values()
            if (model is None or e.model == model) and e.memory_id != exclude
        ]
