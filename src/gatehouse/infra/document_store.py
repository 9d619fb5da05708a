# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Document store capability.

A small subset of document-database semantics: per-collection documents keyed
by ``_id``, equality queries (plus ``$ne`` / ``$lte`` / ``$gt``), atomic
single-document insert/upsert/update/delete, unique fields, and store-assigned
``created_at`` / ``updated_at`` timestamps.

Two backends:
- ``MemoryDocumentStore``: process memory (tests, local development).
- ``YamlDocumentStore``: a single YAML file, rewritten atomically.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set, Tuple

import yaml

from gatehouse.core.utils import Clock, as_utc, utc_now
from gatehouse.errors import StoreUnavailable

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Query = Mapping[str, Any]


class DuplicateKeyError(Exception):
    def __init__(self, collection: str, field: str) -> None:
        self.collection = collection
        self.field = field
        super().__init__(f"Duplicate value for unique field '{field}' in '{collection}'")


class DocumentStore(Protocol):
    def declare_unique(self, collection: str, field: str) -> None: ...

    async def find_one(self, collection: str, query: Query) -> Optional[Document]: ...

    async def insert_one(self, collection: str, document: Document) -> Document: ...

    async def upsert_one(self, collection: str, query: Query, values: Mapping[str, Any]) -> Document: ...

    async def update_one(self, collection: str, query: Query, values: Mapping[str, Any]) -> Optional[Document]: ...

    async def delete_one(self, collection: str, query: Query) -> int: ...

    async def delete_many(self, collection: str, query: Query) -> int: ...


def _norm(v: Any) -> Any:
    return as_utc(v) if isinstance(v, datetime) else v


def _match_value(actual: Any, expected: Any) -> bool:
    actual = _norm(actual)
    if isinstance(expected, Mapping):
        for op, operand in expected.items():
            operand = _norm(operand)
            if op == "$ne":
                if actual == operand:
                    return False
            elif op == "$lte":
                if actual is None or not actual <= operand:
                    return False
            elif op == "$gt":
                if actual is None or not actual > operand:
                    return False
            else:
                raise ValueError(f"Unsupported query operator: {op}")
        return True
    return actual == _norm(expected)


def matches(document: Mapping[str, Any], query: Query) -> bool:
    return all(_match_value(document.get(k), v) for k, v in query.items())


def _equality_fields(query: Query) -> Document:
    return {k: v for k, v in query.items() if not isinstance(v, Mapping)}


class _DictDocumentStore:
    """Shared logic for stores that keep every collection as ``{_id: doc}``."""

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._unique: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    # --- persistence hooks ---

    async def _refresh(self) -> None:
        return None

    async def _persist(self) -> None:
        return None

    # --- helpers ---

    def declare_unique(self, collection: str, field: str) -> None:
        self._unique.setdefault(collection, set()).add(field)

    def _docs(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    def _first(self, collection: str, query: Query) -> Optional[Document]:
        if "_id" in query and not isinstance(query["_id"], Mapping):
            doc = self._docs(collection).get(str(query["_id"]))
            return doc if doc is not None and matches(doc, query) else None
        for doc in self._docs(collection).values():
            if matches(doc, query):
                return doc
        return None

    def _check_unique(self, collection: str, candidate: Document) -> None:
        for field in self._unique.get(collection, ()):
            value = candidate.get(field)
            if value is None:
                continue
            for other in self._docs(collection).values():
                if other["_id"] != candidate["_id"] and other.get(field) == value:
                    raise DuplicateKeyError(collection, field)

    # --- operations ---

    async def find_one(self, collection: str, query: Query) -> Optional[Document]:
        async with self._lock:
            await self._refresh()
            doc = self._first(collection, query)
            return copy.deepcopy(doc) if doc is not None else None

    async def insert_one(self, collection: str, document: Document) -> Document:
        async with self._lock:
            await self._refresh()
            now = self._clock()
            doc = copy.deepcopy(dict(document))
            doc["_id"] = str(doc.get("_id") or uuid.uuid4().hex)
            if doc["_id"] in self._docs(collection):
                raise DuplicateKeyError(collection, "_id")
            doc.setdefault("created_at", now)
            doc["updated_at"] = now
            self._check_unique(collection, doc)
            self._docs(collection)[doc["_id"]] = doc
            await self._persist()
            return copy.deepcopy(doc)

    async def upsert_one(self, collection: str, query: Query, values: Mapping[str, Any]) -> Document:
        async with self._lock:
            await self._refresh()
            now = self._clock()
            current = self._first(collection, query)
            if current is None:
                doc = {**_equality_fields(query), **copy.deepcopy(dict(values))}
                doc["_id"] = str(doc.get("_id") or uuid.uuid4().hex)
                doc["created_at"] = now
            else:
                doc = {**copy.deepcopy(current), **copy.deepcopy(dict(values))}
            doc["updated_at"] = now
            self._check_unique(collection, doc)
            self._docs(collection)[doc["_id"]] = doc
            await self._persist()
            return copy.deepcopy(doc)

    async def update_one(self, collection: str, query: Query, values: Mapping[str, Any]) -> Optional[Document]:
        async with self._lock:
            await self._refresh()
            current = self._first(collection, query)
            if current is None:
                return None
            doc = {**copy.deepcopy(current), **copy.deepcopy(dict(values))}
            doc["_id"] = current["_id"]
            doc["updated_at"] = self._clock()
            self._check_unique(collection, doc)
            self._docs(collection)[doc["_id"]] = doc
            await self._persist()
            return copy.deepcopy(doc)

    async def delete_one(self, collection: str, query: Query) -> int:
        async with self._lock:
            await self._refresh()
            doc = self._first(collection, query)
            if doc is None:
                return 0
            del self._docs(collection)[doc["_id"]]
            await self._persist()
            return 1

    async def delete_many(self, collection: str, query: Query) -> int:
        async with self._lock:
            await self._refresh()
            docs = self._docs(collection)
            doomed = [k for k, d in docs.items() if matches(d, query)]
            for k in doomed:
                del docs[k]
            if doomed:
                await self._persist()
            return len(doomed)


class MemoryDocumentStore(_DictDocumentStore):
    """In-process store. Every operation is atomic under one asyncio lock."""

    def count(self, collection: str) -> int:
        return len(self._docs(collection))


class YamlDocumentStore(_DictDocumentStore):
    """Single YAML file holding every collection.

    The file is reloaded when its mtime changes and rewritten atomically
    (temp file + ``os.replace``) after each mutation. OS and YAML errors surface
    as ``StoreUnavailable``.
    """

    def __init__(self, path: Path, *, clock: Clock = utc_now) -> None:
        super().__init__(clock=clock)
        self.path = Path(path).resolve()
        self._mtime: Optional[float] = None

    def _read(self) -> Tuple[Optional[float], Dict[str, Dict[str, Document]]]:
        if not self.path.exists():
            return None, {}
        mtime = self.path.stat().st_mtime
        raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        cols = (raw.get("collections") or {}) if isinstance(raw, dict) else {}
        out: Dict[str, Dict[str, Document]] = {}
        for name, docs in cols.items():
            if not isinstance(docs, dict):
                continue
            out[str(name)] = {
                str(k): {f: _norm(v) for f, v in d.items()} for k, d in docs.items() if isinstance(d, dict)
            }
        return mtime, out

    def _write(self, payload: Dict[str, Any]) -> float:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".gatehouse-", suffix=".yml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                yaml.safe_dump(payload, fh, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return self.path.stat().st_mtime

    async def _refresh(self) -> None:
        try:
            current = self.path.stat().st_mtime if self.path.exists() else None
            if self._mtime is not None and current == self._mtime:
                return
            self._mtime, self._collections = await asyncio.to_thread(self._read)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Document store unreadable at %s: %s", self.path, e)
            raise StoreUnavailable() from e

    async def _persist(self) -> None:
        payload = {"version": 1, "collections": self._collections}
        try:
            self._mtime = await asyncio.to_thread(self._write, copy.deepcopy(payload))
        except (OSError, yaml.YAMLError) as e:
            # in-memory state is ahead of the file now; reload on next access
            self._mtime = None
            logger.error("Document store not writable at %s: %s", self.path, e)
            raise StoreUnavailable() from e


def open_document_store(backend: str, path: Optional[str] = None, *, clock: Clock = utc_now) -> DocumentStore:
    b = (backend or "yaml").strip().lower()
    if b == "memory":
        return MemoryDocumentStore(clock=clock)
    if b == "yaml":
        if not path:
            raise ValueError("YAML document store needs a path")
        return YamlDocumentStore(Path(path), clock=clock)
    raise ValueError(f"Unknown document store backend: {backend}")
