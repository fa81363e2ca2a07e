"""In-memory implementation of IIndexGateway (search_backend=memory).

Evaluates the subset of the query DSL that QueryCompiler emits: bool
(must/filter/should/must_not), term, terms, range, multi_match
(best_fields with AUTO fuzziness) and match_all, plus sort, from/size,
terms aggregations and highlights. Stale-write checks, tenant checks and
delete tombstones mirror the engine scripts. Dates are compared as
datetimes only in date fields.
Scores are a simple term-overlap measure, not BM25.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections import Counter
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from app.application.dtos.search import CompiledQuery, IndexStats, SearchHit, SearchResult
from app.domain.documents import SearchDocument, document_from_source
from app.domain.enums import ALL_COLLECTIONS, IndexHealth, WriteResult
from app.domain.exceptions import ResourceNotFoundException
from app.infrastructure.search.mappings import DATE_FIELDS, build_write_source
from app.shared.utils.datetime import parse_timestamp, utc_now

_TOKEN = re.compile(r"\w+", re.UNICODE)
_TERMS_AGG_SIZE = 10


def levenshtein_distance(s1: str, s2: str, max_distance: int | None = None) -> int:
    """Edit distance between s1 and s2; max_distance + 1 once it is exceeded."""
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)
    if len(s1) > len(s2):
        s1, s2 = s2, s1
    m, n = len(s1), len(s2)
    if max_distance is not None and n - m > max_distance:
        return max_distance + 1

    prev_row = list(range(m + 1))
    curr_row = [0] * (m + 1)
    for j in range(1, n + 1):
        curr_row[0] = j
        row_min = j
        for i in range(1, m + 1):
            cost = 0 if s1[i - 1] == s2[j - 1] else 1
            curr_row[i] = min(prev_row[i] + 1, curr_row[i - 1] + 1, prev_row[i - 1] + cost)
            row_min = min(row_min, curr_row[i])
        if max_distance is not None and row_min > max_distance:
            return max_distance + 1
        prev_row, curr_row = curr_row, prev_row
    return prev_row[m]


def auto_fuzziness(term: str) -> int:
    """Edits allowed for term under AUTO: 0 for 1-2 chars, 1 for 3-5, else 2."""
    if len(term) <= 2:
        return 0
    if len(term) <= 5:
        return 1
    return 2


def tokenize(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [token for item in value for token in tokenize(item)]
    return [t.lower() for t in _TOKEN.findall(str(value))]


def _term_matches(query_term: str, token: str, fuzzy: bool) -> float:
    """1.0 for an exact match, 0.5 for a fuzzy one, else 0."""
    if query_term == token:
        return 1.0
    if fuzzy:
        allowed = auto_fuzziness(query_term)
        if allowed and levenshtein_distance(query_term, token, allowed) <= allowed:
            return 0.5
    return 0.0


def _field_value(source: Mapping[str, Any], field: str) -> Any:
    if field.endswith(".keyword"):
        field = field[: -len(".keyword")]
    value: Any = source
    for part in field.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _comparable(field: str, value: Any) -> Any:
    if isinstance(value, str) and field in DATE_FIELDS:
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return value


def _is_tombstone(source: Mapping[str, Any] | None) -> bool:
    return source is not None and source.get("deleted") is True


def _blocks(current: Mapping[str, Any], version: int) -> bool:
    """True when current is newer than version, or a tombstone at version."""
    stored = current.get("syncVersion") or 0
    return stored > version or (_is_tombstone(current) and stored == version)


class InMemoryIndexGateway:
    """Dict-backed index. One asyncio lock serializes writes per process."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _store(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def _live(self, collection: str) -> list[dict[str, Any]]:
        return [s for s in self._store(collection).values() if not _is_tombstone(s)]

    def get_source(self, collection: str, document_id: str) -> dict[str, Any] | None:
        """Stored body for document_id (engine-internal fields included); None once deleted."""
        source = self._store(collection).get(document_id)
        if source is None or _is_tombstone(source):
            return None
        return dict(source)

    def has_tombstone(self, collection: str, document_id: str) -> bool:
        return _is_tombstone(self._store(collection).get(document_id))

    async def ensure_collections(self) -> None:
        for collection in ALL_COLLECTIONS:
            self._store(collection)

    async def upsert(
        self, collection: str, document: SearchDocument, *, version: int
    ) -> WriteResult:
        source = build_write_source(document, version)
        async with self._lock:
            store = self._store(collection)
            current = store.get(document.id)
            if current is not None:
                stored_tenant = current.get("tenantId")
                if stored_tenant is not None and stored_tenant != source["tenantId"]:
                    return WriteResult.NOOP
                if _blocks(current, version):
                    return WriteResult.NOOP
                store[document.id] = source
                return WriteResult.UPDATED
            store[document.id] = source
            return WriteResult.CREATED

    async def partial_update(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, Any],
        *,
        version: int,
        updated_at: datetime,
    ) -> WriteResult:
        async with self._lock:
            current = self._store(collection).get(document_id)
            if current is None:
                raise ResourceNotFoundException(collection, document_id)
            if _is_tombstone(current) or (current.get("syncVersion") or 0) > version:
                return WriteResult.NOOP
            current.update(fields)
            current["updatedAt"] = updated_at.isoformat()
            current["syncVersion"] = version
            return WriteResult.UPDATED

    async def delete(self, collection: str, document_id: str, *, version: int) -> WriteResult:
        async with self._lock:
            store = self._store(collection)
            current = store.get(document_id)
            if current is not None and _blocks(current, version):
                return WriteResult.NOOP
            tombstone: dict[str, Any] = {"id": document_id}
            if current is not None and current.get("tenantId") is not None:
                tombstone["tenantId"] = current["tenantId"]
            tombstone["deleted"] = True
            tombstone["syncVersion"] = version
            store[document_id] = tombstone
        return WriteResult.DELETED if current is not None else WriteResult.NOT_FOUND

    async def purge_tombstones(self, before_version: int) -> int:
        purged = 0
        async with self._lock:
            for store in self._collections.values():
                expired = [
                    doc_id
                    for doc_id, source in store.items()
                    if _is_tombstone(source) and (source.get("syncVersion") or 0) < before_version
                ]
                for doc_id in expired:
                    del store[doc_id]
                purged += len(expired)
        return purged

    async def query(self, compiled: CompiledQuery) -> SearchResult:
        body = compiled.body
        clause = body.get("query", {"match_all": {}})
        scored: list[tuple[dict[str, Any], float]] = []
        for collection in compiled.collections:
            for source in self._store(collection).values():
                score = self._score(clause, source)
                if score is not None:
                    scored.append((source, score))

        ordered = self._sort(scored, body.get("sort") or [{"_score": {"order": "desc"}}])
        offset = int(body.get("from", 0))
        size = int(body.get("size", 10))
        terms = self._query_terms(clause)
        hits = [
            SearchHit(
                document=document_from_source(source),
                score=score,
                highlights=self._highlight(source, body.get("highlight"), terms),
            )
            for source, score in ordered[offset : offset + size]
        ]
        return SearchResult(
            hits=hits,
            total=len(scored),
            aggregations=self._aggregate(body.get("aggs") or {}, [s for s, _ in scored]),
        )

    async def suggest(self, prefix: str, tenant_id: str, *, limit: int = 10) -> list[str]:
        needle = prefix.strip().lower()
        if not needle:
            return []
        titles = {
            source["title"]
            for collection in list(self._collections)
            for source in self._live(collection)
            if source.get("tenantId") == tenant_id
            and source.get("title")
            and source["title"].lower().startswith(needle)
        }
        return sorted(titles, key=lambda t: (len(t), t.lower()))[:limit]

    async def stats(self) -> list[IndexStats]:
        now = utc_now()
        result = []
        for collection in ALL_COLLECTIONS:
            live = self._live(collection)
            size = sum(len(json.dumps(source, default=str)) for source in live)
            result.append(
                IndexStats(
                    name=collection,
                    document_count=len(live),
                    size=f"{size}b",
                    health=IndexHealth.GREEN,
                    last_updated=now,
                )
            )
        return result

    async def close(self) -> None:
        self._collections.clear()

    # Query evaluation

    def _score(self, clause: Mapping[str, Any], source: Mapping[str, Any]) -> float | None:
        """Score of source against clause, or None when it does not match."""
        (kind, spec), = clause.items()
        if kind == "match_all":
            return 1.0
        if kind == "bool":
            return self._score_bool(spec, source)
        if kind == "multi_match":
            return self._score_multi_match(spec, source)
        return 0.0 if self._matches(clause, source) else None

    def _score_bool(self, spec: Mapping[str, Any], source: Mapping[str, Any]) -> float | None:
        total = 0.0
        for sub in spec.get("must", []):
            score = self._score(sub, source)
            if score is None:
                return None
            total += score
        for sub in spec.get("filter", []):
            if self._score(sub, source) is None:
                return None
        for sub in spec.get("must_not", []):
            if self._score(sub, source) is not None:
                return None
        should = spec.get("should", [])
        if should:
            scores = [s for s in (self._score(sub, source) for sub in should) if s is not None]
            required = spec.get("minimum_should_match", 0 if spec.get("must") or spec.get("filter") else 1)
            if len(scores) < int(required):
                return None
            total += sum(scores)
        return total if spec.get("must") or should else 0.0

    def _score_multi_match(self, spec: Mapping[str, Any], source: Mapping[str, Any]) -> float | None:
        terms = tokenize(spec.get("query", ""))
        if not terms:
            return None
        fuzzy = str(spec.get("fuzziness", "")).upper() == "AUTO"
        best = 0.0
        for field_spec in spec.get("fields", []):
            name, _, boost = field_spec.partition("^")
            tokens = tokenize(_field_value(source, name))
            if not tokens:
                continue
            matched = sum(
                max((_term_matches(term, token, fuzzy) for token in tokens), default=0.0)
                for term in terms
            )
            best = max(best, float(boost or 1) * matched / len(terms))
        return best if best > 0 else None

    def _matches(self, clause: Mapping[str, Any], source: Mapping[str, Any]) -> bool:
        (kind, spec), = clause.items()
        if kind == "term":
            (field, expected), = spec.items()
            if isinstance(expected, Mapping):
                expected = expected.get("value")
            return expected in _as_list(_field_value(source, field))
        if kind == "terms":
            (field, allowed), = spec.items()
            values = _as_list(_field_value(source, field))
            return any(v in values for v in allowed)
        if kind == "range":
            (field, bounds), = spec.items()
            value = _comparable(field, _field_value(source, field))
            if value is None:
                return False
            checks = {
                "gte": lambda b: value >= b,
                "gt": lambda b: value > b,
                "lte": lambda b: value <= b,
                "lt": lambda b: value < b,
            }
            return all(checks[op](_comparable(field, bound)) for op, bound in bounds.items() if op in checks)
        return False

    @staticmethod
    def _sort(
        scored: list[tuple[dict[str, Any], float]], sort: list[Mapping[str, Any]]
    ) -> list[tuple[dict[str, Any], float]]:
        ordered = list(scored)
        # Stable sorts applied from the last key to the first; missing values last.
        for item in reversed(sort):
            (field, spec), = item.items()
            descending = (spec.get("order") if isinstance(spec, Mapping) else spec) == "desc"

            def key_of(entry: tuple[dict[str, Any], float], field: str = field) -> Any:
                if field == "_score":
                    return entry[1]
                return _comparable(field, _field_value(entry[0], field))

            present = [e for e in ordered if key_of(e) is not None]
            missing = [e for e in ordered if key_of(e) is None]
            present.sort(key=key_of, reverse=descending)
            ordered = present + missing
        return ordered

    @staticmethod
    def _aggregate(
        aggs: Mapping[str, Any], sources: list[dict[str, Any]]
    ) -> dict[str, dict[str, int]]:
        result: dict[str, dict[str, int]] = {}
        for name, spec in aggs.items():
            field = spec.get("terms", {}).get("field")
            if not field:
                continue
            counts: Counter[str] = Counter()
            for source in sources:
                for value in set(map(str, _as_list(_field_value(source, field)))):
                    if value:
                        counts[value] += 1
            result[name] = dict(counts.most_common(_TERMS_AGG_SIZE))
        return result

    def _query_terms(self, clause: Mapping[str, Any]) -> list[str]:
        (kind, spec), = clause.items()
        if kind == "multi_match":
            return tokenize(spec.get("query", ""))
        if kind == "bool":
            return [t for sub in spec.get("must", []) for t in self._query_terms(sub)]
        return []

    @staticmethod
    def _highlight(
        source: Mapping[str, Any], highlight: Mapping[str, Any] | None, terms: list[str]
    ) -> dict[str, list[str]]:
        if not highlight or not terms:
            return {}
        result: dict[str, list[str]] = {}
        for field in highlight.get("fields", {}):
            text = _field_value(source, field)
            if not isinstance(text, str) or not text:
                continue
            found = False

            def mark(match: re.Match[str]) -> str:
                nonlocal found
                word = match.group(0)
                if any(_term_matches(term, word.lower(), True) for term in terms):
                    found = True
                    return f"<em>{word}</em>"
                return word

            marked = _TOKEN.sub(mark, text)
            if found:
                result[field] = [marked]
        return result
