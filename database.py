"""
Item table access.

All entities share one MongoDB collection. Records are addressed by their
``PK``/``SK`` pair and optionally listed under a secondary ``GSI1PK``/``GSI1SK``
pair, which is what per-user cart and order lookups query.
"""

import re
from typing import List, Optional

import structlog
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from errors import UpstreamFailure
from keys import IndexKey, ItemKey, KeyKind
from settings import Settings

logger = structlog.get_logger(__name__)

SORT_FIELD = "createdAt"


def _key_filter(key: ItemKey) -> dict:
    encoded = key.encode()
    return {"PK": encoded, "SK": encoded}


def _index_fields(index: Optional[IndexKey]) -> dict:
    if index is None:
        return {}
    return {"GSI1PK": index.partition, "GSI1SK": index.sort}


def _prefix(value: str) -> dict:
    return {"$regex": "^" + re.escape(value)}


def _clean(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


class ItemStore:
    def __init__(self, collection: Collection):
        self.collection = collection

    @classmethod
    def from_settings(cls, settings: Settings) -> "ItemStore":
        client = MongoClient(settings.database_url)
        return cls(client[settings.database_name][settings.item_table])

    def _fail(self, operation: str, exc: PyMongoError):
        logger.error("item_store_failed", operation=operation, error=str(exc))
        raise UpstreamFailure("Item store request failed", error=str(exc)) from exc

    def ensure_indexes(self):
        try:
            self.collection.create_index([("PK", ASCENDING), ("SK", ASCENDING)], unique=True)
            self.collection.create_index([("GSI1PK", ASCENDING), ("GSI1SK", ASCENDING)])
        except PyMongoError as exc:
            self._fail("ensure_indexes", exc)

    def ping(self) -> List[str]:
        try:
            return self.collection.database.list_collection_names()
        except PyMongoError as exc:
            self._fail("ping", exc)

    def get(self, key: ItemKey) -> Optional[dict]:
        try:
            return _clean(self.collection.find_one(_key_filter(key)))
        except PyMongoError as exc:
            self._fail("get", exc)

    def put(self, key: ItemKey, attributes: dict, index: Optional[IndexKey] = None) -> dict:
        doc = {**attributes, **_key_filter(key), **_index_fields(index)}
        try:
            self.collection.replace_one(_key_filter(key), doc, upsert=True)
        except PyMongoError as exc:
            self._fail("put", exc)
        return _clean(doc)

    def update(self, key: ItemKey, changes: BaseModel, index: Optional[IndexKey] = None) -> Optional[dict]:
        """Write the explicitly-set fields of ``changes``; ``None`` if the record is absent."""
        fields = changes.model_dump(mode="json", by_alias=True, exclude_unset=True)
        fields.update(_index_fields(index))
        if not fields:
            return self.get(key)
        try:
            doc = self.collection.find_one_and_update(
                _key_filter(key),
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            self._fail("update", exc)
        return _clean(doc)

    def delete(self, key: ItemKey):
        try:
            self.collection.delete_one(_key_filter(key))
        except PyMongoError as exc:
            self._fail("delete", exc)

    def _find(self, operation: str, query: dict, newest_first: bool) -> List[dict]:
        direction = DESCENDING if newest_first else ASCENDING
        try:
            return [_clean(d) for d in self.collection.find(query).sort(SORT_FIELD, direction)]
        except PyMongoError as exc:
            self._fail(operation, exc)

    def query_index(self, partition: str, sort_prefix: str = "", newest_first: bool = False) -> List[dict]:
        query = {"GSI1PK": partition}
        if sort_prefix:
            query["GSI1SK"] = _prefix(sort_prefix)
        return self._find("query_index", query, newest_first)

    def scan_kind(self, kind: KeyKind, newest_first: bool = False) -> List[dict]:
        return self._find("scan_kind", {"PK": _prefix(kind.value + "#")}, newest_first)
