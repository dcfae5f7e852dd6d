"""MongoDB adapter for pymongo-compatible async database handles.

Works with PyMongo's async API (``AsyncMongoClient``) or Motor. The adapter
only needs ``db[collection]`` and the collection's async methods.

A template is a mapping with a ``collection`` and either an ``operation``
(plus its ``filter``/``update``/``replacement``/``document``/``operations``
sub-objects) or a ``pipeline``::

    collection: users
    operation: findOne
    filter:
      _id: ${{ path.id }}
      tenant: ${{ auth.tenantId }}
    options:
      projection: {password: 0}

String leaves that are exactly one expression keep the resolved value's
type; expressions embedded in longer text are spliced in as strings.
"""

from __future__ import annotations

import inspect
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from openapi_db.adapters.base import InterpolationHelpers, RowSet, ValidationResult, log_query
from openapi_db.errors import DriverNotInstalledError, OpenApiDbError, QueryError
from openapi_db.expressions.evaluator import Context

SUPPORTED_OPERATIONS: tuple[str, ...] = (
    "find",
    "findOne",
    "insertOne",
    "updateOne",
    "replaceOne",
    "deleteOne",
    "aggregate",
    "count",
    "findOneAndUpdate",
    "findOneAndDelete",
    "bulkWrite",
)

# Sub-objects each operation cannot do without
_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "insertOne": ("document",),
    "updateOne": ("filter", "update"),
    "findOneAndUpdate": ("filter", "update"),
    "replaceOne": ("filter", "replacement"),
    "deleteOne": ("filter",),
    "findOneAndDelete": ("filter",),
}

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")


@dataclass(frozen=True, slots=True)
class MongoQuery:
    """Interpolated MongoDB call: ``collection.<operation>(*args)``."""

    collection: str
    operation: str
    args: tuple[Any, ...] = ()


class MongoAdapter:
    """Adapter over a pymongo-compatible async database handle."""

    dialect = "MongoDB"

    __slots__ = ("_client", "_db", "_echo")

    def __init__(self, db: Any, *, echo: bool = False, client: Any = None) -> None:
        self._db = db
        self._echo = echo
        self._client = client

    @classmethod
    async def connect(
        cls,
        url: str,
        /,
        database: str | None = None,
        *,
        pool_size: int = 5,
        echo: bool = False,
    ) -> MongoAdapter:
        """Open an ``AsyncMongoClient`` for *url*.

        The database is *database* if given, else the one named in the URL.
        """
        try:
            from pymongo import AsyncMongoClient
        except ImportError:
            msg = (
                "openapi_db requires 'pymongo' for MongoDB databases. "
                "Install it with: pip install openapi-db[mongo]"
            )
            raise DriverNotInstalledError(msg) from None

        client = AsyncMongoClient(url, maxPoolSize=pool_size)
        db = client[database] if database else client.get_default_database()
        return cls(db, echo=echo, client=client)

    async def close(self) -> None:
        """Close the client if this adapter opened it."""
        if self._client is None:
            return
        result = self._client.close()
        if inspect.isawaitable(result):
            await result

    # -- Adapter protocol --

    def validate_query(self, query: Any) -> ValidationResult:
        if not isinstance(query, Mapping):
            return ValidationResult.invalid("MongoDB adapter expects an object query")

        collection = query.get("collection")
        if not isinstance(collection, str) or not collection:
            return ValidationResult.invalid("MongoDB query must have a 'collection' field (string)")

        has_pipeline = "pipeline" in query
        has_operation = "operation" in query
        if has_pipeline and has_operation:
            return ValidationResult.invalid(
                "MongoDB query must have exactly one of 'operation' or 'pipeline'"
            )
        if has_pipeline:
            if not isinstance(query["pipeline"], list):
                return ValidationResult.invalid("MongoDB pipeline must be an array")
            return ValidationResult.ok()

        operation = query.get("operation")
        if not isinstance(operation, str):
            return ValidationResult.invalid(
                "MongoDB query must have either 'operation' or 'pipeline' field"
            )
        if operation not in SUPPORTED_OPERATIONS:
            supported = ", ".join(SUPPORTED_OPERATIONS)
            return ValidationResult.invalid(
                f"Unknown MongoDB operation: {operation}. Supported: {supported}"
            )

        for field in _REQUIRED_FIELDS.get(operation, ()):
            if not isinstance(query.get(field), Mapping):
                return ValidationResult.invalid(f"{operation} requires a '{field}' object")
        if operation == "bulkWrite" and not isinstance(query.get("operations"), list):
            return ValidationResult.invalid("bulkWrite requires an 'operations' array")

        return ValidationResult.ok()

    def interpolate(self, query: Any, context: Context, helpers: InterpolationHelpers) -> MongoQuery:
        resolved: dict[str, Any] = _interpolate_value(query, context, helpers)
        collection = resolved["collection"]
        options = resolved.get("options") or {}

        if "pipeline" in resolved:
            return MongoQuery(collection, "aggregate", (resolved["pipeline"], options))

        operation = resolved["operation"]
        filter_ = resolved.get("filter")
        match operation:
            case "find" | "findOne" | "count":
                args = (filter_ or {}, options)
            case "insertOne":
                args = (resolved.get("document"), options)
            case "updateOne" | "findOneAndUpdate":
                args = (filter_, resolved.get("update"), options)
            case "replaceOne":
                args = (filter_, resolved.get("replacement"), options)
            case "deleteOne" | "findOneAndDelete":
                args = (filter_, options)
            case "aggregate":
                # A bare filter on an aggregate acts as a single-stage pipeline
                args = ([filter_] if filter_ else [], options)
            case "bulkWrite":
                args = (resolved.get("operations"), options)
            case _:
                msg = f"Unsupported MongoDB operation: {operation}"
                raise QueryError(msg)
        return MongoQuery(collection, operation, args)

    async def execute(self, interpolated: MongoQuery) -> RowSet:
        t0 = time.perf_counter()
        try:
            return await self._run(interpolated)
        except OpenApiDbError:
            raise
        except Exception as exc:
            msg = str(exc) or "MongoDB query failed"
            raise QueryError(msg, detail=exc) from exc
        finally:
            log_query(
                self._echo,
                self.dialect,
                f"{interpolated.collection}.{interpolated.operation}",
                interpolated.args,
                time.perf_counter() - t0,
            )

    # -- Internals --

    async def _run(self, query: MongoQuery) -> RowSet:
        pymongo = _driver()
        collection = self._db[query.collection]
        args = query.args
        options = _driver_options(args[-1])

        match query.operation:
            case "find":
                return await collection.find(args[0], **options).to_list(None)

            case "findOne":
                return _one(await collection.find_one(args[0], **options))

            case "insertOne":
                document = dict(args[0])
                result = await collection.insert_one(document, **options)
                return [{**document, "_id": result.inserted_id}]

            case "updateOne":
                result = await collection.update_one(args[0], args[1], **options)
                return [_update_counts(result)]

            case "replaceOne":
                result = await collection.replace_one(args[0], args[1], **options)
                return [_update_counts(result)]

            case "deleteOne":
                result = await collection.delete_one(args[0], **options)
                return [{"deletedCount": result.deleted_count}]

            case "aggregate":
                cursor = collection.aggregate(args[0], **options)
                # PyMongo's async API returns an awaitable; Motor returns the cursor
                if inspect.isawaitable(cursor):
                    cursor = await cursor
                return await cursor.to_list(None)

            case "count":
                return [{"count": await collection.count_documents(args[0], **options)}]

            case "findOneAndUpdate":
                options.setdefault("return_document", pymongo.ReturnDocument.AFTER)
                return _one(await collection.find_one_and_update(args[0], args[1], **options))

            case "findOneAndDelete":
                return _one(await collection.find_one_and_delete(args[0], **options))

            case "bulkWrite":
                requests = [_bulk_request(pymongo, op) for op in args[0]]
                result = await collection.bulk_write(requests, **options)
                return [
                    {
                        "insertedCount": result.inserted_count,
                        "matchedCount": result.matched_count,
                        "modifiedCount": result.modified_count,
                        "deletedCount": result.deleted_count,
                        "upsertedCount": result.upserted_count,
                    }
                ]

        msg = f"Unsupported MongoDB operation: {query.operation}"
        raise QueryError(msg)


# -- Interpolation --


def _interpolate_value(value: Any, context: Context, helpers: InterpolationHelpers) -> Any:
    if isinstance(value, str):
        return _interpolate_string(value, context, helpers)
    if isinstance(value, Mapping):
        return {key: _interpolate_value(item, context, helpers) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_interpolate_value(item, context, helpers) for item in value]
    return value


def _interpolate_string(template: str, context: Context, helpers: InterpolationHelpers) -> Any:
    refs = helpers.parse_expressions(template)
    if not refs:
        return template

    # Whole leaf is one expression: keep the native type
    if len(refs) == 1 and refs[0].start == 0 and refs[0].end == len(template):
        return helpers.evaluate(refs[0].inner, context)

    parts: list[str] = []
    pos = 0
    for ref in refs:
        parts.append(template[pos : ref.start])
        parts.append(_stringify(helpers.evaluate(ref.inner, context)))
        pos = ref.end
    parts.append(template[pos:])
    return "".join(parts)


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, list | tuple):
        return ",".join(_stringify(item) for item in value)
    return str(value)


# -- Driver translation --


def _driver() -> Any:
    try:
        import pymongo
    except ImportError:
        msg = (
            "openapi_db requires 'pymongo' for MongoDB databases. "
            "Install it with: pip install openapi-db[mongo]"
        )
        raise DriverNotInstalledError(msg) from None
    return pymongo


def _snake_case(key: str) -> str:
    """``returnDocument`` -> ``return_document``, ``maxTimeMS`` -> ``max_time_ms``."""
    return _CAMEL_BOUNDARY.sub(r"\1_\2", key).lower()


def _driver_options(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """Translate camelCase template options into pymongo keyword arguments."""
    converted: dict[str, Any] = {}
    for key, value in (options or {}).items():
        name = _snake_case(key)
        if name == "return_document" and isinstance(value, str):
            return_document = _driver().ReturnDocument
            value = return_document.BEFORE if value == "before" else return_document.AFTER
        elif name == "sort" and isinstance(value, Mapping):
            value = list(value.items())
        converted[name] = value
    return converted


def _bulk_request(pymongo: Any, entry: Any) -> Any:
    """``{"updateOne": {"filter": ..., "update": ...}}`` -> ``pymongo.UpdateOne(...)``."""
    if not isinstance(entry, Mapping) or len(entry) != 1:
        msg = f"Invalid bulkWrite operation: {entry!r}"
        raise QueryError(msg)
    [(name, spec)] = entry.items()
    spec = _driver_options(spec)
    match name:
        case "insertOne":
            return pymongo.InsertOne(spec["document"])
        case "updateOne":
            return pymongo.UpdateOne(spec.pop("filter"), spec.pop("update"), **spec)
        case "updateMany":
            return pymongo.UpdateMany(spec.pop("filter"), spec.pop("update"), **spec)
        case "replaceOne":
            return pymongo.ReplaceOne(spec.pop("filter"), spec.pop("replacement"), **spec)
        case "deleteOne":
            return pymongo.DeleteOne(spec.pop("filter"), **spec)
        case "deleteMany":
            return pymongo.DeleteMany(spec.pop("filter"), **spec)
    msg = f"Unsupported bulkWrite operation: {name}"
    raise QueryError(msg)


def _one(document: Any) -> RowSet:
    return [dict(document)] if document is not None else []


def _update_counts(result: Any) -> dict[str, Any]:
    return {
        "matchedCount": result.matched_count,
        "modifiedCount": result.modified_count,
        "upsertedId": result.upserted_id,
    }
