"""Tests for the MongoDB adapter against an in-test fake of the async driver."""

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from pymongo import DeleteOne, InsertOne, ReturnDocument, UpdateOne

from openapi_db.adapters import Adapter, MongoAdapter, MongoQuery, create_helpers
from openapi_db.adapters.mongodb import _driver_options, _snake_case
from openapi_db.errors import QueryError
from openapi_db.expressions import Context

helpers = create_helpers()


# -- Driver fake --


class FakeCursor:
    def __init__(self, docs) -> None:
        self.docs = docs

    async def to_list(self, length):
        return list(self.docs)


class FakeCollection:
    """Records every call; returns canned values."""

    def __init__(self, docs=(), *, awaitable_aggregate: bool = False) -> None:
        self.docs = list(docs)
        self.calls: list[tuple] = []
        self.awaitable_aggregate = awaitable_aggregate

    def find(self, filter, **kwargs):
        self.calls.append(("find", filter, kwargs))
        return FakeCursor(self.docs)

    async def find_one(self, filter, **kwargs):
        self.calls.append(("find_one", filter, kwargs))
        return self.docs[0] if self.docs else None

    async def insert_one(self, document, **kwargs):
        self.calls.append(("insert_one", document, kwargs))
        return SimpleNamespace(inserted_id="new-id")

    async def update_one(self, filter, update, **kwargs):
        self.calls.append(("update_one", filter, update, kwargs))
        return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)

    async def replace_one(self, filter, replacement, **kwargs):
        self.calls.append(("replace_one", filter, replacement, kwargs))
        return SimpleNamespace(matched_count=1, modified_count=0, upserted_id="up")

    async def delete_one(self, filter, **kwargs):
        self.calls.append(("delete_one", filter, kwargs))
        return SimpleNamespace(deleted_count=1)

    def aggregate(self, pipeline, **kwargs):
        self.calls.append(("aggregate", pipeline, kwargs))
        cursor = FakeCursor(self.docs)
        if self.awaitable_aggregate:

            async def later():
                return cursor

            return later()
        return cursor

    async def count_documents(self, filter, **kwargs):
        self.calls.append(("count_documents", filter, kwargs))
        return len(self.docs)

    async def find_one_and_update(self, filter, update, **kwargs):
        self.calls.append(("find_one_and_update", filter, update, kwargs))
        return self.docs[0] if self.docs else None

    async def find_one_and_delete(self, filter, **kwargs):
        self.calls.append(("find_one_and_delete", filter, kwargs))
        return self.docs[0] if self.docs else None

    async def bulk_write(self, requests, **kwargs):
        self.calls.append(("bulk_write", requests, kwargs))
        return SimpleNamespace(
            inserted_count=1, matched_count=2, modified_count=2, deleted_count=1, upserted_count=0
        )


class FailingCollection(FakeCollection):
    async def find_one(self, filter, **kwargs):
        raise RuntimeError("connection reset")


def make_adapter(collection: FakeCollection, name: str = "users") -> MongoAdapter:
    return MongoAdapter({name: collection})


# =============================================================================
# validate_query
# =============================================================================


class TestValidateQuery:
    @pytest.fixture
    def adapter(self) -> MongoAdapter:
        return MongoAdapter({})

    def test_satisfies_protocol(self, adapter: MongoAdapter) -> None:
        assert isinstance(adapter, Adapter)

    def test_operation_query(self, adapter: MongoAdapter) -> None:
        assert adapter.validate_query({"collection": "users", "operation": "find"}).valid

    def test_pipeline_query(self, adapter: MongoAdapter) -> None:
        assert adapter.validate_query({"collection": "users", "pipeline": [{"$match": {}}]}).valid

    def test_string_rejected(self, adapter: MongoAdapter) -> None:
        result = adapter.validate_query("SELECT 1")
        assert result.error == "MongoDB adapter expects an object query"

    def test_missing_collection(self, adapter: MongoAdapter) -> None:
        result = adapter.validate_query({"operation": "find"})
        assert not result.valid
        assert "collection" in result.error

    def test_neither_operation_nor_pipeline(self, adapter: MongoAdapter) -> None:
        result = adapter.validate_query({"collection": "users"})
        assert "'operation' or 'pipeline'" in result.error

    def test_both_operation_and_pipeline(self, adapter: MongoAdapter) -> None:
        result = adapter.validate_query({"collection": "users", "operation": "find", "pipeline": []})
        assert "exactly one" in result.error

    def test_pipeline_must_be_list(self, adapter: MongoAdapter) -> None:
        result = adapter.validate_query({"collection": "users", "pipeline": {"$match": {}}})
        assert result.error == "MongoDB pipeline must be an array"

    def test_unknown_operation(self, adapter: MongoAdapter) -> None:
        result = adapter.validate_query({"collection": "users", "operation": "drop"})
        assert result.error.startswith("Unknown MongoDB operation: drop")

    @pytest.mark.parametrize(
        ("query", "message"),
        [
            ({"operation": "insertOne"}, "insertOne requires a 'document' object"),
            ({"operation": "updateOne", "update": {}}, "updateOne requires a 'filter' object"),
            ({"operation": "updateOne", "filter": {}}, "updateOne requires a 'update' object"),
            ({"operation": "findOneAndUpdate", "filter": {}}, "findOneAndUpdate requires a 'update' object"),
            ({"operation": "replaceOne", "filter": {}}, "replaceOne requires a 'replacement' object"),
            ({"operation": "deleteOne"}, "deleteOne requires a 'filter' object"),
            ({"operation": "findOneAndDelete"}, "findOneAndDelete requires a 'filter' object"),
            ({"operation": "bulkWrite", "operations": {}}, "bulkWrite requires an 'operations' array"),
        ],
    )
    def test_required_fields(self, adapter: MongoAdapter, query: dict, message: str) -> None:
        result = adapter.validate_query({"collection": "users", **query})
        assert not result.valid
        assert result.error == message

    def test_expressions_not_resolved(self, adapter: MongoAdapter) -> None:
        query = {"collection": "users", "operation": "findOne", "filter": {"_id": "${{ nope() }}"}}
        assert adapter.validate_query(query).valid


# =============================================================================
# interpolate
# =============================================================================


class TestInterpolate:
    @pytest.fixture
    def adapter(self) -> MongoAdapter:
        return MongoAdapter({})

    def test_auth_scenario(self, adapter: MongoAdapter) -> None:
        query = {"collection": "items", "operation": "find", "filter": {"tenant": "${{ auth.tenantId }}"}}
        result = adapter.interpolate(query, Context(auth={"tenantId": "t1"}), helpers)
        assert result == MongoQuery("items", "find", ({"tenant": "t1"}, {}))

    def test_whole_leaf_preserves_type(self, adapter: MongoAdapter) -> None:
        query = {
            "collection": "items",
            "operation": "find",
            "filter": {"qty": {"$gte": "${{ body.min }}"}, "tags": {"$in": "${{ body.tags }}"}},
            "options": {"limit": "${{ body.limit }}"},
        }
        ctx = Context(body={"min": 5, "tags": ["a", "b"], "limit": None})
        filter_, options = adapter.interpolate(query, ctx, helpers).args
        assert filter_ == {"qty": {"$gte": 5}, "tags": {"$in": ["a", "b"]}}
        assert options == {"limit": None}

    def test_function_leaf_preserves_type(self, adapter: MongoAdapter) -> None:
        query = {"collection": "items", "operation": "insertOne", "document": {"at": "${{ now() }}"}}
        document, _ = adapter.interpolate(query, Context(), helpers).args
        assert isinstance(document["at"], datetime)

    def test_embedded_expression_spliced_as_string(self, adapter: MongoAdapter) -> None:
        query = {
            "collection": "items",
            "operation": "findOne",
            "filter": {"key": "user:${{ path.id }}:${{ query.missing }}"},
        }
        filter_, _ = adapter.interpolate(query, Context(path={"id": 7}), helpers).args
        assert filter_ == {"key": "user:7:"}

    def test_embedded_values_stringified(self, adapter: MongoAdapter) -> None:
        stamp = datetime(2024, 1, 2, tzinfo=UTC)
        query = {
            "collection": "items",
            "operation": "findOne",
            "filter": {"note": "${{ body.flag }}/${{ body.at }}/${{ body.ids }}"},
        }
        ctx = Context(body={"flag": True, "at": stamp, "ids": [1, 2]})
        filter_, _ = adapter.interpolate(query, ctx, helpers).args
        assert filter_ == {"note": "true/2024-01-02T00:00:00+00:00/1,2"}

    def test_lists_walked(self, adapter: MongoAdapter) -> None:
        query = {
            "collection": "items",
            "pipeline": [{"$match": {"owner": "${{ auth.userId }}"}}, {"$limit": 10}],
        }
        result = adapter.interpolate(query, Context(auth={"userId": "u1"}), helpers)
        assert result == MongoQuery(
            "items", "aggregate", ([{"$match": {"owner": "u1"}}, {"$limit": 10}], {})
        )

    def test_template_not_mutated(self, adapter: MongoAdapter) -> None:
        query = {"collection": "items", "operation": "findOne", "filter": {"_id": "${{ path.id }}"}}
        adapter.interpolate(query, Context(path={"id": "1"}), helpers)
        assert query["filter"] == {"_id": "${{ path.id }}"}

    @pytest.mark.parametrize(
        ("query", "args"),
        [
            ({"operation": "count"}, ({}, {})),
            ({"operation": "updateOne", "filter": {"a": 1}, "update": {"$set": {"b": 2}}}, ({"a": 1}, {"$set": {"b": 2}}, {})),
            ({"operation": "replaceOne", "filter": {"a": 1}, "replacement": {"b": 2}}, ({"a": 1}, {"b": 2}, {})),
            ({"operation": "deleteOne", "filter": {"a": 1}}, ({"a": 1}, {})),
            ({"operation": "aggregate", "filter": {"$match": {"a": 1}}}, ([{"$match": {"a": 1}}], {})),
            ({"operation": "aggregate"}, ([], {})),
            ({"operation": "bulkWrite", "operations": [{"deleteOne": {"filter": {}}}]}, ([{"deleteOne": {"filter": {}}}], {})),
        ],
    )
    def test_argument_shapes(self, adapter: MongoAdapter, query: dict, args: tuple) -> None:
        result = adapter.interpolate({"collection": "c", **query}, Context(), helpers)
        assert result.args == args


# =============================================================================
# execute
# =============================================================================


class TestExecute:
    async def test_find(self) -> None:
        coll = FakeCollection([{"_id": 1}, {"_id": 2}])
        rows = await make_adapter(coll).execute(MongoQuery("users", "find", ({"a": 1}, {"limit": 5})))
        assert rows == [{"_id": 1}, {"_id": 2}]
        assert coll.calls == [("find", {"a": 1}, {"limit": 5})]

    async def test_find_one_hit_and_miss(self) -> None:
        hit = await make_adapter(FakeCollection([{"_id": 1}])).execute(MongoQuery("users", "findOne", ({}, {})))
        miss = await make_adapter(FakeCollection()).execute(MongoQuery("users", "findOne", ({}, {})))
        assert hit == [{"_id": 1}]
        assert miss == []

    async def test_insert_one_returns_document_with_id(self) -> None:
        coll = FakeCollection()
        rows = await make_adapter(coll).execute(MongoQuery("users", "insertOne", ({"name": "Ada"}, {})))
        assert rows == [{"name": "Ada", "_id": "new-id"}]

    async def test_update_counters(self) -> None:
        rows = await make_adapter(FakeCollection()).execute(
            MongoQuery("users", "updateOne", ({"a": 1}, {"$set": {"b": 2}}, {"upsert": True}))
        )
        assert rows == [{"matchedCount": 1, "modifiedCount": 1, "upsertedId": None}]

    async def test_replace_counters(self) -> None:
        rows = await make_adapter(FakeCollection()).execute(MongoQuery("users", "replaceOne", ({}, {"b": 2}, {})))
        assert rows == [{"matchedCount": 1, "modifiedCount": 0, "upsertedId": "up"}]

    async def test_delete_counter(self) -> None:
        rows = await make_adapter(FakeCollection()).execute(MongoQuery("users", "deleteOne", ({"a": 1}, {})))
        assert rows == [{"deletedCount": 1}]

    async def test_count(self) -> None:
        rows = await make_adapter(FakeCollection([{}, {}, {}])).execute(MongoQuery("users", "count", ({}, {})))
        assert rows == [{"count": 3}]

    @pytest.mark.parametrize("awaitable", [False, True])
    async def test_aggregate_cursor_styles(self, awaitable: bool) -> None:
        coll = FakeCollection([{"total": 3}], awaitable_aggregate=awaitable)
        rows = await make_adapter(coll).execute(MongoQuery("users", "aggregate", ([{"$count": "total"}], {})))
        assert rows == [{"total": 3}]

    async def test_find_one_and_update_defaults_to_after(self) -> None:
        coll = FakeCollection([{"_id": 1}])
        await make_adapter(coll).execute(MongoQuery("users", "findOneAndUpdate", ({}, {"$inc": {"n": 1}}, {})))
        assert coll.calls[0][3] == {"return_document": ReturnDocument.AFTER}

    async def test_find_one_and_update_before_override(self) -> None:
        coll = FakeCollection([{"_id": 1}])
        await make_adapter(coll).execute(
            MongoQuery("users", "findOneAndUpdate", ({}, {"$inc": {"n": 1}}, {"returnDocument": "before"}))
        )
        assert coll.calls[0][3] == {"return_document": ReturnDocument.BEFORE}

    async def test_find_one_and_delete(self) -> None:
        rows = await make_adapter(FakeCollection()).execute(MongoQuery("users", "findOneAndDelete", ({"a": 1}, {})))
        assert rows == []

    async def test_bulk_write_translates_operations(self) -> None:
        coll = FakeCollection()
        operations = [
            {"insertOne": {"document": {"a": 1}}},
            {"updateOne": {"filter": {"a": 1}, "update": {"$set": {"b": 2}}, "upsert": True}},
            {"deleteOne": {"filter": {"a": 2}}},
        ]
        rows = await make_adapter(coll).execute(MongoQuery("users", "bulkWrite", (operations, {"ordered": False})))
        assert rows == [
            {"insertedCount": 1, "matchedCount": 2, "modifiedCount": 2, "deletedCount": 1, "upsertedCount": 0}
        ]
        _, requests, kwargs = coll.calls[0]
        assert requests == [
            InsertOne({"a": 1}),
            UpdateOne({"a": 1}, {"$set": {"b": 2}}, upsert=True),
            DeleteOne({"a": 2}),
        ]
        assert kwargs == {"ordered": False}

    async def test_bulk_write_unknown_operation(self) -> None:
        with pytest.raises(QueryError, match="Unsupported bulkWrite operation: dropAll"):
            await make_adapter(FakeCollection()).execute(
                MongoQuery("users", "bulkWrite", ([{"dropAll": {}}], {}))
            )

    async def test_driver_error_wrapped(self) -> None:
        with pytest.raises(QueryError, match="connection reset") as exc_info:
            await make_adapter(FailingCollection()).execute(MongoQuery("users", "findOne", ({}, {})))
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.detail is exc_info.value.__cause__

    async def test_end_to_end_with_interpolate(self) -> None:
        coll = FakeCollection([{"_id": "u1", "tenant": "t1"}])
        adapter = make_adapter(coll, "items")
        query = {"collection": "items", "operation": "find", "filter": {"tenant": "${{ auth.tenantId }}"}}
        rows = await adapter.execute(adapter.interpolate(query, Context(auth={"tenantId": "t1"}), helpers))
        assert rows == [{"_id": "u1", "tenant": "t1"}]
        assert coll.calls == [("find", {"tenant": "t1"}, {})]


class TestOptions:
    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("returnDocument", "return_document"),
            ("arrayFilters", "array_filters"),
            ("maxTimeMS", "max_time_ms"),
            ("upsert", "upsert"),
        ],
    )
    def test_snake_case(self, key: str, expected: str) -> None:
        assert _snake_case(key) == expected

    def test_sort_mapping_becomes_pairs(self) -> None:
        assert _driver_options({"sort": {"name": 1, "age": -1}}) == {"sort": [("name", 1), ("age", -1)]}

    def test_none_options(self) -> None:
        assert _driver_options(None) == {}
