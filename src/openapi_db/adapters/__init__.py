"""Database adapters.

Each adapter validates, interpolates and executes query templates for one
engine. Drivers are imported only when an adapter connects, so importing
this package never needs asyncpg, aiomysql or pymongo::

    from openapi_db.adapters import PostgresAdapter, SqliteAdapter

    pg = await PostgresAdapter.connect("postgresql://app@localhost/app")
    local = await SqliteAdapter.connect("sqlite:///app.db")

Extras::

    pip install openapi-db[pg]       # PostgreSQL
    pip install openapi-db[mysql]    # MySQL / MariaDB
    pip install openapi-db[mongo]    # MongoDB
"""

from openapi_db.adapters.base import (
    Adapter,
    DatabaseConfig,
    InterpolationHelpers,
    Row,
    RowSet,
    ValidationResult,
    create_helpers,
)
from openapi_db.adapters.mongodb import MongoAdapter, MongoQuery
from openapi_db.adapters.mysql import MysqlAdapter
from openapi_db.adapters.postgres import PostgresAdapter
from openapi_db.adapters.sql import SqlAdapter, SqlQuery
from openapi_db.adapters.sqlite import SqliteAdapter

__all__ = [
    "Adapter",
    "DatabaseConfig",
    "InterpolationHelpers",
    "MongoAdapter",
    "MongoQuery",
    "MysqlAdapter",
    "PostgresAdapter",
    "Row",
    "RowSet",
    "SqlAdapter",
    "SqlQuery",
    "SqliteAdapter",
    "ValidationResult",
    "create_helpers",
]
