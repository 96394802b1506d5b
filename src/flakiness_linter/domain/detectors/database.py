"""Real database writes, raw SQL and schema operations from tests."""

import re

from tree_sitter import Node

from flakiness_linter.domain import syntax
from flakiness_linter.domain.config import BOOL, OptionSpec, RuleOptions
from flakiness_linter.domain.detectors.base import BaseDetector
from flakiness_linter.domain.entities import CallIdentity, Capability, DetectorContext, Finding

ORM_METHODS = frozenset({
    "save", "create", "update", "delete", "destroy", "remove", "insert", "upsert", "bulkCreate",
    "bulkUpdate", "bulkDelete", "findOrCreate", "updateOrCreate", "increment", "decrement", "truncate",
})
PRISMA_WRITES = frozenset({"create", "update", "delete", "upsert", "createMany", "updateMany", "deleteMany"})
MONGO_METHODS = frozenset({
    "insertOne", "insertMany", "updateOne", "updateMany", "deleteOne", "deleteMany", "replaceOne",
    "findOneAndUpdate", "findOneAndDelete", "findOneAndReplace", "bulkWrite",
})
KNEX_WRITES = frozenset({"insert", "update", "del", "delete", "truncate"})
KNEX_ROOTS = frozenset({"knex", "db", "trx"})
RAW_QUERY_METHODS = frozenset({
    "query", "execute", "exec", "run", "all", "get", "raw", "$queryRaw", "$executeRaw",
    "$queryRawUnsafe", "$executeRawUnsafe",
})
SCHEMA_METHODS = frozenset({"sync", "migrate", "seed", "latest", "rollback", "runMigrations", "synchronize",
                            "dropDatabase"})
MODEL_RECEIVER = re.compile(r"(model|db|database|repository|entity|collection)", re.I)
MODEL_SUFFIX = re.compile(r"(Model|Repository|Entity|Collection|Service)$")
MODEL_NAMES = frozenset({"User", "Users", "Post", "Posts", "Comment", "Product", "Order", "Customer", "Account",
                         "Session", "Item", "Category", "Profile", "Article", "Message"})
DB_RECEIVER = re.compile(r"(sequelize|db|database|knex|migrat|connection|datasource|prisma|mongoose)", re.I)
SQL = re.compile(r"^\s*(SELECT|INSERT|UPDATE|DELETE|CREATE|DROP|ALTER|TRUNCATE|REPLACE|MERGE)\b", re.I)
MOCK_NAME = re.compile(r"^(mock|fake|stub|spy)", re.I)


class DatabaseOperationsDetector(BaseDetector):
    """ORM/Prisma/Mongo/Knex writes, raw SQL and migrations in test code."""

    detector_id = "no-database-operations"
    code = "FT005"
    capability = Capability.ACCESS
    node_kinds = frozenset({syntax.CALL})
    description = "Disallow real database operations in tests."
    option_schema = {
        "allowInHooks": OptionSpec(BOOL, True),
    }
    messages = {
        "avoidDbOperation": "Avoid real database operation '{{operation}}' in tests; mock the data layer.",
        "useTransaction": "Database setup in hooks should run inside a transaction that is rolled back.",
        "avoidRawQuery": "Avoid raw SQL queries in tests; mock the database client.",
        "needsIsolation": "Schema operations ('{{operation}}') need an isolated test database.",
    }

    def detect(self, node: Node, context: DetectorContext, options: RuleOptions) -> list[Finding]:
        if context.inside_mocked_block:
            return []
        identity = self.identity(node)
        if identity is None:
            return []
        receiver = syntax.path_tail(identity.object) or ""
        if MOCK_NAME.match(receiver) or MOCK_NAME.match(syntax.path_root(identity.object) or ""):
            return []
        kind = self._kind(node, identity, receiver)
        if kind is None:
            return []
        in_hook = context.inside_setup_hook and options["allowInHooks"]
        operation = identity.qualified_name
        if kind == "schema":
            if in_hook:
                return []
            return [self.finding(node, "needsIsolation", {"operation": operation})]
        if in_hook:
            return [self.finding(node, "useTransaction", {"operation": operation})]
        if kind == "raw":
            return [self.finding(node, "avoidRawQuery", {"operation": operation})]
        return [self.finding(node, "avoidDbOperation", {"operation": operation})]

    def _kind(self, node: Node, identity: CallIdentity, receiver: str) -> str | None:
        method = identity.method
        root = syntax.path_root(identity.object) or ""
        if method in RAW_QUERY_METHODS and self._is_sql(node):
            return "raw"
        if method in SCHEMA_METHODS and (DB_RECEIVER.search(receiver) or DB_RECEIVER.search(root)):
            return "schema"
        if root == "prisma" and method in PRISMA_WRITES and identity.object and identity.object.count(".") >= 1:
            return "write"
        if method in MONGO_METHODS:
            return "write"
        if method in KNEX_WRITES and self._is_knex_chain(node):
            return "write"
        if method in ORM_METHODS and receiver and self._is_model_like(receiver):
            return "write"
        return None

    def _is_model_like(self, receiver: str) -> bool:
        return bool(MODEL_RECEIVER.search(receiver)) or receiver in MODEL_NAMES or bool(MODEL_SUFFIX.search(receiver))

    def _is_knex_chain(self, node: Node) -> bool:
        for call in syntax.call_chain(node):
            target = syntax.callee(call)
            if target is not None and target.type == syntax.IDENTIFIER and syntax.text(target) in KNEX_ROOTS:
                return True
        return False

    def _is_sql(self, node: Node) -> bool:
        if syntax.is_tagged_template(node):
            template = node.child_by_field_name("arguments")
            value = syntax.template_value(template)
        else:
            value = syntax.literal_text(syntax.argument(node, 0))
        return value is not None and bool(SQL.match(value))
