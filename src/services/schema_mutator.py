"""
Schema mutator: validated CREATE / DROP / ALTER against the connected database
"""

from typing import List

from ..database.adapters import DatabaseAdapter
from ..database.models import CreateTableRequest, ColumnSpec, ConstraintSpec
from ..database.registry import SchemaRegistry
from ..utils.errors import (
    ConstraintError, DuplicateTable, InvalidIdentifier, InvalidRequest,
    NotFound, ProtectedTable, UnknownColumn
)
from ..utils.identifier_validator import (
    validate_identifier, validate_default_literal, validate_check_clause, validate_data_type
)
from ..utils.logger import setup_logger
from .schema_introspector import SchemaIntrospector


class SchemaMutator:
    """Build and run DDL for operator-defined tables.

    Every identifier and literal of a request is validated before the first
    statement runs, so a rejected request never leaves partial DDL behind.
    System tables (registry ``protected`` flag) refuse every mutation.
    """

    def __init__(self, adapter: DatabaseAdapter, registry: SchemaRegistry,
                 introspector: SchemaIntrospector):
        self.adapter = adapter
        self.registry = registry
        self.introspector = introspector
        self.logger = setup_logger("SchemaMutator")

    def create_table(self, request: CreateTableRequest) -> bool:
        """Create a new table and record its protection flag"""
        create_sql = self.build_create_table_sql(request)
        table_name = request.table_name

        if self.registry.is_registry_table(table_name) or self.introspector.table_exists(table_name):
            raise DuplicateTable(f"Table '{table_name}' already exists")

        # names seeded as protected stay protected once the table exists
        protected = request.is_system_table or self.registry.is_protected(table_name)
        self.adapter.execute_script(
            [(create_sql, None)] +
            self.registry.register_statements(table_name, protected)
        )
        self.introspector.invalidate(table_name)

        self.logger.info(
            f"Created table '{table_name}' with {len(request.columns)} columns"
            + (" (system table)" if protected else "")
        )
        return True

    def build_create_table_sql(self, request: CreateTableRequest) -> str:
        """Validate the whole request and render the CREATE TABLE statement"""
        table_name = validate_identifier(request.table_name, "table name")

        if not request.columns:
            raise InvalidRequest("A table needs at least one column")

        column_names = [validate_identifier(col.column_name, "column name") for col in request.columns]
        duplicates = sorted({name for name in column_names if column_names.count(name) > 1})
        if duplicates:
            raise InvalidRequest(f"Duplicate column names: {', '.join(duplicates)}")

        primary_keys = [col.column_name for col in request.columns if col.is_primary_key]
        if not primary_keys:
            raise InvalidRequest("A table needs at least one primary key column")

        inline_pk = len(primary_keys) == 1
        definitions = [self._column_definition(col, inline_pk) for col in request.columns]

        if not inline_pk:
            quoted = ', '.join(self.adapter.quote(name) for name in primary_keys)
            definitions.append(f"PRIMARY KEY ({quoted})")

        for constraint in request.constraints:
            clause = self._constraint_definition(constraint, column_names)
            if clause:
                definitions.append(clause)

        body = ',\n    '.join(definitions)
        return f"CREATE TABLE {self.adapter.quote(table_name)} (\n    {body}\n)"

    def drop_table(self, table_name: str) -> bool:
        """Drop a table (cascading to dependent objects where supported)"""
        validate_identifier(table_name, "table name")
        self._ensure_mutable(table_name)
        if not self.introspector.table_exists(table_name):
            raise NotFound(f"Table '{table_name}' not found")

        dependents = [name for name in self.introspector.get_dependent_tables(table_name)
                      if name != table_name]
        if dependents:
            self.logger.warning(
                f"Dropping '{table_name}' removes foreign keys in: {', '.join(dependents)}"
            )

        sql = f"DROP TABLE {self.adapter.quote(table_name)}"
        if self.adapter.supports_drop_cascade:
            sql += " CASCADE"

        self.adapter.execute_script([(sql, None)] + self.registry.unregister_statements(table_name))
        # cascades can change other tables' constraints too
        self.introspector.invalidate()

        self.logger.info(f"Dropped table '{table_name}'")
        return True

    def add_column(self, table_name: str, column: ColumnSpec) -> bool:
        """Add a column to an existing table"""
        validate_identifier(table_name, "table name")
        self._ensure_mutable(table_name)
        column_name = validate_identifier(column.column_name, "column name")

        schema = self.introspector.get_table_schema(table_name)
        if schema.has_column(column_name):
            raise InvalidRequest(f"Column '{column_name}' already exists in '{table_name}'")
        if column.is_primary_key:
            raise InvalidRequest("Primary key columns can only be declared when creating a table")

        sql = (f"ALTER TABLE {self.adapter.quote(table_name)} "
               f"ADD COLUMN {self._column_definition(column, inline_pk=False)}")
        self.adapter.execute(sql)
        self.introspector.invalidate(table_name)

        self.logger.info(f"Added column '{column_name}' to '{table_name}'")
        return True

    def drop_column(self, table_name: str, column_name: str) -> bool:
        """Drop a column and whatever depends on it"""
        validate_identifier(table_name, "table name")
        self._ensure_mutable(table_name)
        validate_identifier(column_name, "column name")

        schema = self.introspector.get_table_schema(table_name)
        if not schema.has_column(column_name):
            raise UnknownColumn(f"Column '{column_name}' does not exist in '{table_name}'")
        if len(schema.columns) == 1:
            raise InvalidRequest(f"Cannot drop the only column of '{table_name}'")

        sql = (f"ALTER TABLE {self.adapter.quote(table_name)} "
               f"DROP COLUMN {self.adapter.quote(column_name)}")
        if self.adapter.supports_drop_column_cascade:
            sql += " CASCADE"

        self.adapter.execute(sql)
        self.introspector.invalidate()

        self.logger.info(f"Dropped column '{column_name}' from '{table_name}'")
        return True

    def _ensure_mutable(self, table_name: str):
        if self.registry.is_protected(table_name):
            self.logger.warning(f"Refused to modify system table '{table_name}'")
            raise ProtectedTable(table=table_name)

    def _column_definition(self, column: ColumnSpec, inline_pk: bool) -> str:
        name = validate_identifier(column.column_name, "column name")
        data_type = self.adapter.render_type(validate_data_type(column.data_type))

        definition = f"{self.adapter.quote(name)} {data_type}"
        if not column.is_nullable:
            definition += " NOT NULL"
        if column.column_default is not None and column.column_default != '':
            definition += f" DEFAULT {validate_default_literal(column.column_default)}"
        if column.is_primary_key and inline_pk:
            definition += " PRIMARY KEY"
        return definition

    def _constraint_definition(self, constraint: ConstraintSpec, column_names: List[str]) -> str:
        constraint_type = (constraint.constraint_type or '').upper()

        if constraint_type == 'CHECK':
            if not constraint.check_clause:
                return ''
            return f"CHECK ({validate_check_clause(constraint.check_clause)})"

        if constraint_type not in ('FOREIGN KEY', 'UNIQUE'):
            raise ConstraintError(f"Unsupported constraint type: {constraint.constraint_type!r}")

        if not constraint.column_names:
            raise ConstraintError(f"{constraint_type} constraint needs at least one column")
        for name in constraint.column_names:
            validate_identifier(name, "column name in constraint")
            if name not in column_names:
                raise ConstraintError(f"{constraint_type} constraint references unknown column '{name}'")
        quoted_columns = ', '.join(self.adapter.quote(name) for name in constraint.column_names)

        if constraint_type == 'UNIQUE':
            return f"UNIQUE ({quoted_columns})"

        if not constraint.foreign_table or not constraint.foreign_columns:
            raise ConstraintError("FOREIGN KEY constraint requires foreign_table and foreign_columns.")
        if len(constraint.foreign_columns) != len(constraint.column_names):
            raise ConstraintError("FOREIGN KEY column count does not match foreign_columns")
        try:
            foreign_table = validate_identifier(constraint.foreign_table, "foreign_table name")
            foreign_columns = [validate_identifier(name, "foreign column name")
                               for name in constraint.foreign_columns]
        except InvalidIdentifier as e:
            raise ConstraintError(e.message)

        quoted_foreign = ', '.join(self.adapter.quote(name) for name in foreign_columns)
        return (f"FOREIGN KEY ({quoted_columns}) "
                f"REFERENCES {self.adapter.quote(foreign_table)} ({quoted_foreign})")
