"""
Schema introspector: builds normalized TableSchema objects from catalog metadata
"""

import time
from dataclasses import replace
from typing import Dict, List, Any, Optional, Tuple
from sqlalchemy.exc import CompileError

from ..database.adapters import DatabaseAdapter
from ..database.models import (
    TableSchema, ColumnDefinition, ConstraintDefinition, IndexDefinition
)
from ..database.registry import SchemaRegistry
from ..utils.errors import DataLibraryError, NotFound
from ..utils.identifier_validator import validate_identifier
from ..utils.logger import setup_logger
from ..utils.schema_analyzer import SchemaAnalyzer


class SchemaIntrospector:
    """Read-only view of the tables in the connected database"""

    def __init__(self, adapter: DatabaseAdapter, registry: SchemaRegistry, cache_ttl: int = 3600):
        self.adapter = adapter
        self.registry = registry
        self.cache_ttl = cache_ttl
        self.schema_cache: Dict[str, Tuple[float, TableSchema]] = {}
        self.schema_analyzer = SchemaAnalyzer()
        self.logger = setup_logger("SchemaIntrospector")

    def list_table_names(self) -> List[str]:
        names = self.adapter.inspector().get_table_names()
        return sorted(name for name in names if not self.registry.is_registry_table(name))

    def table_exists(self, table_name: str) -> bool:
        if self.registry.is_registry_table(table_name):
            return False
        return self.adapter.inspector().has_table(table_name)

    def get_all_tables(self, search: Optional[str] = None) -> List[TableSchema]:
        """Every base table, system tables included and tagged.

        ``search`` keeps only tables whose name contains it, ignoring case.
        """
        needle = (search or '').lower()
        tables = []
        for name in self.list_table_names():
            if needle not in name.lower():
                continue
            schema = self.get_table_schema(name)
            # structure is cached, row counts are not
            tables.append(replace(schema, row_count=self._row_count(name)))
        return tables

    def get_table_schema(self, table_name: str) -> TableSchema:
        """Get detailed schema for a specific table"""
        validate_identifier(table_name, "table name")

        cached = self.schema_cache.get(table_name)
        if cached and time.time() - cached[0] < self.cache_ttl:
            return cached[1]

        schema = self._build_schema(table_name)
        self.schema_cache[table_name] = (time.time(), schema)
        return schema

    def invalidate(self, table_name: Optional[str] = None):
        """Drop the cached schema for one table, or for all tables"""
        if table_name is None:
            self.schema_cache.clear()
        else:
            self.schema_cache.pop(table_name, None)

    def get_relationships(self) -> Dict[str, Any]:
        return self.schema_analyzer.analyze(self.get_all_tables())

    def get_dependent_tables(self, table_name: str) -> List[str]:
        """Tables whose foreign keys reach ``table_name``"""
        self.schema_analyzer.build_relationship_graph(self.get_all_tables())
        return self.schema_analyzer.get_dependent_tables(table_name)

    def _build_schema(self, table_name: str) -> TableSchema:
        inspector = self.adapter.inspector()
        if self.registry.is_registry_table(table_name) or not inspector.has_table(table_name):
            raise NotFound(f"Table '{table_name}' not found")

        pk = inspector.get_pk_constraint(table_name) or {}
        primary_keys = list(pk.get('constrained_columns') or [])
        foreign_keys = inspector.get_foreign_keys(table_name) or []

        columns = self._build_columns(table_name, inspector.get_columns(table_name) or [],
                                      primary_keys, foreign_keys)
        constraints = self._build_constraints(table_name, inspector, pk, foreign_keys)
        indexes = self._build_indexes(inspector.get_indexes(table_name) or [])

        return TableSchema(
            table_name=table_name,
            columns=columns,
            constraints=constraints,
            indexes=indexes,
            row_count=self._row_count(table_name),
            is_system_table=self.registry.is_protected(table_name)
        )

    def _build_columns(self, table_name: str, raw_columns: List[Dict[str, Any]],
                       primary_keys: List[str], foreign_keys: List[Dict[str, Any]]) -> List[ColumnDefinition]:
        references = {}
        for fk in foreign_keys:
            constrained = fk.get('constrained_columns') or []
            referred = fk.get('referred_columns') or []
            for position, column in enumerate(constrained):
                references.setdefault(column, (
                    fk.get('referred_table'),
                    referred[position] if position < len(referred) else None
                ))

        columns = []
        for col in raw_columns:
            name = col.get('name')
            col_type = col.get('type')
            is_pk = name in primary_keys
            foreign_table, foreign_column = references.get(name, (None, None))
            default = col.get('default')

            columns.append(ColumnDefinition(
                column_name=name,
                data_type=self._type_name(col_type),
                # primary key columns are implicitly NOT NULL even where the catalog says otherwise
                is_nullable=bool(col.get('nullable', True)) and not is_pk,
                column_default=str(default) if default is not None else None,
                is_primary_key=is_pk,
                is_foreign_key=name in references,
                foreign_table=foreign_table,
                foreign_column=foreign_column,
                max_length=getattr(col_type, 'length', None),
                numeric_precision=getattr(col_type, 'precision', None),
                numeric_scale=getattr(col_type, 'scale', None)
            ))

        if not columns:
            self.logger.warning(f"Catalog returned no columns for table '{table_name}'")
        return columns

    def _build_constraints(self, table_name: str, inspector, pk: Dict[str, Any],
                           foreign_keys: List[Dict[str, Any]]) -> List[ConstraintDefinition]:
        constraints = []

        if pk.get('constrained_columns'):
            constraints.append(ConstraintDefinition(
                constraint_name=pk.get('name') or f"{table_name}_pkey",
                constraint_type='PRIMARY KEY',
                column_names=list(pk['constrained_columns'])
            ))

        for fk in foreign_keys:
            columns = list(fk.get('constrained_columns') or [])
            constraints.append(ConstraintDefinition(
                constraint_name=fk.get('name') or f"{table_name}_{'_'.join(columns)}_fkey",
                constraint_type='FOREIGN KEY',
                column_names=columns,
                foreign_table=fk.get('referred_table'),
                foreign_columns=list(fk.get('referred_columns') or [])
            ))

        for unique in self._optional_reflection(inspector.get_unique_constraints, table_name):
            columns = list(unique.get('column_names') or [])
            constraints.append(ConstraintDefinition(
                constraint_name=unique.get('name') or f"{table_name}_{'_'.join(columns)}_key",
                constraint_type='UNIQUE',
                column_names=columns
            ))

        checks = self._optional_reflection(inspector.get_check_constraints, table_name)
        for position, check in enumerate(checks, 1):
            constraints.append(ConstraintDefinition(
                constraint_name=check.get('name') or f"{table_name}_check{position}",
                constraint_type='CHECK',
                check_clause=check.get('sqltext')
            ))

        constraints.sort(key=lambda c: (c.constraint_type, c.constraint_name))
        return constraints

    def _build_indexes(self, raw_indexes: List[Dict[str, Any]]) -> List[IndexDefinition]:
        indexes = []
        for idx in raw_indexes:
            options = idx.get('dialect_options') or {}
            indexes.append(IndexDefinition(
                index_name=idx.get('name') or '',
                column_names=[name for name in idx.get('column_names') or [] if name],
                is_unique=bool(idx.get('unique', False)),
                index_type=options.get('postgresql_using') or options.get('mysql_using') or 'btree'
            ))
        indexes.sort(key=lambda i: i.index_name)
        return indexes

    def _optional_reflection(self, reflect, table_name: str) -> List[Dict[str, Any]]:
        try:
            return reflect(table_name) or []
        except NotImplementedError:
            return []

    def _row_count(self, table_name: str) -> int:
        try:
            return self.adapter.estimate_row_count(table_name)
        except DataLibraryError as e:
            self.logger.warning(f"Row count estimate failed for '{table_name}': {e}")
            return 0

    def _type_name(self, col_type) -> str:
        if col_type is None:
            return ''
        try:
            return col_type.compile(dialect=self.adapter.engine.dialect)
        except CompileError:
            return type(col_type).__name__.upper()
