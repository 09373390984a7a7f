"""
Database adapters, schema models and the protection registry
"""

from .models import (
    ColumnDefinition, ConstraintDefinition, IndexDefinition, TableSchema,
    ColumnSpec, ConstraintSpec, CreateTableRequest, RowPage, GridCellRef, UndoFrame
)
from .adapters import DatabaseAdapter, PostgreSQLAdapter, MySQLAdapter, SQLiteAdapter
from .factory import DatabaseFactory
from .registry import SchemaRegistry

__all__ = [
    'ColumnDefinition',
    'ConstraintDefinition',
    'IndexDefinition',
    'TableSchema',
    'ColumnSpec',
    'ConstraintSpec',
    'CreateTableRequest',
    'RowPage',
    'GridCellRef',
    'UndoFrame',
    'DatabaseAdapter',
    'PostgreSQLAdapter',
    'MySQLAdapter',
    'SQLiteAdapter',
    'DatabaseFactory',
    'SchemaRegistry'
]
