"""
Row store: paginated reads, row CRUD and CSV export against any table
"""

import csv
import io
import math
from datetime import date, datetime
from typing import Dict, List, Any, Optional, Tuple

from ..database.adapters import DatabaseAdapter
from ..database.models import Row, RowPage, TableSchema
from ..database.registry import SchemaRegistry
from ..utils.errors import (
    InvalidRequest, MissingIdColumn, NotFound, ProtectedTable, UnknownColumn
)
from ..utils.identifier_validator import validate_identifier
from ..utils.logger import setup_logger
from .schema_introspector import SchemaIntrospector


ID_COLUMN = 'id'

INTEGER_TYPES = {
    'INT', 'INTEGER', 'BIGINT', 'SMALLINT', 'TINYINT', 'MEDIUMINT',
    'SERIAL', 'BIGSERIAL', 'SMALLSERIAL',
}


class RowStore:
    """Row-level access to operator tables.

    Reads work on every table. Writes refuse system tables and need a column
    literally named ``id`` to address rows.
    """

    def __init__(self, adapter: DatabaseAdapter, registry: SchemaRegistry,
                 introspector: SchemaIntrospector, default_page_size: int = 50,
                 max_page_size: int = 500):
        self.adapter = adapter
        self.registry = registry
        self.introspector = introspector
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.logger = setup_logger("RowStore")

    def get_page(self, table_name: str, page: int = 1, page_size: Optional[int] = None) -> RowPage:
        """Get one 1-indexed page ordered by primary key"""
        schema = self.introspector.get_table_schema(table_name)
        page_size = self.default_page_size if page_size is None else page_size

        if page < 1:
            raise InvalidRequest("page must be 1 or greater")
        if page_size < 1:
            raise InvalidRequest("limit must be 1 or greater")
        page_size = min(page_size, self.max_page_size)

        table = self.adapter.quote(table_name)
        count = self.adapter.execute(f"SELECT COUNT(*) AS total FROM {table}")
        total = int(count['rows'][0]['total'])

        result = self.adapter.execute(
            f"SELECT * FROM {table} ORDER BY {self._order_by(schema)} LIMIT :limit OFFSET :offset",
            {'limit': page_size, 'offset': (page - 1) * page_size}
        )

        return RowPage(
            rows=result['rows'],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size)
        )

    def get_row(self, table_name: str, row_id: Any) -> Optional[Row]:
        schema = self.introspector.get_table_schema(table_name)
        self._require_id_column(schema)
        return self._fetch_by_id(schema, self._coerce_id(schema, row_id))

    def insert_row(self, table_name: str, data: Dict[str, Any]) -> Row:
        """Insert row into table and return it as stored"""
        schema = self._writable_schema(table_name)
        self._check_columns(schema, data)
        if not data:
            raise InvalidRequest("No data to insert")

        columns, placeholders, params = self._bind(data)
        sql = (f"INSERT INTO {self.adapter.quote(table_name)} ({', '.join(columns)}) "
               f"VALUES ({', '.join(placeholders)})")

        if self.adapter.supports_returning:
            row = self.adapter.execute(sql + " RETURNING *", params)['rows'][0]
        else:
            result = self.adapter.execute(sql, params)
            row = self._fetch_inserted(schema, data, result.get('lastrowid'))

        self.logger.info(f"Inserted row into '{table_name}'")
        return row

    def update_row(self, table_name: str, row_id: Any, data: Dict[str, Any]) -> Row:
        """Set only the supplied columns of one row"""
        schema = self._writable_schema(table_name)
        self._require_id_column(schema)
        self._check_columns(schema, data)
        row_id = self._coerce_id(schema, row_id)

        data = dict(data)
        if ID_COLUMN in data:
            if str(data.pop(ID_COLUMN)) != str(row_id):
                raise InvalidRequest("The id column cannot be changed")

        if not data:
            row = self._fetch_by_id(schema, row_id)
            if row is None:
                raise NotFound(f"Row {row_id} not found in '{table_name}'")
            return row

        columns, placeholders, params = self._bind(data)
        assignments = ', '.join(f"{col} = {ph}" for col, ph in zip(columns, placeholders))
        sql = (f"UPDATE {self.adapter.quote(table_name)} SET {assignments} "
               f"WHERE {self.adapter.quote(ID_COLUMN)} = :row_id")
        params['row_id'] = row_id

        if self.adapter.supports_returning:
            rows = self.adapter.execute(sql + " RETURNING *", params)['rows']
            row = rows[0] if rows else None
        else:
            result = self.adapter.execute(sql, params)
            row = self._fetch_by_id(schema, row_id) if result['affected_rows'] else None

        if row is None:
            raise NotFound(f"Row {row_id} not found in '{table_name}'")

        self.logger.info(f"Updated row {row_id} in '{table_name}': {', '.join(data)}")
        return row

    def delete_row(self, table_name: str, row_id: Any) -> bool:
        """Delete row; False when it was already gone"""
        schema = self._writable_schema(table_name)
        self._require_id_column(schema)

        result = self.adapter.execute(
            f"DELETE FROM {self.adapter.quote(table_name)} "
            f"WHERE {self.adapter.quote(ID_COLUMN)} = :row_id",
            {'row_id': self._coerce_id(schema, row_id)}
        )
        deleted = result['affected_rows'] > 0
        if deleted:
            self.logger.info(f"Deleted row {row_id} from '{table_name}'")
        return deleted

    def export_csv(self, table_name: str) -> str:
        """Dump the whole table as CSV; an empty table gives an empty string"""
        schema = self.introspector.get_table_schema(table_name)
        result = self.adapter.execute(
            f"SELECT * FROM {self.adapter.quote(table_name)} ORDER BY {self._order_by(schema)}"
        )

        if not result['rows']:
            return ''

        output = io.StringIO()
        writer = csv.writer(output, lineterminator='\n')
        writer.writerow(result['columns'])
        for row in result['rows']:
            writer.writerow([format_csv_value(row[col]) for col in result['columns']])

        # no trailing newline after the last record
        return output.getvalue()[:-1]

    def _writable_schema(self, table_name: str) -> TableSchema:
        validate_identifier(table_name, "table name")
        if self.registry.is_protected(table_name):
            self.logger.warning(f"Refused row write on system table '{table_name}'")
            raise ProtectedTable(table=table_name)
        return self.introspector.get_table_schema(table_name)

    def _require_id_column(self, schema: TableSchema):
        if not schema.has_column(ID_COLUMN):
            raise MissingIdColumn(
                f"Table '{schema.table_name}' has no '{ID_COLUMN}' column; row edits are not supported"
            )

    def _check_columns(self, schema: TableSchema, data: Dict[str, Any]):
        if not isinstance(data, dict):
            raise InvalidRequest("Row data must be an object")
        unknown = [key for key in data if not schema.has_column(key)]
        if unknown:
            raise UnknownColumn(
                f"Unknown column(s) for '{schema.table_name}': {', '.join(map(str, unknown))}",
                columns=unknown
            )

    def _bind(self, data: Dict[str, Any]) -> Tuple[List[str], List[str], Dict[str, Any]]:
        # positional bind names; column names are not always valid parameter names
        columns, placeholders, params = [], [], {}
        for position, (column, value) in enumerate(data.items()):
            columns.append(self.adapter.quote(column))
            placeholders.append(f":p{position}")
            params[f"p{position}"] = value
        return columns, placeholders, params

    def _order_by(self, schema: TableSchema) -> str:
        keys = schema.primary_keys or [schema.columns[0].column_name]
        return ', '.join(f"{self.adapter.quote(key)} ASC" for key in keys)

    def _coerce_id(self, schema: TableSchema, row_id: Any) -> Any:
        column = schema.get_column(ID_COLUMN)
        if column is None or not isinstance(row_id, str):
            return row_id
        if column.data_type.upper().split('(')[0].strip() in INTEGER_TYPES:
            try:
                return int(row_id)
            except ValueError:
                raise InvalidRequest(f"Invalid row id: {row_id!r}")
        return row_id

    def _fetch_by_id(self, schema: TableSchema, row_id: Any) -> Optional[Row]:
        result = self.adapter.execute(
            f"SELECT * FROM {self.adapter.quote(schema.table_name)} "
            f"WHERE {self.adapter.quote(ID_COLUMN)} = :row_id",
            {'row_id': row_id}
        )
        rows = result.get('rows') or []
        return rows[0] if rows else None

    def _fetch_inserted(self, schema: TableSchema, data: Dict[str, Any], lastrowid: Any) -> Row:
        if schema.has_column(ID_COLUMN):
            row_id = data.get(ID_COLUMN, lastrowid)
            if row_id is not None:
                row = self._fetch_by_id(schema, row_id)
                if row is not None:
                    return row
        return dict(data)


def format_csv_value(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)
