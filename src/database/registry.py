"""
Schema registry: the one place that records which tables are protected
"""

from typing import Dict, Any, Iterable, List, Set, Tuple

from .adapters import DatabaseAdapter
from ..utils.identifier_validator import validate_identifier
from ..utils.logger import setup_logger


REGISTRY_TABLE = 'data_library_registry'

Statement = Tuple[str, Dict[str, Any]]


class SchemaRegistry:
    """Stores a ``protected`` flag per table in a dedicated registry table.

    Tables missing from the registry are user-mutable. The registry table
    itself is always treated as protected and is hidden from listings.
    """

    def __init__(self, adapter: DatabaseAdapter, table_name: str = REGISTRY_TABLE):
        self.adapter = adapter
        self.table_name = validate_identifier(table_name, "registry table name")
        self.logger = setup_logger("SchemaRegistry")

    @property
    def _quoted(self) -> str:
        return self.adapter.quote(self.table_name)

    def ensure(self):
        """Create the registry table if it does not exist yet"""
        self.adapter.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._quoted} (
                table_name VARCHAR(255) NOT NULL PRIMARY KEY,
                protected BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def is_registry_table(self, table_name: str) -> bool:
        return table_name == self.table_name

    def is_protected(self, table_name: str) -> bool:
        if self.is_registry_table(table_name):
            return True

        result = self.adapter.execute(
            f"SELECT protected FROM {self._quoted} WHERE table_name = :table_name",
            {'table_name': table_name}
        )
        rows = result.get('rows') or []
        return bool(rows[0]['protected']) if rows else False

    def protected_tables(self) -> Set[str]:
        result = self.adapter.execute(
            f"SELECT table_name FROM {self._quoted} WHERE protected = :protected",
            {'protected': True}
        )
        return {row['table_name'] for row in result.get('rows') or []}

    def register_statements(self, table_name: str, protected: bool) -> List[Statement]:
        """Statements recording ``table_name`` with the given flag (replacing any entry)"""
        params = {'table_name': table_name}
        return self.unregister_statements(table_name) + [(
            f"INSERT INTO {self._quoted} (table_name, protected) VALUES (:table_name, :protected)",
            {**params, 'protected': bool(protected)}
        )]

    def unregister_statements(self, table_name: str) -> List[Statement]:
        return [(
            f"DELETE FROM {self._quoted} WHERE table_name = :table_name",
            {'table_name': table_name}
        )]

    def set_protected(self, table_name: str, protected: bool = True):
        validate_identifier(table_name, "table name")
        self.adapter.execute_script(self.register_statements(table_name, protected))
        self.logger.info(f"Table '{table_name}' protection set to {protected}")

    def seed(self, table_names: Iterable[str]):
        """Mark every name in ``table_names`` as protected"""
        for name in table_names:
            name = name.strip()
            if name:
                self.set_protected(name, True)
