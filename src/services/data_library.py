"""
Data library system: configuration and wiring of the services around one adapter
"""

import os
from datetime import datetime
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from ..database import DatabaseFactory, DatabaseAdapter
from ..database.registry import SchemaRegistry, REGISTRY_TABLE
from ..utils.errors import DataLibraryError
from ..utils.logger import setup_logger
from .grid_editor import Clipboard, GridEditor
from .row_store import RowStore
from .schema_introspector import SchemaIntrospector
from .schema_mutator import SchemaMutator

# Load environment variables
load_dotenv()


class DataLibrarySystem:
    """Dynamic table manager with a grid editor on top"""

    def __init__(self):
        # Database configuration
        self.db_configs = {
            'postgresql': {
                'host': os.getenv('POSTGRES_HOST'),
                'port': os.getenv('POSTGRES_PORT'),
                'user': os.getenv('POSTGRES_USER'),
                'password': os.getenv('POSTGRES_PASSWORD'),
                'database': os.getenv('POSTGRES_DB')
            },
            'mysql': {
                'host': os.getenv('MYSQL_HOST'),
                'port': int(os.getenv('MYSQL_PORT', 3306)),
                'user': os.getenv('MYSQL_USER'),
                'password': os.getenv('MYSQL_PASSWORD'),
                'database': os.getenv('MYSQL_DB')
            },
            'sqlite': {
                'database': os.getenv('SQLITE_PATH', ':memory:')
            }
        }
        self.default_db_type = os.getenv('DATA_LIBRARY_DB_TYPE', 'postgresql')

        # Paging and caching
        self.page_size = int(os.getenv('DATA_LIBRARY_PAGE_SIZE', 50))
        self.max_page_size = int(os.getenv('DATA_LIBRARY_MAX_PAGE_SIZE', 500))
        self.schema_cache_ttl = int(os.getenv('SCHEMA_CACHE_TTL', 3600))
        self.protected_tables = [
            name.strip() for name in os.getenv('DATA_LIBRARY_PROTECTED_TABLES', '').split(',')
            if name.strip()
        ]

        self.current_adapter: Optional[DatabaseAdapter] = None
        self.current_db_type: Optional[str] = None
        self.registry: Optional[SchemaRegistry] = None
        self.introspector: Optional[SchemaIntrospector] = None
        self.mutator: Optional[SchemaMutator] = None
        self.row_store: Optional[RowStore] = None

        self.start_time = datetime.now()
        self.logger = setup_logger("DataLibrarySystem")

    @property
    def connected(self) -> bool:
        return self.current_adapter is not None

    def connect_database(self, db_type: Optional[str] = None) -> bool:
        """Connect to specified database type"""
        db_type = (db_type or self.default_db_type).lower()
        if db_type == 'postgres':
            db_type = 'postgresql'

        if db_type not in self.db_configs:
            self.logger.error(f"Unsupported database type: {db_type}")
            return False

        config = self.db_configs[db_type]
        missing = DatabaseFactory.missing_config(db_type, config)
        if missing:
            self.logger.error(f"Missing configuration for {db_type}: {', '.join(missing)}")
            return False

        try:
            adapter = DatabaseFactory.create_connector(db_type, config)
            adapter.connect()
            self.attach_adapter(adapter)
        except DataLibraryError as e:
            self.logger.error(f"Failed to connect to {db_type}: {e.message}")
            return False

        self.logger.info(f"Connected to {db_type} database")
        return True

    def attach_adapter(self, adapter: DatabaseAdapter, registry_table: str = REGISTRY_TABLE):
        """Build the services around an already connected adapter"""
        if self.current_adapter is not None and self.current_adapter is not adapter:
            self.current_adapter.dispose()

        registry = SchemaRegistry(adapter, registry_table)
        registry.ensure()
        registry.seed(self.protected_tables)

        self.current_adapter = adapter
        self.current_db_type = adapter.db_type
        self.registry = registry
        self.introspector = SchemaIntrospector(adapter, registry, cache_ttl=self.schema_cache_ttl)
        self.mutator = SchemaMutator(adapter, registry, self.introspector)
        self.row_store = RowStore(adapter, registry, self.introspector,
                                  default_page_size=self.page_size,
                                  max_page_size=self.max_page_size)

    def require_connection(self):
        if not self.connected:
            raise RuntimeError("No database connected")

    def open_grid(self, table_name: str, clipboard: Optional[Clipboard] = None,
                  notifier=None, write_through_undo: bool = False) -> GridEditor:
        """Grid editor over the first page of ``table_name``"""
        self.require_connection()
        schema = self.introspector.get_table_schema(table_name)
        editor = GridEditor(
            self.row_store, schema,
            clipboard=clipboard,
            notifier=notifier,
            page_size=self.page_size,
            write_through_undo=write_through_undo
        )
        editor.load_page(1)
        return editor

    def get_status(self) -> Dict[str, Any]:
        status = {
            'database_connected': self.connected,
            'database_type': self.current_db_type,
            'uptime_seconds': (datetime.now() - self.start_time).total_seconds(),
        }
        if self.connected:
            status['table_count'] = len(self.introspector.list_table_names())
            status['protected_tables'] = sorted(self.registry.protected_tables())
        return status

    def close(self):
        if self.current_adapter is not None:
            self.current_adapter.dispose()
        self.current_adapter = None
        self.current_db_type = None
