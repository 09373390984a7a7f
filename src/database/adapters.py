"""
Database adapters for different database types.

An adapter is the explicitly constructed store handle every service receives.
It owns one SQLAlchemy engine and hides the few dialect differences the data
library cares about: identifier quoting, column type spelling, row count
estimates and which DDL/DML features exist.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Tuple, Optional, Any

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine, URL
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..utils.errors import DataIntegrityError, InvalidRequest, NetworkError
from ..utils.logger import setup_logger


logger = setup_logger("DatabaseAdapter")


def parse_db_error(error: Exception) -> str:
    """Turn a driver exception into a short operator-facing message"""
    error_str = str(getattr(error, 'orig', None) or error)
    lowered = error_str.lower()

    if isinstance(error, IntegrityError):
        if "foreign key" in lowered:
            return "Foreign key constraint violated. Referenced record may not exist."
        if "unique" in lowered or "duplicate" in lowered:
            return "Unique constraint violated. A record with this value already exists."
        if "not null" in lowered or "cannot be null" in lowered:
            return "Required field is missing. Check for null values."
        if "check" in lowered:
            return "Check constraint violated."

    return f"Database error: {error_str.strip()[:150]}"


class DatabaseAdapter(ABC):
    """Abstract base class for database adapters"""

    db_type = 'generic'
    supports_returning = True
    supports_drop_cascade = True
    supports_drop_column_cascade = True
    type_aliases: Dict[str, str] = {}

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.engine: Optional[Engine] = None

    @abstractmethod
    def build_url(self) -> URL:
        """Build the SQLAlchemy connection URL from the config"""
        pass

    @abstractmethod
    def estimate_row_count(self, table_name: str) -> int:
        """Approximate row count, for display only"""
        pass

    @abstractmethod
    def get_version(self) -> str:
        pass

    def engine_options(self) -> Dict[str, Any]:
        return {'pool_pre_ping': True}

    def connect(self, config: Dict[str, Any] = None) -> Engine:
        """Create the engine and check the connection"""
        if config:
            self.config = config

        try:
            self.engine = create_engine(self.build_url(), **self.engine_options())
            self._on_engine_created(self.engine)
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info(f"Connected to {self.db_type} database")
            return self.engine
        except SQLAlchemyError as e:
            self.engine = None
            raise NetworkError(f"{self.db_type} connection failed: {e}")

    def _on_engine_created(self, engine: Engine):
        pass

    def dispose(self):
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            self.connect()
        return self.engine

    def execute(self, sql: str, params: Dict[str, Any] = None) -> Dict[str, Any]:
        """Execute one parameterized statement in its own transaction"""
        return self.execute_script([(sql, params)])[-1]

    def execute_script(self, statements: List[Tuple[str, Optional[Dict[str, Any]]]]) -> List[Dict[str, Any]]:
        """Execute several statements in a single transaction"""
        engine = self._require_engine()
        results = []

        try:
            with engine.begin() as conn:
                for sql, params in statements:
                    logger.debug(f"Executing: {sql.strip()}")
                    result = conn.execute(text(sql), self.bind_params(params or {}))
                    results.append(self._summarize(result))
        except SQLAlchemyError as e:
            raise self._translate_error(e)

        return results

    def bind_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return params

    def _summarize(self, result) -> Dict[str, Any]:
        if result.returns_rows:
            columns = list(result.keys())
            rows = [dict(row._mapping) for row in result]
            return {
                'columns': columns,
                'rows': rows,
                'row_count': len(rows)
            }
        return {
            'affected_rows': result.rowcount,
            'lastrowid': getattr(result, 'lastrowid', None)
        }

    def _translate_error(self, error: SQLAlchemyError) -> Exception:
        if isinstance(error, IntegrityError):
            logger.warning(f"Integrity violation: {error.orig}")
            return DataIntegrityError(parse_db_error(error))
        if isinstance(error, InterfaceError) or (
            isinstance(error, DBAPIError) and error.connection_invalidated
        ):
            logger.error(f"Lost connection to {self.db_type}: {error}")
            return NetworkError(f"{self.db_type} connection lost")
        logger.error(f"Statement failed: {error}")
        return InvalidRequest(parse_db_error(error))

    def inspector(self) -> Inspector:
        """Fresh inspector; SQLAlchemy caches reflection per inspector instance"""
        return inspect(self._require_engine())

    def quote(self, name: str) -> str:
        """Quote an identifier that has already been validated"""
        return self._require_engine().dialect.identifier_preparer.quote_identifier(name)

    def render_type(self, data_type: str) -> str:
        """Spell a validated column type the way this dialect expects"""
        base, _, rest = data_type.partition('(')
        alias = self.type_aliases.get(base.strip())
        if alias is None:
            return data_type
        return alias if not rest else f"{alias}({rest}"


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL database adapter"""

    db_type = 'postgresql'

    def build_url(self) -> URL:
        return URL.create(
            'postgresql+psycopg2',
            username=self.config.get('user'),
            password=self.config.get('password'),
            host=self.config.get('host'),
            port=int(self.config['port']) if self.config.get('port') else None,
            database=self.config.get('database')
        )

    def estimate_row_count(self, table_name: str) -> int:
        result = self.execute("""
            SELECT COALESCE(n_live_tup, 0) AS row_count
            FROM pg_stat_user_tables
            WHERE relname = :table_name
              AND schemaname = 'public'
        """, {'table_name': table_name})
        rows = result.get('rows') or []
        return int(rows[0]['row_count']) if rows else 0

    def get_version(self) -> str:
        return self.execute("SELECT version() AS version")['rows'][0]['version']


class MySQLAdapter(DatabaseAdapter):
    """MySQL database adapter"""

    db_type = 'mysql'
    supports_returning = False
    supports_drop_column_cascade = False
    type_aliases = {'BIGSERIAL': 'SERIAL', 'SMALLSERIAL': 'SERIAL'}

    def build_url(self) -> URL:
        return URL.create(
            'mysql+pymysql',
            username=self.config.get('user'),
            password=self.config.get('password'),
            host=self.config.get('host'),
            port=int(self.config.get('port', 3306)),
            database=self.config.get('database')
        )

    def estimate_row_count(self, table_name: str) -> int:
        result = self.execute("""
            SELECT COALESCE(TABLE_ROWS, 0) AS row_count
            FROM information_schema.TABLES
            WHERE table_schema = DATABASE()
              AND table_name = :table_name
        """, {'table_name': table_name})
        rows = result.get('rows') or []
        return int(rows[0]['row_count']) if rows else 0

    def get_version(self) -> str:
        return self.execute("SELECT VERSION() AS version")['rows'][0]['version']


class SQLiteAdapter(DatabaseAdapter):
    """SQLite database adapter, file backed or in-memory"""

    db_type = 'sqlite'
    supports_drop_cascade = False
    supports_drop_column_cascade = False
    type_aliases = {'SERIAL': 'INTEGER', 'BIGSERIAL': 'INTEGER', 'SMALLSERIAL': 'INTEGER'}

    @property
    def in_memory(self) -> bool:
        return self.config.get('database', ':memory:') in ('', ':memory:')

    def build_url(self) -> URL:
        if self.in_memory:
            return URL.create('sqlite')
        return URL.create('sqlite', database=self.config['database'])

    def engine_options(self) -> Dict[str, Any]:
        options = {'connect_args': {'check_same_thread': False}}
        if self.in_memory:
            # one shared connection, otherwise every checkout sees an empty database
            options['poolclass'] = StaticPool
        return options

    def _on_engine_created(self, engine: Engine):
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    def bind_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        # sqlite3 has no Decimal binding; NUMERIC affinity converts the text back
        return {key: str(value) if isinstance(value, Decimal) else value
                for key, value in params.items()}

    def estimate_row_count(self, table_name: str) -> int:
        result = self.execute(f"SELECT COUNT(*) AS row_count FROM {self.quote(table_name)}")
        return int(result['rows'][0]['row_count'])

    def get_version(self) -> str:
        return self.execute("SELECT sqlite_version() AS version")['rows'][0]['version']
