"""
Database factory for creating appropriate database adapters
"""

from typing import Dict, Any
from .adapters import DatabaseAdapter, PostgreSQLAdapter, MySQLAdapter, SQLiteAdapter


class DatabaseFactory:
    """Factory class to create appropriate database connector"""

    @staticmethod
    def create_connector(db_type: str, config: Dict[str, Any]) -> DatabaseAdapter:
        """Create database adapter based on type"""
        if db_type.lower() in ['postgresql', 'postgres']:
            return PostgreSQLAdapter(config)
        elif db_type.lower() == 'mysql':
            return MySQLAdapter(config)
        elif db_type.lower() == 'sqlite':
            return SQLiteAdapter(config)
        else:
            raise ValueError(f"Unsupported database type: {db_type}")

    @staticmethod
    def get_supported_types() -> list:
        """Get list of supported database types"""
        return ['postgresql', 'mysql', 'sqlite']

    @staticmethod
    def get_required_config(db_type: str) -> list:
        """Get required configuration keys for database type"""
        configs = {
            'postgresql': ['host', 'port', 'user', 'password', 'database'],
            'postgres': ['host', 'port', 'user', 'password', 'database'],
            'mysql': ['host', 'user', 'password', 'database'],
            'sqlite': []
        }
        return configs.get(db_type.lower(), [])

    @staticmethod
    def missing_config(db_type: str, config: Dict[str, Any]) -> list:
        """Required keys that are absent or empty in ``config``"""
        return [key for key in DatabaseFactory.get_required_config(db_type) if not config.get(key)]
