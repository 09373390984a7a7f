"""
Table management, row access and grid editing services
"""

from .schema_introspector import SchemaIntrospector
from .schema_mutator import SchemaMutator
from .row_store import RowStore
from .grid_editor import GridEditor, GridMode, InMemoryClipboard
from .api_client import DataLibraryClient
from .data_library import DataLibrarySystem

__all__ = [
    'SchemaIntrospector',
    'SchemaMutator',
    'RowStore',
    'GridEditor',
    'GridMode',
    'InMemoryClipboard',
    'DataLibraryClient',
    'DataLibrarySystem'
]
