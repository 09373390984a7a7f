"""
Shared fixtures: an in-memory SQLite backed data library
"""

import pytest

from src.database.adapters import SQLiteAdapter
from src.database.models import ColumnSpec, CreateTableRequest
from src.services.data_library import DataLibrarySystem


@pytest.fixture
def system(monkeypatch):
    monkeypatch.delenv('DATA_LIBRARY_PROTECTED_TABLES', raising=False)
    monkeypatch.setenv('DATA_LIBRARY_PAGE_SIZE', '50')
    library = DataLibrarySystem()
    adapter = SQLiteAdapter({'database': ':memory:'})
    adapter.connect()
    library.attach_adapter(adapter)
    yield library
    library.close()


def leads_request(is_system_table: bool = False, table_name: str = 'leads') -> CreateTableRequest:
    return CreateTableRequest(
        table_name=table_name,
        columns=[
            ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True),
            ColumnSpec('name', 'VARCHAR(255)', is_nullable=False),
            ColumnSpec('email', 'VARCHAR(255)'),
            ColumnSpec('score', 'INTEGER'),
        ],
        is_system_table=is_system_table
    )


@pytest.fixture
def leads(system):
    system.mutator.create_table(leads_request())
    return 'leads'


@pytest.fixture
def seeded_leads(system, leads):
    for name, score in [('Acme', 10), ('Globex', None), ('Initech', 7), ('Umbrella', 3)]:
        system.row_store.insert_row(leads, {'name': name, 'score': score})
    return leads
