import pytest

from conftest import leads_request
from src.database.models import ColumnSpec, ConstraintSpec, CreateTableRequest
from src.database.registry import REGISTRY_TABLE
from src.utils.errors import (
    ConstraintError, DataIntegrityError, DuplicateTable, InvalidIdentifier,
    InvalidRequest, NotFound, ProtectedTable, UnknownColumn
)


def users_system_request():
    return CreateTableRequest(
        table_name='users_system',
        columns=[
            ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True),
            ColumnSpec('email', 'VARCHAR(255)', is_nullable=False),
        ],
        is_system_table=True
    )


def companies_and_contacts(system):
    system.mutator.create_table(CreateTableRequest(
        table_name='companies',
        columns=[
            ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True),
            ColumnSpec('name', 'TEXT', is_nullable=False),
        ]
    ))
    system.mutator.create_table(CreateTableRequest(
        table_name='contacts',
        columns=[
            ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True),
            ColumnSpec('company_id', 'INTEGER'),
            ColumnSpec('full_name', 'TEXT'),
        ],
        constraints=[ConstraintSpec('FOREIGN KEY', ['company_id'], 'companies', ['id'])]
    ))


class TestCreateTable:
    def test_round_trip_matches_request(self, system):
        request = leads_request()
        assert system.mutator.create_table(request)

        schema = system.introspector.get_table_schema('leads')
        assert schema.column_names == [col.column_name for col in request.columns]
        for spec in request.columns:
            column = schema.get_column(spec.column_name)
            assert column.is_nullable == spec.is_nullable
            assert column.is_primary_key == spec.is_primary_key
        assert schema.primary_keys == ['id']
        assert not schema.is_system_table

    def test_generated_ddl(self, system):
        sql = system.mutator.build_create_table_sql(CreateTableRequest(
            table_name='leads',
            columns=[
                ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True),
                ColumnSpec('name', 'varchar(255)', is_nullable=False),
                ColumnSpec('status', 'VARCHAR(20)', column_default='new'),
            ],
            constraints=[
                ConstraintSpec('UNIQUE', ['name']),
                ConstraintSpec('CHECK', check_clause="status IN ('new', 'won')"),
            ]
        ))
        assert sql == (
            'CREATE TABLE "leads" (\n'
            '    "id" INTEGER NOT NULL PRIMARY KEY,\n'
            '    "name" VARCHAR(255) NOT NULL,\n'
            '    "status" VARCHAR(20) DEFAULT \'new\',\n'
            '    UNIQUE ("name"),\n'
            '    CHECK (status IN (\'new\', \'won\'))\n'
            ')'
        )

    def test_composite_primary_key_is_a_table_constraint(self, system):
        sql = system.mutator.build_create_table_sql(CreateTableRequest(
            table_name='memberships',
            columns=[
                ColumnSpec('user_id', 'INTEGER', is_nullable=False, is_primary_key=True),
                ColumnSpec('group_id', 'INTEGER', is_nullable=False, is_primary_key=True),
            ]
        ))
        assert 'PRIMARY KEY ("user_id", "group_id")' in sql
        assert '"user_id" INTEGER NOT NULL,' in sql

    def test_empty_check_clause_is_skipped(self, system):
        sql = system.mutator.build_create_table_sql(CreateTableRequest(
            table_name='notes',
            columns=[ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True)],
            constraints=[ConstraintSpec('CHECK', check_clause='')]
        ))
        assert 'CHECK' not in sql

    def test_duplicate_table(self, system, leads):
        with pytest.raises(DuplicateTable):
            system.mutator.create_table(leads_request())

    def test_registry_table_name_is_taken(self, system):
        with pytest.raises(DuplicateTable):
            system.mutator.create_table(leads_request(table_name=REGISTRY_TABLE))

    @pytest.mark.parametrize("table_name", ["bad-name", "1leads", "leads; DROP TABLE x"])
    def test_invalid_table_name_creates_nothing(self, system, table_name):
        with pytest.raises(InvalidIdentifier):
            system.mutator.create_table(leads_request(table_name=table_name))
        assert system.introspector.list_table_names() == []

    def test_invalid_column_name(self, system):
        request = leads_request()
        request.columns.append(ColumnSpec('bad name', 'TEXT'))
        with pytest.raises(InvalidIdentifier):
            system.mutator.create_table(request)
        assert not system.introspector.table_exists('leads')

    def test_needs_a_primary_key(self, system):
        with pytest.raises(InvalidRequest):
            system.mutator.create_table(CreateTableRequest(
                table_name='loose', columns=[ColumnSpec('name', 'TEXT')]
            ))

    def test_needs_columns(self, system):
        with pytest.raises(InvalidRequest):
            system.mutator.create_table(CreateTableRequest(table_name='empty', columns=[]))

    def test_duplicate_columns(self, system):
        request = leads_request()
        request.columns.append(ColumnSpec('name', 'TEXT'))
        with pytest.raises(InvalidRequest):
            system.mutator.create_table(request)

    def test_check_constraint_is_enforced(self, system):
        request = leads_request()
        request.constraints.append(ConstraintSpec('CHECK', check_clause='score >= 0'))
        system.mutator.create_table(request)

        with pytest.raises(DataIntegrityError):
            system.row_store.insert_row('leads', {'name': 'Acme', 'score': -1})


class TestConstraints:
    def test_foreign_key_with_invalid_target(self, system):
        request = leads_request()
        request.constraints.append(ConstraintSpec('FOREIGN KEY', ['score'], 'bad-table', ['id']))
        with pytest.raises(ConstraintError):
            system.mutator.create_table(request)
        assert not system.introspector.table_exists('leads')

    def test_foreign_key_needs_target(self, system):
        request = leads_request()
        request.constraints.append(ConstraintSpec('FOREIGN KEY', ['score']))
        with pytest.raises(ConstraintError):
            system.mutator.create_table(request)

    def test_foreign_key_column_counts_must_match(self, system):
        request = leads_request()
        request.constraints.append(ConstraintSpec('FOREIGN KEY', ['score'], 'companies', ['id', 'name']))
        with pytest.raises(ConstraintError):
            system.mutator.create_table(request)

    def test_constraint_on_unknown_column(self, system):
        request = leads_request()
        request.constraints.append(ConstraintSpec('UNIQUE', ['phone']))
        with pytest.raises(ConstraintError):
            system.mutator.create_table(request)

    def test_unsupported_constraint_type(self, system):
        request = leads_request()
        request.constraints.append(ConstraintSpec('EXCLUDE', ['name']))
        with pytest.raises(ConstraintError):
            system.mutator.create_table(request)

    def test_foreign_key_is_introspected(self, system):
        companies_and_contacts(system)

        schema = system.introspector.get_table_schema('contacts')
        column = schema.get_column('company_id')
        assert column.is_foreign_key
        assert column.foreign_table == 'companies'
        assert column.foreign_column == 'id'

        foreign_keys = [c for c in schema.constraints if c.constraint_type == 'FOREIGN KEY']
        assert len(foreign_keys) == 1
        assert foreign_keys[0].foreign_columns == ['id']

    def test_relationships(self, system):
        companies_and_contacts(system)

        analysis = system.introspector.get_relationships()
        assert analysis['relationships'][0]['from_table'] == 'contacts'
        assert analysis['relationships'][0]['to_table'] == 'companies'
        order = analysis['insertion_order']
        assert order.index('companies') < order.index('contacts')
        assert system.introspector.get_dependent_tables('companies') == ['contacts']


class TestProtectedTables:
    def test_system_table_is_tagged(self, system):
        system.mutator.create_table(users_system_request())
        assert system.introspector.get_table_schema('users_system').is_system_table
        assert 'users_system' in system.registry.protected_tables()

    def test_drop_column_on_system_table(self, system):
        system.mutator.create_table(users_system_request())
        before = system.introspector.get_table_schema('users_system')

        with pytest.raises(ProtectedTable) as exc_info:
            system.mutator.drop_column('users_system', 'email')

        assert exc_info.value.message == 'protected'
        system.introspector.invalidate()
        assert system.introspector.get_table_schema('users_system').column_names == before.column_names

    def test_drop_system_table(self, system):
        system.mutator.create_table(users_system_request())
        with pytest.raises(ProtectedTable):
            system.mutator.drop_table('users_system')
        assert system.introspector.table_exists('users_system')

    def test_add_column_to_system_table(self, system):
        system.mutator.create_table(users_system_request())
        with pytest.raises(ProtectedTable):
            system.mutator.add_column('users_system', ColumnSpec('phone', 'TEXT'))
        assert not system.introspector.get_table_schema('users_system').has_column('phone')

    def test_seeded_name_stays_protected_after_create(self, system):
        system.registry.seed(['audit_log'])
        system.mutator.create_table(leads_request(table_name='audit_log'))
        assert system.introspector.get_table_schema('audit_log').is_system_table

    def test_registry_table_is_hidden_and_protected(self, system, leads):
        assert REGISTRY_TABLE not in system.introspector.list_table_names()
        with pytest.raises(ProtectedTable):
            system.mutator.drop_table(REGISTRY_TABLE)


class TestAlterTable:
    def test_add_column(self, system, leads):
        system.mutator.add_column(leads, ColumnSpec('phone', 'VARCHAR(32)', column_default='unknown'))

        column = system.introspector.get_table_schema(leads).get_column('phone')
        assert column is not None
        assert column.is_nullable

    def test_add_existing_column(self, system, leads):
        with pytest.raises(InvalidRequest):
            system.mutator.add_column(leads, ColumnSpec('email', 'TEXT'))

    def test_add_primary_key_column(self, system, leads):
        with pytest.raises(InvalidRequest):
            system.mutator.add_column(leads, ColumnSpec('code', 'TEXT', is_primary_key=True))

    def test_drop_column(self, system, leads):
        system.mutator.drop_column(leads, 'email')
        assert not system.introspector.get_table_schema(leads).has_column('email')

    def test_drop_unknown_column(self, system, leads):
        with pytest.raises(UnknownColumn):
            system.mutator.drop_column(leads, 'phone')

    def test_drop_only_column(self, system):
        system.mutator.create_table(CreateTableRequest(
            table_name='single',
            columns=[ColumnSpec('id', 'SERIAL', is_nullable=False, is_primary_key=True)]
        ))
        with pytest.raises(InvalidRequest):
            system.mutator.drop_column('single', 'id')


class TestDropTable:
    def test_drop_table(self, system, leads):
        assert system.mutator.drop_table(leads)
        assert not system.introspector.table_exists(leads)
        with pytest.raises(NotFound):
            system.introspector.get_table_schema(leads)

    def test_drop_missing_table(self, system):
        with pytest.raises(NotFound):
            system.mutator.drop_table('ghosts')

    def test_dropped_name_can_be_reused(self, system, leads):
        system.mutator.drop_table(leads)
        assert system.mutator.create_table(leads_request())


def test_listing_includes_row_counts(system, seeded_leads):
    tables = system.introspector.get_all_tables()
    assert [table.table_name for table in tables] == ['leads']
    assert tables[0].row_count == 4


def test_listing_leaves_cached_schemas_alone(system, seeded_leads):
    cached = system.introspector.get_table_schema(seeded_leads)
    count_before = cached.row_count
    system.row_store.insert_row(seeded_leads, {'name': 'Hooli'})

    listed = system.introspector.get_all_tables()[0]

    assert listed.row_count == 5
    assert listed is not cached
    assert cached.row_count == count_before
    assert system.introspector.get_table_schema(seeded_leads) is cached


def test_listing_filters_by_name(system):
    system.mutator.create_table(leads_request())
    system.mutator.create_table(leads_request(table_name='lead_sources'))
    system.mutator.create_table(leads_request(table_name='invoices'))

    assert [t.table_name for t in system.introspector.get_all_tables('LEAD')] == ['lead_sources', 'leads']
    assert system.introspector.get_all_tables('nothing') == []
    assert len(system.introspector.get_all_tables('')) == 3
