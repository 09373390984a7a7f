import pytest

from conftest import leads_request
from src.cli.main_cli import list_tables, render_grid, run_grid


@pytest.fixture
def typed(monkeypatch):
    def feed(*commands):
        answers = iter(commands)
        monkeypatch.setattr('builtins.input', lambda prompt='': next(answers))
    return feed


def test_tables_filtered_by_name(system, capsys):
    system.mutator.create_table(leads_request())
    system.mutator.create_table(leads_request(table_name='invoices'))

    list_tables(system, 'LEA')
    out = capsys.readouterr().out
    assert "Tables matching 'LEA'" in out
    assert 'leads' in out
    assert 'invoices' not in out


def test_tables_without_matches(system, capsys):
    system.mutator.create_table(leads_request())
    list_tables(system, 'zzz')
    assert '(none)' in capsys.readouterr().out


def test_grid_search_command(system, seeded_leads, typed, capsys):
    typed('search globex', 'down', 'down', 'close')
    run_grid(system, seeded_leads)

    out = capsys.readouterr().out
    after_search = out.split('4 rows · Idle\n', 1)[1]
    assert "1 matching 'globex'" in after_search
    assert '[2]' in after_search
    assert 'Acme' not in after_search
    assert 'Closed leads' in out


def test_render_grid_marks_the_selection(system, seeded_leads):
    editor = system.open_grid(seeded_leads)
    editor.search('initech')
    editor.handle_key('ArrowDown')

    rendered = render_grid(editor)
    assert '[3]' in rendered
    assert 'Acme' not in rendered
    assert "1 matching 'initech'" in rendered
