"""
Main CLI interface for the data library
"""

from typing import List, Optional

from ..services.data_library import DataLibrarySystem
from ..services.grid_editor import GridEditor, GridNotification
from ..utils.errors import DataLibraryError


GRID_KEYS = {
    'up': 'ArrowUp',
    'down': 'ArrowDown',
    'left': 'ArrowLeft',
    'right': 'ArrowRight',
    'tab': 'Tab',
    'enter': 'Enter',
    'f2': 'F2',
    'del': 'Delete',
    'esc': 'Escape',
}

GRID_SHORTCUTS = {
    'copy': 'c',
    'paste': 'v',
    'undo': 'z',
    'redo': 'y',
}

NOTIFICATION_ICONS = {
    'success': '✅',
    'warning': '⚠️',
    'error': '❌',
    'info': 'ℹ️',
}


def print_notification(notification: GridNotification):
    icon = NOTIFICATION_ICONS.get(notification.level, 'ℹ️')
    print(f"{icon} {notification.message}")


def render_grid(editor: GridEditor, max_width: int = 18) -> str:
    """Render the current page as a text table, marking the selected cell"""
    headers = editor.column_names
    cells = editor.to_grid()

    def clip(text: str) -> str:
        return text if len(text) <= max_width else text[:max_width - 1] + '…'

    table: List[List[str]] = [[clip(h) for h in headers]]
    for row_index, row in enumerate(cells):
        rendered = []
        for col_index, value in enumerate(row):
            if editor.selected == (row_index, col_index):
                value = editor.draft_value if editor.draft_value is not None else value
                value = f"[{value}]"
            rendered.append(clip(value))
        table.append(rendered)

    widths = [max(len(line[i]) for line in table) for i in range(len(headers))]
    lines = []
    for position, line in enumerate(table):
        lines.append(' | '.join(value.ljust(widths[i]) for i, value in enumerate(line)))
        if position == 0:
            lines.append('-+-'.join('-' * width for width in widths))

    footer = f"Page {editor.page}/{max(editor.total_pages, 1)} · {editor.total} rows · {editor.state}"
    if editor.search_term:
        footer += f" · {len(cells)} matching '{editor.search_term}'"
    lines.append(footer)
    return '\n'.join(lines)


def run_grid(system: DataLibrarySystem, table_name: str):
    """Grid mode: drive the editor with key names until 'close'"""
    editor = system.open_grid(table_name, notifier=print_notification)
    read_only = " (system table, read-only)" if editor.read_only else ""
    print(f"\n📝 Editing {table_name}{read_only}")
    print("Keys: up down left right tab shift+tab enter f2 del esc | copy paste undo redo")
    print("      type <text> | search <text> | clear | page <n> | next | prev | refresh | close")
    print(render_grid(editor))

    while True:
        try:
            command = input(f"\n[{table_name}:{editor.state}] ").strip()
        except (KeyboardInterrupt, EOFError):
            command = 'close'

        if not command:
            continue

        name, _, argument = command.partition(' ')
        name = name.lower()

        if name == 'close':
            if editor.close():
                print(f"👋 Closed {table_name}")
                return
            continue
        elif name == 'type':
            if not editor.type_text(argument):
                print("Press enter or f2 on a cell first")
        elif name == 'search':
            if not editor.search(argument):
                print("Finish editing the cell first")
        elif name == 'clear':
            editor.clear_search()
        elif name == 'shift+tab':
            editor.handle_key('Tab', shift=True)
        elif name in GRID_KEYS:
            editor.handle_key(GRID_KEYS[name])
        elif name in GRID_SHORTCUTS:
            editor.handle_key(GRID_SHORTCUTS[name], ctrl=True)
        elif name == 'page':
            if not argument.isdigit():
                print("Usage: page <n>")
                continue
            editor.load_page(int(argument))
        elif name == 'next':
            editor.next_page()
        elif name == 'prev':
            editor.previous_page()
        elif name == 'refresh':
            editor.refresh()
        else:
            print(f"Unknown key: {name}")
            continue

        print(render_grid(editor))


def list_tables(system: DataLibrarySystem, search: Optional[str] = None):
    tables = system.introspector.get_all_tables(search)
    if search:
        print(f"\n📋 Tables matching '{search}':")
    else:
        print("\n📋 Available tables:")
    if not tables:
        print("  (none)")
    for i, table in enumerate(tables, 1):
        marker = " 🔒" if table.is_system_table else ""
        print(f"  {i}. {table.table_name} ({table.row_count} rows, {len(table.columns)} columns){marker}")


def show_schema(system: DataLibrarySystem, table_name: str):
    schema = system.introspector.get_table_schema(table_name)
    print(f"\n📋 Schema for {table_name}{' (system table)' if schema.is_system_table else ''}:")
    print(f"Rows: {schema.row_count}")
    print("\nColumns:")
    for col in schema.columns:
        flags = ' PK' if col.is_primary_key else ''
        default = f" DEFAULT {col.column_default}" if col.column_default is not None else ''
        print(f"  - {col.column_name}: {col.data_type} {'NULL' if col.is_nullable else 'NOT NULL'}{default}{flags}")
    if schema.constraints:
        print("\nConstraints:")
        for constraint in schema.constraints:
            target = f" -> {constraint.foreign_table}({', '.join(constraint.foreign_columns)})" \
                if constraint.foreign_table else ''
            clause = f" {constraint.check_clause}" if constraint.check_clause else ''
            print(f"  - {constraint.constraint_name}: {constraint.constraint_type} "
                  f"({', '.join(constraint.column_names)}){target}{clause}")


def export_table(system: DataLibrarySystem, table_name: str, path: Optional[str]):
    content = system.row_store.export_csv(table_name)
    if path is None:
        print(content if content else "(empty table)")
        return
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)
    print(f"💾 Exported {table_name} to {path}")


def main():
    """Interactive data library shell"""
    print("""
    ╔══════════════════════════════════════════════════════════╗
    ║           📚 Data Library: Tables & Grid Editor 📚        ║
    ╚══════════════════════════════════════════════════════════╝
    """)

    system = DataLibrarySystem()

    # Database selection
    print("\n📊 Available Database Types:")
    print("1. PostgreSQL")
    print("2. MySQL")
    print("3. SQLite")

    db_choice = input("\nSelect database type (1-3): ").strip()

    db_type_map = {
        '1': 'postgresql',
        '2': 'mysql',
        '3': 'sqlite'
    }

    selected_db = db_type_map.get(db_choice, system.default_db_type)

    # Connect to database
    print(f"\n🔌 Connecting to {selected_db}...")
    if not system.connect_database(selected_db):
        print("Failed to connect to database. Please check your configuration.")
        return

    tables = system.introspector.get_all_tables()
    print(f"\n✅ Connected to {selected_db} database")
    print(f"📊 Found {len(tables)} tables")

    print("\n" + "="*60)
    print("💡 Commands:")
    print("  - 'TABLES [term]' - List tables, optionally filtered by name")
    print("  - 'SCHEMA <table>' - Show table schema")
    print("  - 'OPEN <table>' - Edit table rows in the grid")
    print("  - 'EXPORT <table> [file]' - Export table as CSV")
    print("  - 'DROP <table>' - Drop a table")
    print("  - 'RELATIONSHIPS' - Show foreign key relationships")
    print("  - 'EXIT' - Exit the system")
    print("="*60)

    while True:
        try:
            user_input = input("\n📚 data-library> ").strip()

            if not user_input:
                continue

            parts = user_input.split()
            command = parts[0].upper()

            if command == 'EXIT':
                print("\n👋 Goodbye!")
                break

            elif command == 'TABLES':
                list_tables(system, parts[1] if len(parts) > 1 else None)

            elif command == 'SCHEMA':
                if len(parts) > 1:
                    show_schema(system, parts[1])
                else:
                    print("Usage: SCHEMA <table_name>")

            elif command == 'OPEN':
                if len(parts) > 1:
                    run_grid(system, parts[1])
                else:
                    print("Usage: OPEN <table_name>")

            elif command == 'EXPORT':
                if len(parts) > 1:
                    export_table(system, parts[1], parts[2] if len(parts) > 2 else None)
                else:
                    print("Usage: EXPORT <table_name> [file]")

            elif command == 'DROP':
                if len(parts) > 1:
                    confirm = input(f"Drop table '{parts[1]}'? Type the table name to confirm: ").strip()
                    if confirm == parts[1]:
                        system.mutator.drop_table(parts[1])
                        print(f"🗑️ Dropped {parts[1]}")
                    else:
                        print("Cancelled")
                else:
                    print("Usage: DROP <table_name>")

            elif command == 'RELATIONSHIPS':
                analysis = system.introspector.get_relationships()
                print("\n🔗 Table Relationships:")
                for rel in analysis['relationships'][:20]:
                    print(f"  {rel['from_table']}({', '.join(rel['from_columns'])}) -> {rel['to_table']}({', '.join(rel['to_columns'])})")
                if analysis['circular_references']:
                    print(f"⚠️ Circular references: {analysis['circular_references']}")

            else:
                print(f"Unknown command: {parts[0]}")

        except KeyboardInterrupt:
            print("\n\n👋 Session interrupted. Goodbye!")
            break
        except DataLibraryError as e:
            print(f"\n❌ Error: {e.message}")
        except Exception as e:
            print(f"\n❌ Error: {str(e)}")
            print("Please try again or type 'EXIT' to quit")

    system.close()


if __name__ == "__main__":
    main()
