"""
Spreadsheet-style grid editor over one page of a table.

The editor is a small state machine (``Idle`` / ``Editing``) holding a page of
rows fetched from a row backend. Every mutation is a backend round trip;
on success the change is merged into the local page and a snapshot of the
page taken before the change goes onto the undo stack.

A row backend is anything with ``get_page``, ``insert_row``, ``update_row``
and ``delete_row`` shaped like ``RowStore``; ``DataLibraryClient`` is the HTTP
flavour of the same interface.
"""

from abc import ABC, abstractmethod
import copy
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Any, Optional, Callable, Tuple

from ..database.models import ColumnDefinition, GridCellRef, Row, TableSchema, UndoFrame
from ..utils.errors import DataLibraryError
from ..utils.logger import setup_logger


INTEGER_TYPES = {
    'INT', 'INTEGER', 'BIGINT', 'SMALLINT', 'TINYINT', 'MEDIUMINT',
    'SERIAL', 'BIGSERIAL', 'SMALLSERIAL', 'INT2', 'INT4', 'INT8',
}
EXACT_TYPES = {'NUMERIC', 'DECIMAL'}
FLOAT_TYPES = {'REAL', 'FLOAT', 'DOUBLE', 'DOUBLE PRECISION', 'FLOAT4', 'FLOAT8'}
DECIMAL_TYPES = EXACT_TYPES | FLOAT_TYPES
BOOLEAN_TYPES = {'BOOLEAN', 'BOOL'}

TRUE_STRINGS = {'true', 't', '1', 'yes', 'y'}
FALSE_STRINGS = {'false', 'f', '0', 'no', 'n'}


class GridMode(Enum):
    """Interaction states of the grid editor"""
    IDLE = "idle"
    EDITING = "editing"


@dataclass
class GridNotification:
    """Non-blocking message shown to the operator (a toast)"""
    level: str
    message: str
    timestamp: str = ''

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()


class Clipboard(ABC):
    """Bridge to the system clipboard"""

    @abstractmethod
    def read(self) -> str:
        pass

    @abstractmethod
    def write(self, text: str):
        pass


class InMemoryClipboard(Clipboard):
    """Process-local clipboard, used when no system clipboard is available"""

    def __init__(self, text: str = ''):
        self.text = text

    def read(self) -> str:
        return self.text

    def write(self, text: str):
        self.text = text


def format_cell_value(value: Any) -> str:
    """Text shown in a cell and copied to the clipboard"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def base_type(data_type: str) -> str:
    return (data_type or '').upper().split('(')[0].strip()


def row_matches(row: Row, term: str) -> bool:
    """Case-insensitive substring match against any non-null cell"""
    if not term:
        return True
    needle = term.lower()
    return any(needle in format_cell_value(value).lower() for value in row.values() if value is not None)


def coerce_cell_value(text: str, column: ColumnDefinition) -> Any:
    """Convert typed text to the value sent for ``column``; raises ValueError"""
    kind = base_type(column.data_type)
    text = '' if text is None else str(text)
    is_text_type = kind not in INTEGER_TYPES | DECIMAL_TYPES | BOOLEAN_TYPES

    if text.strip() == '' and not is_text_type:
        if column.is_nullable:
            return None
        raise ValueError(f"Column '{column.column_name}' requires a value")

    if kind in INTEGER_TYPES:
        try:
            return int(text.strip())
        except ValueError:
            raise ValueError(f"'{text}' is not a whole number")

    if kind in EXACT_TYPES:
        try:
            value = Decimal(text.strip())
        except InvalidOperation:
            raise ValueError(f"'{text}' is not a number")
        if not value.is_finite():
            raise ValueError(f"'{text}' is not a number")
        return value

    if kind in FLOAT_TYPES:
        try:
            return float(text.strip())
        except ValueError:
            raise ValueError(f"'{text}' is not a number")

    if kind in BOOLEAN_TYPES:
        lowered = text.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        raise ValueError(f"'{text}' is not true or false")

    return text


class GridEditor:
    """Keyboard-driven editor over one page of a table"""

    NAVIGATION_KEYS = {
        'ArrowUp': (-1, 0),
        'ArrowDown': (1, 0),
        'ArrowLeft': (0, -1),
        'ArrowRight': (0, 1),
    }

    def __init__(self, backend, schema: TableSchema, clipboard: Optional[Clipboard] = None,
                 notifier: Optional[Callable[[GridNotification], None]] = None,
                 page_size: int = 50, write_through_undo: bool = False):
        self.backend = backend
        self.schema = schema
        self.table_name = schema.table_name
        self.columns: List[ColumnDefinition] = list(schema.columns)
        self.read_only = schema.is_system_table
        self.clipboard = clipboard or InMemoryClipboard()
        self.notifier = notifier
        self.page_size = page_size
        self.write_through_undo = write_through_undo

        # page state
        self.rows: List[Row] = []
        self.page = 1
        self.total = 0
        self.total_pages = 0
        self.search_term = ''

        # interaction state
        self.mode = GridMode.IDLE
        self.selected: Optional[Tuple[int, int]] = None
        self.editing_cell: Optional[GridCellRef] = None
        self.draft_value: Optional[str] = None
        self._initial_draft: Optional[str] = None
        self._draft_selected = False
        self._original_value: Any = None

        # history and clipboard
        self.undo_stack: List[UndoFrame] = []
        self.redo_stack: List[UndoFrame] = []
        self.clipboard_buffer: Optional[str] = None

        self.commit_pending = False
        self.closed = False
        self.notifications: List[GridNotification] = []
        self.logger = setup_logger("GridEditor")

    # ------------------------------------------------------------------
    # page loading

    def load_page(self, page: int = 1) -> bool:
        """Fetch a page from the backend; history belongs to a page and is reset"""
        try:
            result = self.backend.get_page(self.table_name, page, self.page_size)
        except DataLibraryError as e:
            self.notify('error', f"Failed to fetch table data: {e.message}")
            return False

        self.rows = result.rows
        self.page = result.page
        self.total = result.total
        self.total_pages = result.total_pages
        self.undo_stack.clear()
        self.redo_stack.clear()
        self._leave_edit_mode()
        self._clamp_selection()
        return True

    def refresh(self) -> bool:
        return self.load_page(self.page)

    def next_page(self) -> bool:
        if self.page >= self.total_pages:
            return False
        return self.load_page(self.page + 1)

    def previous_page(self) -> bool:
        if self.page <= 1:
            return False
        return self.load_page(self.page - 1)

    # ------------------------------------------------------------------
    # search

    def search(self, term: str) -> bool:
        """Show only rows of the page with a cell containing ``term``.

        The filter is applied to the fetched page and stays in place across
        page loads. The selected cell is kept when its row is still visible.
        """
        if self.mode != GridMode.IDLE:
            return False
        ref = self.selected_cell
        self.search_term = term or ''
        self.selected = self.find_cell(ref) if ref else None
        return True

    def clear_search(self) -> bool:
        return self.search('')

    # ------------------------------------------------------------------
    # state accessors

    @property
    def state(self) -> str:
        return 'Editing' if self.mode == GridMode.EDITING else 'Idle'

    @property
    def visible_rows(self) -> List[Row]:
        """Rows of the page that pass the search filter; selection indexes into these"""
        if not self.search_term:
            return self.rows
        return [row for row in self.rows if row_matches(row, self.search_term)]

    @property
    def column_names(self) -> List[str]:
        return [col.column_name for col in self.columns]

    @property
    def selected_cell(self) -> Optional[GridCellRef]:
        if self.selected is None:
            return None
        row_index, col_index = self.selected
        return GridCellRef(
            row_id=self.visible_rows[row_index].get('id'),
            column_name=self.columns[col_index].column_name
        )

    def cell_value(self, row_index: int, column_name: str) -> Any:
        return self.visible_rows[row_index].get(column_name)

    def find_cell(self, ref: GridCellRef) -> Optional[Tuple[int, int]]:
        """Resolve a cell reference against the visible rows"""
        for row_index, row in enumerate(self.visible_rows):
            if row.get('id') == ref.row_id and ref.column_name in self.column_names:
                return row_index, self.column_names.index(ref.column_name)
        return None

    def to_grid(self) -> List[List[str]]:
        """Visible rows as display strings"""
        return [[format_cell_value(row.get(name)) for name in self.column_names] for row in self.visible_rows]

    # ------------------------------------------------------------------
    # keyboard entry point

    def handle_key(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        """Dispatch one key press; returns True when the key was handled"""
        if self.closed or self.commit_pending:
            return False

        if ctrl:
            shortcuts = {
                'c': self.copy_selection,
                'v': self.paste,
                'z': self.undo,
                'y': self.redo,
            }
            action = shortcuts.get(key.lower())
            return action() if action else False

        if self.mode == GridMode.EDITING:
            if key == 'Enter':
                return self.commit_edit()
            if key == 'Tab':
                if self.commit_edit():
                    self.move(0, -1 if shift else 1)
                    return True
                return False
            if key == 'Escape':
                return self.cancel_edit()
            return False

        if key in self.NAVIGATION_KEYS:
            return self.move(*self.NAVIGATION_KEYS[key])
        if key == 'Tab':
            return self.move(0, -1 if shift else 1)
        if key in ('Enter', 'F2'):
            return self.begin_edit()
        if key == 'Delete':
            return self.clear_cell()
        if key == 'Escape':
            return self.clear_selection()
        return False

    # ------------------------------------------------------------------
    # selection and navigation

    def select(self, row_index: int, column) -> bool:
        """Select a cell by row index and column name or index"""
        if self.mode != GridMode.IDLE or not self.visible_rows:
            return False
        col_index = self.column_names.index(column) if isinstance(column, str) else column
        self.selected = self._clamp(row_index, col_index)
        return True

    def move(self, row_delta: int, col_delta: int) -> bool:
        """Move the selection, clamped to the visible rows; never wraps"""
        if self.mode != GridMode.IDLE or not self.visible_rows or not self.columns:
            return False
        if self.selected is None:
            self.selected = (0, 0)
            return True
        row_index, col_index = self.selected
        self.selected = self._clamp(row_index + row_delta, col_index + col_delta)
        return True

    def clear_selection(self) -> bool:
        self.selected = None
        return True

    def _clamp(self, row_index: int, col_index: int) -> Tuple[int, int]:
        row_index = max(0, min(row_index, len(self.visible_rows) - 1))
        col_index = max(0, min(col_index, len(self.columns) - 1))
        return row_index, col_index

    def _clamp_selection(self):
        if self.selected is None:
            return
        if not self.visible_rows or not self.columns:
            self.selected = None
        else:
            self.selected = self._clamp(*self.selected)

    # ------------------------------------------------------------------
    # editing

    def begin_edit(self) -> bool:
        """Enter edit mode on the selected cell, seeded with its persisted value"""
        if self.mode == GridMode.EDITING or self.selected is None:
            return False
        if not self._can_write_selected():
            return False

        row_index, col_index = self.selected
        column = self.columns[col_index]
        self._original_value = self.visible_rows[row_index].get(column.column_name)
        self._initial_draft = format_cell_value(self._original_value)
        self.draft_value = self._initial_draft
        # the seeded text starts out selected; the first keystroke replaces it
        self._draft_selected = True
        self.editing_cell = self.selected_cell
        self.mode = GridMode.EDITING
        return True

    def set_draft(self, text: str) -> bool:
        """Replace the draft text of the cell being edited"""
        if self.mode != GridMode.EDITING:
            return False
        self.draft_value = '' if text is None else str(text)
        self._draft_selected = False
        return True

    def type_text(self, text: str) -> bool:
        """Type characters into the draft"""
        if self.mode != GridMode.EDITING:
            return False
        if self._draft_selected:
            return self.set_draft(text)
        self.draft_value = (self.draft_value or '') + str(text)
        return True

    def backspace(self) -> bool:
        if self.mode != GridMode.EDITING or not self.draft_value:
            return False
        if self._draft_selected:
            return self.set_draft('')
        self.draft_value = self.draft_value[:-1]
        return True

    def cancel_edit(self) -> bool:
        """Discard the draft; selection stays where it was"""
        if self.mode != GridMode.EDITING:
            return False
        self._leave_edit_mode()
        return True

    def commit_edit(self) -> bool:
        """Commit the draft. Unchanged values are a no-op without a backend call."""
        if self.mode != GridMode.EDITING:
            return False

        if self.draft_value == self._initial_draft:
            self._leave_edit_mode()
            return True

        row_index, col_index = self.selected
        column = self.columns[col_index]
        try:
            value = coerce_cell_value(self.draft_value, column)
        except ValueError as e:
            self.notify('error', str(e))
            return False

        if value == self._original_value:
            self._leave_edit_mode()
            return True

        if not self._commit_cell(row_index, column.column_name, value, f"Edit {column.column_name}"):
            return False

        self._leave_edit_mode()
        return True

    def clear_cell(self) -> bool:
        """Delete key: set a nullable cell to NULL as one undoable action"""
        if self.mode != GridMode.IDLE or self.selected is None:
            return False
        if not self._can_write_selected():
            return False

        row_index, col_index = self.selected
        column = self.columns[col_index]
        if not column.is_nullable:
            self.notify('error', f"Column '{column.column_name}' cannot be empty")
            return False
        if self.visible_rows[row_index].get(column.column_name) is None:
            return True

        return self._commit_cell(row_index, column.column_name, None, f"Clear {column.column_name}")

    def _leave_edit_mode(self):
        self.mode = GridMode.IDLE
        self.editing_cell = None
        self.draft_value = None
        self._initial_draft = None
        self._original_value = None

    def _can_write_selected(self) -> bool:
        if self.read_only:
            self.notify('error', f"'{self.table_name}' is a system table and is read-only")
            return False
        row_index, col_index = self.selected
        column = self.columns[col_index]
        if column.is_primary_key:
            self.notify('error', f"Primary key column '{column.column_name}' cannot be edited")
            return False
        if self.visible_rows[row_index].get('id') is None:
            self.notify('error', "Rows without an 'id' cannot be edited")
            return False
        return True

    def _commit_cell(self, row_index: int, column_name: str, value: Any, description: str) -> bool:
        """Send one cell to the backend; merge and record history on success only"""
        row = self.visible_rows[row_index]
        snapshot = UndoFrame(rows=copy.deepcopy(self.rows), description=description)

        self.commit_pending = True
        try:
            self.backend.update_row(self.table_name, row['id'], {column_name: value})
        except DataLibraryError as e:
            self.notify('error', f"Failed to update row: {e.message}")
            return False
        finally:
            self.commit_pending = False

        row[column_name] = value
        self.undo_stack.append(snapshot)
        self.redo_stack.clear()
        self.logger.debug(f"{description} on row {row['id']} committed")
        self._clamp_selection()
        return True

    # ------------------------------------------------------------------
    # clipboard

    def copy_selection(self) -> bool:
        """Copy the selected cell (or the draft while editing)"""
        if self.mode == GridMode.EDITING:
            text = self.draft_value or ''
        elif self.selected is None:
            return False
        else:
            row_index, col_index = self.selected
            text = format_cell_value(self.visible_rows[row_index].get(self.columns[col_index].column_name))

        self.clipboard_buffer = text
        self.clipboard.write(text)
        return True

    def paste(self) -> bool:
        """Paste into the selected cell through the normal commit path"""
        text = self.clipboard.read()
        if text is None:
            text = self.clipboard_buffer or ''

        if self.mode == GridMode.EDITING:
            return self.set_draft(text)

        if self.selected is None or not self._can_write_selected():
            return False

        row_index, col_index = self.selected
        column = self.columns[col_index]
        try:
            value = coerce_cell_value(text, column)
        except ValueError as e:
            self.notify('error', str(e))
            return False

        if value == self.visible_rows[row_index].get(column.column_name):
            return True
        return self._commit_cell(row_index, column.column_name, value, f"Paste into {column.column_name}")

    # ------------------------------------------------------------------
    # history

    def undo(self) -> bool:
        """Restore the page as it was before the last committed action"""
        if self.mode != GridMode.IDLE or not self.undo_stack:
            return False

        frame = self.undo_stack[-1]
        if self.write_through_undo and not self._write_through(frame.rows):
            return False

        self.undo_stack.pop()
        self.redo_stack.append(UndoFrame(rows=copy.deepcopy(self.rows), description=frame.description))
        self.rows = frame.rows
        self._clamp_selection()
        return True

    def redo(self) -> bool:
        """Re-apply the last undone action"""
        if self.mode != GridMode.IDLE or not self.redo_stack:
            return False

        frame = self.redo_stack[-1]
        if self.write_through_undo and not self._write_through(frame.rows):
            return False

        self.redo_stack.pop()
        self.undo_stack.append(UndoFrame(rows=copy.deepcopy(self.rows), description=frame.description))
        self.rows = frame.rows
        self._clamp_selection()
        return True

    def _write_through(self, target_rows: List[Row]) -> bool:
        """Send the cells that differ between the live page and ``target_rows``"""
        current = {row.get('id'): row for row in self.rows}
        changes: List[Tuple[Any, Dict[str, Any]]] = []
        for target in target_rows:
            live = current.get(target.get('id'))
            if live is None:
                continue
            diff = {key: value for key, value in target.items() if live.get(key) != value}
            if diff:
                changes.append((target.get('id'), diff))

        self.commit_pending = True
        try:
            for row_id, diff in changes:
                self.backend.update_row(self.table_name, row_id, diff)
        except DataLibraryError as e:
            self.notify('error', f"Failed to sync history change: {e.message}")
            return False
        finally:
            self.commit_pending = False
        return True

    # ------------------------------------------------------------------
    # whole rows

    def add_row(self, data: Dict[str, Any]) -> bool:
        """Insert a row, then re-fetch the page to show persisted truth"""
        if self.read_only:
            self.notify('error', f"'{self.table_name}' is a system table and is read-only")
            return False
        try:
            self.backend.insert_row(self.table_name, data)
        except DataLibraryError as e:
            self.notify('error', f"Failed to add row: {e.message}")
            return False

        self.notify('success', "Row added successfully")
        return self.refresh()

    def delete_row(self, row_id: Any = None) -> bool:
        """Delete a row (the selected one by default), then re-fetch the page"""
        if self.read_only:
            self.notify('error', f"'{self.table_name}' is a system table and is read-only")
            return False
        if row_id is None:
            if self.selected is None:
                return False
            row_id = self.visible_rows[self.selected[0]].get('id')

        try:
            deleted = self.backend.delete_row(self.table_name, row_id)
        except DataLibraryError as e:
            self.notify('error', f"Failed to delete row: {e.message}")
            return False

        if deleted:
            self.notify('success', "Row deleted successfully")
        else:
            self.notify('warning', f"Row {row_id} was already deleted")
        return self.refresh()

    # ------------------------------------------------------------------
    # lifecycle and notifications

    def close(self) -> bool:
        """Close the editor; refused while a commit is in flight"""
        if self.commit_pending:
            self.notify('warning', "Wait for the pending change to finish before closing")
            return False
        self._leave_edit_mode()
        self.closed = True
        return True

    def notify(self, level: str, message: str):
        notification = GridNotification(level=level, message=message)
        self.notifications.append(notification)
        log = self.logger.error if level == 'error' else self.logger.info
        log(f"[{self.table_name}] {message}")
        if self.notifier:
            self.notifier(notification)
