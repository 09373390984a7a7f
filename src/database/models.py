"""
Data models for table schema and grid representation
"""

from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional


CONSTRAINT_TYPES = ('PRIMARY KEY', 'FOREIGN KEY', 'UNIQUE', 'CHECK')

Row = Dict[str, Any]


@dataclass
class ColumnDefinition:
    """Introspected column of an existing table"""
    column_name: str
    data_type: str
    is_nullable: bool = True
    column_default: Optional[str] = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    foreign_table: Optional[str] = None
    foreign_column: Optional[str] = None
    max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConstraintDefinition:
    """Introspected table constraint"""
    constraint_name: str
    constraint_type: str
    column_names: List[str] = field(default_factory=list)
    foreign_table: Optional[str] = None
    foreign_columns: List[str] = field(default_factory=list)
    check_clause: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IndexDefinition:
    """Introspected index"""
    index_name: str
    column_names: List[str] = field(default_factory=list)
    is_unique: bool = False
    index_type: str = 'btree'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TableSchema:
    """Complete, fully rebuilt description of one table"""
    table_name: str
    columns: List[ColumnDefinition]
    constraints: List[ConstraintDefinition] = field(default_factory=list)
    indexes: List[IndexDefinition] = field(default_factory=list)
    row_count: int = 0
    is_system_table: bool = False

    @property
    def column_names(self) -> List[str]:
        return [col.column_name for col in self.columns]

    @property
    def primary_keys(self) -> List[str]:
        return [col.column_name for col in self.columns if col.is_primary_key]

    def get_column(self, name: str) -> Optional[ColumnDefinition]:
        for col in self.columns:
            if col.column_name == name:
                return col
        return None

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TableSchema':
        return cls(
            table_name=data['table_name'],
            columns=[ColumnDefinition(**col) for col in data.get('columns') or []],
            constraints=[ConstraintDefinition(**c) for c in data.get('constraints') or []],
            indexes=[IndexDefinition(**idx) for idx in data.get('indexes') or []],
            row_count=int(data.get('row_count') or 0),
            is_system_table=bool(data.get('is_system_table', False))
        )


@dataclass
class ColumnSpec:
    """Column blueprint submitted by an operator"""
    column_name: str
    data_type: str
    is_nullable: bool = True
    column_default: Optional[Any] = None
    is_primary_key: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ColumnSpec':
        return cls(
            column_name=data.get('column_name'),
            data_type=data.get('data_type'),
            is_nullable=bool(data.get('is_nullable', True)),
            column_default=data.get('column_default'),
            is_primary_key=bool(data.get('is_primary_key', False))
        )


@dataclass
class ConstraintSpec:
    """Constraint blueprint submitted by an operator"""
    constraint_type: str
    column_names: List[str] = field(default_factory=list)
    foreign_table: Optional[str] = None
    foreign_columns: List[str] = field(default_factory=list)
    check_clause: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConstraintSpec':
        return cls(
            constraint_type=(data.get('constraint_type') or '').upper(),
            column_names=list(data.get('column_names') or []),
            foreign_table=data.get('foreign_table'),
            foreign_columns=list(data.get('foreign_columns') or []),
            check_clause=data.get('check_clause')
        )


@dataclass
class CreateTableRequest:
    """User-submitted table blueprint, validated before it becomes DDL"""
    table_name: str
    columns: List[ColumnSpec]
    constraints: List[ConstraintSpec] = field(default_factory=list)
    is_system_table: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CreateTableRequest':
        return cls(
            table_name=data.get('table_name'),
            columns=[ColumnSpec.from_dict(col) for col in data.get('columns') or []],
            constraints=[ConstraintSpec.from_dict(c) for c in data.get('constraints') or []],
            is_system_table=bool(data.get('is_system_table', False))
        )


@dataclass
class RowPage:
    """One page of rows from a table"""
    rows: List[Row]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RowPage':
        return cls(
            rows=list(data.get('data') or []),
            total=int(data.get('total') or 0),
            page=int(data.get('page') or 1),
            page_size=int(data.get('limit') or 0),
            total_pages=int(data.get('totalPages') or 0)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'data': self.rows,
            'total': self.total,
            'page': self.page,
            'limit': self.page_size,
            'totalPages': self.total_pages
        }


@dataclass(frozen=True)
class GridCellRef:
    """Address of one grid cell; a lookup key into the current page"""
    row_id: Any
    column_name: str


@dataclass
class UndoFrame:
    """Snapshot of the page rows taken before a mutating action"""
    rows: List[Row]
    description: str = ''
