"""
Identifier and DDL fragment validation.

Everything interpolated into generated DDL or DML goes through one of these
functions first. They never touch the database and raise ``InvalidIdentifier``
on the first unsafe input, so callers can validate a whole request before a
single statement is issued.
"""

import re

from .errors import InvalidIdentifier


IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
DEFAULT_LITERAL_PATTERN = re.compile(r"^[A-Za-z0-9_ .'()-]+$")
DATA_TYPE_PATTERN = re.compile(
    r'^[A-Za-z][A-Za-z0-9_ ]*(\(\s*\d+\s*(,\s*\d+\s*)?\))?(\[\])?$'
)

# PostgreSQL truncates identifiers past 63 bytes
MAX_IDENTIFIER_LENGTH = 63

CHECK_TOKEN_PATTERN = re.compile(r"""
    (?P<space>\s+)
  | (?P<string>'(?:[^']|'')*')
  | (?P<number>\d+(?:\.\d+)?)
  | (?P<operator><>|!=|<=|>=|=|<|>)
  | (?P<paren>[()])
  | (?P<comma>,)
  | (?P<word>[A-Za-z_][A-Za-z0-9_]*)
""", re.VERBOSE)

CHECK_FORBIDDEN_WORDS = {
    'SELECT', 'INSERT', 'UPDATE', 'DELETE', 'DROP', 'ALTER', 'CREATE',
    'GRANT', 'REVOKE', 'TRUNCATE', 'EXECUTE', 'UNION', 'FROM', 'INTO',
}


def validate_identifier(name, context: str = "identifier") -> str:
    """Return ``name`` unchanged if it is a safe SQL identifier"""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise InvalidIdentifier(
            f"Invalid {context}: {name!r}. Must start with a letter or underscore "
            f"and contain only letters, numbers, and underscores."
        )
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifier(
            f"Invalid {context}: {name!r} is longer than {MAX_IDENTIFIER_LENGTH} characters."
        )
    return name


def is_valid_identifier(name) -> bool:
    try:
        validate_identifier(name)
        return True
    except InvalidIdentifier:
        return False


def validate_default_literal(value) -> str:
    """Validate a column default and render it as a SQL fragment.

    Values without parentheses become quoted string literals with embedded
    single quotes doubled. Values with parentheses pass through untouched as
    expressions such as ``now()``.
    """
    if isinstance(value, bool):
        value = 'true' if value else 'false'
    elif isinstance(value, (int, float)):
        value = str(value)

    if not isinstance(value, str) or not DEFAULT_LITERAL_PATTERN.match(value):
        raise InvalidIdentifier(f"Invalid default value: {value!r}")

    if '(' not in value and ')' not in value:
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    return value


def validate_check_clause(expression) -> str:
    """Allow only identifiers, literals, comparisons, parentheses and keywords like AND/OR/IN"""
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidIdentifier("Invalid CHECK clause. Clause is empty.")

    position = 0
    depth = 0
    while position < len(expression):
        match = CHECK_TOKEN_PATTERN.match(expression, position)
        if not match:
            raise InvalidIdentifier(
                f"Invalid CHECK clause. Unexpected character {expression[position]!r}; "
                f"only simple checks are allowed."
            )
        kind = match.lastgroup
        token = match.group(kind)

        if kind == 'word' and token.upper() in CHECK_FORBIDDEN_WORDS:
            raise InvalidIdentifier(f"Invalid CHECK clause. Keyword {token!r} is not allowed.")
        if kind == 'paren':
            depth += 1 if token == '(' else -1
            if depth < 0:
                raise InvalidIdentifier("Invalid CHECK clause. Unbalanced parentheses.")

        position = match.end()

    if depth != 0:
        raise InvalidIdentifier("Invalid CHECK clause. Unbalanced parentheses.")
    return expression.strip()


def validate_data_type(data_type) -> str:
    """Validate a column type such as ``VARCHAR(255)`` and return it upper-cased"""
    if not isinstance(data_type, str):
        raise InvalidIdentifier(f"Invalid data type: {data_type!r}")

    normalized = ' '.join(data_type.split())
    if not normalized or len(normalized) > 64 or not DATA_TYPE_PATTERN.match(normalized):
        raise InvalidIdentifier(f"Invalid data type: {data_type!r}")
    return normalized.upper()
