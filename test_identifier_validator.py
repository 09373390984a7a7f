import pytest

from src.utils.errors import InvalidIdentifier
from src.utils.identifier_validator import (
    is_valid_identifier, validate_check_clause, validate_data_type,
    validate_default_literal, validate_identifier
)


@pytest.mark.parametrize("name", ["leads", "_private", "Orders2024", "a" * 63])
def test_accepts_plain_identifiers(name):
    assert validate_identifier(name) == name


@pytest.mark.parametrize("name", [
    "1leads", "lead-s", "leads; DROP TABLE users", 'lea"ds', "", " leads", "a" * 64, None, 42,
])
def test_rejects_unsafe_identifiers(name):
    with pytest.raises(InvalidIdentifier):
        validate_identifier(name, "table name")
    assert not is_valid_identifier(name)


def test_error_message_names_the_context():
    with pytest.raises(InvalidIdentifier) as exc_info:
        validate_identifier("bad name", "column name")
    assert "column name" in exc_info.value.message
    assert exc_info.value.status_code == 400


def test_default_literal_is_quoted_and_escaped():
    assert validate_default_literal("pending") == "'pending'"
    assert validate_default_literal("O'Brien") == "'O''Brien'"
    assert validate_default_literal(0) == "'0'"
    assert validate_default_literal(True) == "'true'"


def test_default_expression_passes_through():
    assert validate_default_literal("now()") == "now()"


@pytest.mark.parametrize("value", ["1; DROP TABLE x", "a\"b", "x -- comment;", ""])
def test_default_literal_rejects_unsafe_values(value):
    with pytest.raises(InvalidIdentifier):
        validate_default_literal(value)


@pytest.mark.parametrize("clause", [
    "score >= 0",
    "(score >= 0 AND score <= 100) OR score IS NULL",
    "status IN ('new', 'won', 'lost')",
])
def test_check_clause_accepts_simple_expressions(clause):
    assert validate_check_clause(clause) == clause


@pytest.mark.parametrize("clause", [
    "",
    "score > 0; DROP TABLE leads",
    "id IN (SELECT id FROM users)",
    "(score > 0",
    "score > 0)",
])
def test_check_clause_rejects_everything_else(clause):
    with pytest.raises(InvalidIdentifier):
        validate_check_clause(clause)


def test_data_type_is_normalized():
    assert validate_data_type("varchar(255)") == "VARCHAR(255)"
    assert validate_data_type("numeric( 10, 2 )") == "NUMERIC( 10, 2 )"
    assert validate_data_type("double   precision") == "DOUBLE PRECISION"
    assert validate_data_type("text[]") == "TEXT[]"


@pytest.mark.parametrize("data_type", ["", "INT; DROP TABLE x", "VARCHAR(abc)", "1INT", None])
def test_data_type_rejects_garbage(data_type):
    with pytest.raises(InvalidIdentifier):
        validate_data_type(data_type)
