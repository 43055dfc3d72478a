import pytest

from tabletalk.core.errors import GrammarViolation
from tabletalk.core.grammar import GrammarError, GrammarValidator


@pytest.fixture
def validator():
    return GrammarValidator()


def test_valid_query(validator):
    sql = "SELECT `Country`, `Rank` FROM data WHERE `Country` = 'Nepal'"
    assert validator.validate(sql) == []


def test_validation_is_idempotent(validator):
    sql = "SELECT `Country` FROM data WHERE `Country` = 'Nepal'"
    assert validator.validate(sql) == validator.validate(sql)


def test_lowercase_keywords_are_accepted(validator):
    assert validator.validate("select * from data") == []


def test_missing_from(validator):
    assert validator.validate("SELECT * ") == [GrammarError.MISSING_FROM]
    assert validator.validate("SELECT * ") == ["Missing FROM clause"]


def test_unbalanced_backticks(validator):
    assert validator.validate("SELECT `Country FROM data") == [GrammarError.UNBALANCED_BACKTICKS]


def test_must_start_with_select(validator):
    assert validator.validate("DELETE FROM data") == [GrammarError.MUST_START_WITH_SELECT]


def test_dangerous_keyword_after_where(validator):
    sql = "SELECT * FROM data WHERE x = 1; DROP TABLE data"
    assert validator.validate(sql) == [GrammarError.DANGEROUS_OPERATION]


def test_all_failures_are_collected_in_order(validator):
    errors = validator.validate("update stuff where drop `")
    assert errors == [
        GrammarError.MISSING_FROM,
        GrammarError.UNBALANCED_BACKTICKS,
        GrammarError.MUST_START_WITH_SELECT,
        GrammarError.DANGEROUS_OPERATION,
    ]


def test_empty_text(validator):
    errors = validator.validate("")
    assert GrammarError.MISSING_FROM in errors
    assert GrammarError.MUST_START_WITH_SELECT in errors


def test_enforce_raises_with_details(validator):
    with pytest.raises(GrammarViolation) as exc:
        validator.enforce("SELECT * ")
    assert exc.value.details == ["Missing FROM clause"]
    assert exc.value.sql == "SELECT * "


def test_enforce_accepts_valid_query(validator):
    validator.enforce("SELECT * FROM data LIMIT 3")
