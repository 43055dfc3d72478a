import pytest

from tabletalk.core.errors import (
    DatasetError,
    GrammarViolation,
    SecurityViolation,
    SessionBusy,
    TableTalkError,
)
from tabletalk.session import QuerySession, export_results


@pytest.fixture
def session(rankings, generator):
    return QuerySession(rankings, generator, security_log=generator.security_log)


def test_session_starts_with_system_message(session):
    assert [m.type for m in session.messages] == ["system"]
    assert "Country, Rank" in session.messages[0].content
    assert [e.column for e in session.vector_store] == ["Country", "Rank"]


def test_ask_runs_the_pipeline(session, fake_llm):
    results = session.ask("What is the rank of Nepal?")

    assert results == [{"Country": "Nepal", "Rank": 5}]
    assert [m.type for m in session.messages] == ["system", "user", "assistant"]
    assert session.last_sql == "SELECT `Country`,`Rank` FROM data WHERE `Country` = 'Nepal'"
    assert session.messages[-1].metadata["ragUsed"] is True
    assert not session.in_flight
    assert '`Country`: "Nepal", `Rank`: 5' in fake_llm.prompts[0]


def test_flagged_question_exits_early(session, fake_llm):
    with pytest.raises(SecurityViolation):
        session.ask("'; DROP TABLE users; --")

    assert fake_llm.prompts == []
    assert len(session.security_log) == 1
    assert session.messages[-1].type == "error"
    assert session.messages[-1].content.startswith("Security Alert:")
    assert not session.in_flight


def test_busy_session_rejects_questions(session):
    session.in_flight = True
    with pytest.raises(SessionBusy):
        session.ask("What is the rank of Nepal?")


def test_empty_question(session):
    with pytest.raises(TableTalkError):
        session.ask("   ")


def test_run_sql(session):
    assert session.run_sql("SELECT `Country` FROM data ORDER BY `Rank`") == [
        {"Country": "India"},
        {"Country": "Nepal"},
    ]
    assert session.last_sql == "SELECT `Country` FROM data ORDER BY `Rank`"


def test_run_sql_validates_grammar(session):
    with pytest.raises(GrammarViolation):
        session.run_sql("DROP TABLE data")


def test_export_csv(tmp_path):
    path = export_results([{"Country": "Nepal", "Rank": 5}], tmp_path / "out.csv")
    assert path.read_text().splitlines() == ["Country,Rank", "Nepal,5"]


def test_export_rejects_unknown_format(tmp_path):
    with pytest.raises(DatasetError):
        export_results([{"a": 1}], tmp_path / "out.parquet")
