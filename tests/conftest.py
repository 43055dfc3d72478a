import pytest

from tabletalk.config import TableTalkConfig
from tabletalk.core.dataset import Column, ColumnType, Dataset, Schema
from tabletalk.core.security import SecurityLog
from tabletalk.inference.generator import SQLGenerator
from tabletalk.webapp.app import create_app


class FakeLLM:
    """Completion engine double that records prompts."""

    model = "fake-model"

    def __init__(self, completion="SELECT * FROM data", error=None):
        self.completion = completion
        self.error = error
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.completion


@pytest.fixture
def rankings_schema():
    return Schema([Column("Country", ColumnType.TEXT), Column("Rank", ColumnType.NUMBER)])


@pytest.fixture
def rankings(rankings_schema):
    rows = [
        {"Country": "Nepal", "Rank": 5},
        {"Country": "India", "Rank": 1},
    ]
    return Dataset(rankings_schema, rows, name="data")


@pytest.fixture
def scores():
    schema = Schema([
        Column("Name", ColumnType.TEXT),
        Column("Team", ColumnType.TEXT),
        Column("Score", ColumnType.NUMBER),
    ])
    rows = [
        {"Name": "Asha", "Team": "red", "Score": 30},
        {"Name": "Bikram", "Team": "blue", "Score": 10},
        {"Name": "Chen", "Team": "red", "Score": 20},
        {"Name": "Dawa", "Team": "blue", "Score": 10},
        {"Name": "Elif", "Team": "green", "Score": 40},
    ]
    return Dataset(schema, rows, name="scores")


@pytest.fixture
def sales():
    schema = Schema([Column("Region", ColumnType.TEXT), Column("Sales", ColumnType.NUMBER)])
    rows = [
        {"Region": "north", "Sales": 100},
        {"Region": "south", "Sales": 200},
        {"Region": "east", "Sales": "abc"},
    ]
    return Dataset(schema, rows, name="data")


@pytest.fixture
def config():
    return TableTalkConfig()


@pytest.fixture
def fake_llm():
    return FakeLLM("SELECT `Country`,`Rank` FROM data WHERE `Country` = 'Nepal'")


@pytest.fixture
def generator(fake_llm, config):
    return SQLGenerator(fake_llm, config=config, security_log=SecurityLog())


@pytest.fixture
def app(fake_llm, config):
    app = create_app(config, llm=fake_llm)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def rankings_csv(tmp_path):
    path = tmp_path / "rankings.csv"
    path.write_text("Country,Rank\nNepal,5\nIndia,1\nChina,2\n", encoding="utf-8")
    return path


@pytest.fixture
def make_llm():
    return FakeLLM
