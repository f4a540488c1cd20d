import pytest
from sqlalchemy import JSON, create_engine

from db_fixtures import build_destination_meta, source_meta


@pytest.fixture
def source_url(tmp_path):
    return f"sqlite:///{tmp_path / 'source.db'}"


@pytest.fixture
def dest_url(tmp_path):
    return f"sqlite:///{tmp_path / 'dest.db'}"


@pytest.fixture
def source_engine(source_url):
    engine = create_engine(source_url)
    source_meta.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def dest_engine(dest_url):
    engine = create_engine(dest_url)
    build_destination_meta().create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def json_dest_engine(tmp_path):
    """Destination whose payload columns are JSON rather than text."""
    engine = create_engine(f"sqlite:///{tmp_path / 'dest_json.db'}")
    build_destination_meta(JSON).create_all(engine)
    yield engine
    engine.dispose()
