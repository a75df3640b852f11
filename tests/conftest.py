# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path

import pytest

from event_importer.db.upload_insert import InsertError
from event_importer.models.upload import UploadEntity


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "uploaded").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./uploaded
processed_directory: ./processed
lock_file: importer.lock
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: events
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_upload(temp_workdir: Path):
    def _write(name: str, *lines: str) -> Path:
        path = temp_workdir / "uploaded" / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path
    return _write


class FakeGateway:
    """In-memory UploadGateway: assigns sequential ids, optional failures."""

    def __init__(self, fail_actions: set[str] | None = None) -> None:
        self.inserted: list[UploadEntity] = []
        self.fail_actions = fail_actions or set()
        self._next_id = 1

    def insert(self, entity: UploadEntity) -> int:
        if entity.event_action in self.fail_actions:
            raise InsertError(f"duplicate key for eventAction={entity.event_action}")
        entity.id = self._next_id
        self._next_id += 1
        self.inserted.append(entity)
        return entity.id


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()
