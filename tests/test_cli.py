from __future__ import annotations

import json

import pytest

from polyglottos.config import StorageConfig
from polyglottos.records import SettingsRecord
from polyglottos.storage import LocalStorageBackend, StorageFactory

from scripts import import_data as cli


@pytest.fixture(autouse=True)
def _keep_pytest_logging(monkeypatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda: None)


def _factory(tmp_path, name: str = "cli.db") -> StorageFactory:
    return StorageFactory(
        StorageConfig(
            type="local",
            fallback_type="local",
            database_url=f"sqlite:///{tmp_path / name}",
            session_path=tmp_path / "session.json",
        )
    )


def test_import_json_file(tmp_path, capsys) -> None:
    export = tmp_path / "export.json"
    export.write_text(
        json.dumps({"users": [{"id": "u1", "username": "ana", "email": "ana@example.com"}]}),
        encoding="utf-8",
    )

    exit_code = cli.main(["import", str(export), "--strategy", "overwrite"], factory=_factory(tmp_path))

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["imported"]["users"] == 1
    backend = LocalStorageBackend(f"sqlite:///{tmp_path / 'cli.db'}")
    try:
        assert backend.get_user("u1").username == "ana"
    finally:
        backend.close()


def test_csv_validate_only_does_not_write(tmp_path, capsys) -> None:
    export = tmp_path / "settings.csv"
    export.write_text("user_id,theme\nu1,dark\n", encoding="utf-8")

    exit_code = cli.main(
        ["import", str(export), "--record-type", "settings", "--validate-only"], factory=_factory(tmp_path)
    )

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["imported"]["settings"] == 0
    backend = LocalStorageBackend(f"sqlite:///{tmp_path / 'cli.db'}")
    try:
        assert backend.get_settings("u1") is None
    finally:
        backend.close()


def test_failed_import_exits_non_zero(tmp_path, capsys) -> None:
    export = tmp_path / "broken.json"
    export.write_text("{", encoding="utf-8")

    assert cli.main(["import", str(export)], factory=_factory(tmp_path)) == 1
    assert json.loads(capsys.readouterr().out)["success"] is False


def test_migrate_to_other_local_database(tmp_path, capsys) -> None:
    source = LocalStorageBackend(f"sqlite:///{tmp_path / 'cli.db'}")
    source.set_session({"userId": "u1"})
    source_settings = SettingsRecord(user_id="u1", theme="dark")
    source.set_settings(source_settings)
    source.close()

    target_url = f"sqlite:///{tmp_path / 'target.db'}"
    exit_code = cli.main(
        ["migrate", "--target-type", "local", "--database-url", target_url], factory=_factory(tmp_path)
    )

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["imported"]["settings"] == 1
    target = LocalStorageBackend(target_url)
    try:
        assert target.get_settings("u1") == source_settings
    finally:
        target.close()
