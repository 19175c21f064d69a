"""Tests for the command-line interface."""

from __future__ import annotations

from pathlib import Path

import pytest

from checkpoint.cli import (
    main,
    migrate_create,
    migrate_down,
    migrate_init,
    migrate_status,
    migrate_up,
)


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An initialized SQLite project, with the cwd set to it."""
    for var in ("DB_TYPE", "DB_HOST", "DB_PORT", "DB_USER", "DB_PASSWORD", "DB_NAME", "MIGRATIONS_DIR"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    assert main(["init", "--type", "sqlite"]) == 0
    return tmp_path


def write_unit(project: Path, identifier: str, up_sql: str, down_sql: str) -> None:
    (project / "migrations" / f"{identifier}.py").write_text(
        f"async def up(adapter):\n"
        f"    await adapter.execute({up_sql!r})\n"
        f"\n"
        f"\n"
        f"async def down(adapter):\n"
        f"    await adapter.execute({down_sql!r})\n"
    )


class TestCLI:
    def test_no_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_init(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert (project / "checkpoint.ini").exists()
        assert (project / "migrations").is_dir()
        assert (project / "checkpoint.db").exists()

        capsys.readouterr()
        assert main(["init", "--type", "sqlite"]) == 0
        assert "initialized" in capsys.readouterr().out

        # Running init again keeps the config
        assert main(["init", "--type", "mysql"]) == 0
        assert "type = sqlite" in (project / "checkpoint.ini").read_text()

    def test_create(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["create", "add_users"]) == 0

        files = list((project / "migrations").glob("*_add_users.py"))
        assert len(files) == 1
        assert files[0].name in capsys.readouterr().out

    def test_create_invalid_name(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["create", "add-users"]) == 1
        assert "letters, numbers, and underscores" in capsys.readouterr().err

    def test_up_status_down(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        write_unit(project, "20250101_a", "CREATE TABLE a (id INTEGER)", "DROP TABLE a")
        write_unit(project, "20250102_b", "CREATE TABLE b (id INTEGER)", "DROP TABLE b")
        capsys.readouterr()

        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "[ ] 20250101_a" in out
        assert "[ ] 20250102_b" in out

        assert main(["up"]) == 0
        out = capsys.readouterr().out
        assert "Applied 2 migration(s)" in out
        assert out.index("20250101_a") < out.index("20250102_b")

        assert main(["up"]) == 0
        assert "No pending migrations." in capsys.readouterr().out

        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "[x] 20250101_a" in out
        assert "[x] 20250102_b" in out

        assert main(["down"]) == 0
        assert "Rolled back 20250102_b" in capsys.readouterr().out

        assert main(["down"]) == 0
        assert main(["down"]) == 0
        assert "No migrations to rollback." in capsys.readouterr().out

    def test_up_failure(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        write_unit(project, "20250101_a", "CREATE TABLE a (id INTEGER)", "DROP TABLE a")
        write_unit(project, "20250102_b", "CREATE TABLEX b", "DROP TABLE b")
        capsys.readouterr()

        assert main(["up"]) == 1

        captured = capsys.readouterr()
        assert "20250101_a" in captured.out
        assert "20250102_b" in captured.err

    def test_status_reports_missing_file(
        self, project: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        write_unit(project, "20250101_a", "CREATE TABLE a (id INTEGER)", "DROP TABLE a")
        assert main(["up"]) == 0
        (project / "migrations" / "20250101_a.py").unlink()
        capsys.readouterr()

        assert main(["status"]) == 0
        assert "[!] 20250101_a" in capsys.readouterr().out

        assert main(["down"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_missing_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.chdir(tmp_path)

        assert main(["status"]) == 1
        assert "checkpoint init" in capsys.readouterr().err

    def test_explicit_config(self, project: Path, tmp_path_factory, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path_factory.mktemp("elsewhere"))
        assert main(["-c", str(project / "checkpoint.ini"), "status"]) == 0

    def test_connection_failure(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (tmp_path / "checkpoint.ini").write_text(
            "[database]\ntype = postgres\nhost = 127.0.0.1\nport = 1\nuser = x\ndatabase = x\n"
        )
        (tmp_path / "migrations").mkdir()
        monkeypatch.chdir(tmp_path)
        for var in ("DB_TYPE", "DB_HOST", "DB_PORT"):
            monkeypatch.delenv(var, raising=False)

        assert main(["up"]) == 1
        assert "PostgreSQL connection failed" in capsys.readouterr().err


class TestStandaloneFunctions:
    async def test_programmatic_flow(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        for var in ("DB_TYPE", "DB_NAME", "MIGRATIONS_DIR"):
            monkeypatch.delenv(var, raising=False)
        ini_path, migrations_dir = migrate_init(tmp_path, "sqlite")
        assert ini_path.exists()

        path = migrate_create(tmp_path, "first")
        assert path.parent == migrations_dir

        assert await migrate_up(tmp_path) == [path.stem]

        status = await migrate_status(tmp_path)
        assert status == {"executed": [path.stem], "pending": [], "missing": []}

        assert await migrate_down(tmp_path) == path.stem
        assert await migrate_down(tmp_path) is None
