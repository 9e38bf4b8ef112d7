import pytest

from tycoon.cli import build_parser, run


def _db(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def test_parser_knows_every_job():
    parser = build_parser()
    for command in ("calculate-idle-income", "check-bankruptcy", "increment-day", "tick", "serve", "init-db"):
        assert parser.parse_args([command]).command == command
    with pytest.raises(SystemExit):
        parser.parse_args(["teleport"])


def test_init_db_then_single_job(tmp_path, capsys):
    assert run(["--database-url", _db(tmp_path), "init-db"]) == 0
    assert run(["--database-url", _db(tmp_path), "--seed", "3", "spawn-starter-projects"]) == 0
    out = capsys.readouterr().out
    assert "init-db: tables ready" in out
    assert "spawn-starter-projects: processed=10" in out


def test_tick_runs_whole_table(tmp_path, capsys):
    assert run(["--database-url", _db(tmp_path), "--seed", "3", "--log-level", "WARNING", "tick"]) == 0
    out = capsys.readouterr().out
    assert "tick #1:" in out
    assert "failed=0" in out
    assert "check-deadlines: processed=0" in out
