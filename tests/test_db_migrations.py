import sqlite3

from wptchecks.db_migrations import current_revision, migrate_check_db
from wptchecks.storage import CheckStore


def test_migrate_check_db_runs_from_packaged_scripts(tmp_path, monkeypatch):
    db_path = tmp_path / "runtime" / "checks.sqlite3"
    monkeypatch.chdir(tmp_path)

    migrate_check_db(db_path, revision="head")

    with sqlite3.connect(str(db_path)) as conn:
        tables = {
            row[0]
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        revision = conn.execute("SELECT version_num FROM alembic_version").fetchone()[0]

    assert "check_suites" in tables
    assert "test_runs" in tables
    assert "feature_flags" in tables
    assert revision == "0002_add_feature_flags"
    assert current_revision(db_path) == revision


def test_store_works_on_migrated_db(tmp_path):
    db_path = tmp_path / "checks.sqlite3"
    migrate_check_db(db_path)

    store = CheckStore(str(db_path))
    store.initialize()
    result = store.ensure_suite("e" * 40, "web-platform-tests", "wpt", 23318, 577173)
    store.set_flag("checksAllUsers", True)

    assert result.created
    assert store.load_flags() == {"checksAllUsers": True}


def test_current_revision_of_fresh_db(tmp_path):
    assert current_revision(tmp_path / "empty.sqlite3") is None
