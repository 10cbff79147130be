from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import Dict, List, Sequence

from sanic.log import logger

from wptchecks.product import ProductSpec
from wptchecks.storage.types import CheckSuiteRow, TestRunRow


SCHEMA = """
CREATE TABLE IF NOT EXISTS check_suites (
    sha TEXT NOT NULL,
    owner TEXT NOT NULL,
    repo TEXT NOT NULL,
    app_id INTEGER NOT NULL,
    installation_id INTEGER NOT NULL,
    pr_numbers_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (sha, owner, repo, app_id)
);

CREATE TABLE IF NOT EXISTS test_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    browser_name TEXT NOT NULL,
    browser_version TEXT NULL,
    os_name TEXT NULL,
    os_version TEXT NULL,
    full_revision_hash TEXT NOT NULL,
    labels_json TEXT NOT NULL,
    results_url TEXT NULL,
    time_start TEXT NULL
);

CREATE TABLE IF NOT EXISTS feature_flags (
    name TEXT PRIMARY KEY,
    enabled INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_test_runs_revision_browser
    ON test_runs (full_revision_hash, browser_name);
"""


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass(frozen=True)
class EnsureResult:
    suite: CheckSuiteRow
    created: bool


class CheckStore:
    def __init__(self, db_path: str):
        self.db_path = Path(db_path)

    def initialize(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    def ensure_suite(
        self,
        sha: str,
        owner: str,
        repo: str,
        app_id: int,
        installation_id: int,
        pr_numbers: Sequence[int] = (),
    ) -> EnsureResult:
        """Record a check suite unless one exists for (sha, owner, repo, app)."""
        now = utcnow_iso()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO check_suites (
                    sha,
                    owner,
                    repo,
                    app_id,
                    installation_id,
                    pr_numbers_json,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(sha, owner, repo, app_id) DO NOTHING
                """,
                (
                    sha,
                    owner,
                    repo,
                    app_id,
                    installation_id,
                    json.dumps(list(pr_numbers)),
                    now,
                ),
            )
            created = cursor.rowcount > 0
            row = conn.execute(
                """
                SELECT sha, owner, repo, app_id, installation_id,
                       pr_numbers_json, created_at
                FROM check_suites
                WHERE sha = ? AND owner = ? AND repo = ? AND app_id = ?
                """,
                (sha, owner, repo, app_id),
            ).fetchone()

        suite = self._suite_from_row(row)
        if created:
            logger.info("Created check suite record %s", suite.key)
        else:
            logger.debug("Check suite record %s already exists", suite.key)
        return EnsureResult(suite=suite, created=created)

    def get_suites(self, sha: str) -> List[CheckSuiteRow]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT sha, owner, repo, app_id, installation_id,
                       pr_numbers_json, created_at
                FROM check_suites
                WHERE sha = ?
                ORDER BY created_at, rowid
                """,
                (sha,),
            ).fetchall()
        return [self._suite_from_row(row) for row in rows]

    def add_test_run(self, run: TestRunRow) -> TestRunRow:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO test_runs (
                    browser_name,
                    browser_version,
                    os_name,
                    os_version,
                    full_revision_hash,
                    labels_json,
                    results_url,
                    time_start
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run.browser_name,
                    run.browser_version,
                    run.os_name,
                    run.os_version,
                    run.full_revision_hash,
                    json.dumps(sorted(run.labels)),
                    run.results_url,
                    run.model_dump(mode="json")["time_start"],
                ),
            )
            run_id = cursor.lastrowid
        return run.model_copy(update={"id": run_id})

    def load_runs(
        self, products: Sequence[ProductSpec], sha: str
    ) -> Dict[ProductSpec, List[TestRunRow]]:
        """Load stored test runs for ``sha``, grouped by product.

        With no products given, every browser that has runs for the commit
        becomes its own group.
        """
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, browser_name, browser_version, os_name, os_version,
                       full_revision_hash, labels_json, results_url, time_start
                FROM test_runs
                WHERE full_revision_hash = ?
                ORDER BY browser_name, time_start DESC, id DESC
                """,
                (sha,),
            ).fetchall()

        runs = [self._run_from_row(row) for row in rows]
        logger.debug("Loaded %d test runs for %s", len(runs), sha[:7])

        if len(products) == 0:
            grouped: Dict[ProductSpec, List[TestRunRow]] = {}
            for run in runs:
                product = ProductSpec(browser_name=run.browser_name)
                grouped.setdefault(product, []).append(run)
            return grouped

        return {
            product: [run for run in runs if run.matches(product)]
            for product in products
        }

    def set_flag(self, name: str, enabled: bool) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO feature_flags (name, enabled, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    enabled = excluded.enabled,
                    updated_at = excluded.updated_at
                """,
                (name, int(enabled), utcnow_iso()),
            )

    def load_flags(self) -> Dict[str, bool]:
        with self._connect() as conn:
            rows = conn.execute("SELECT name, enabled FROM feature_flags").fetchall()
        return {name: bool(enabled) for name, enabled in rows}

    @staticmethod
    def _suite_from_row(row: tuple) -> CheckSuiteRow:
        sha, owner, repo, app_id, installation_id, pr_numbers_json, created_at = row
        return CheckSuiteRow(
            sha=sha,
            owner=owner,
            repo=repo,
            app_id=app_id,
            installation_id=installation_id,
            pr_numbers=json.loads(pr_numbers_json),
            created_at=created_at,
        )

    @staticmethod
    def _run_from_row(row: tuple) -> TestRunRow:
        (
            run_id,
            browser_name,
            browser_version,
            os_name,
            os_version,
            full_revision_hash,
            labels_json,
            results_url,
            time_start,
        ) = row
        return TestRunRow(
            id=run_id,
            browser_name=browser_name,
            browser_version=browser_version,
            os_name=os_name,
            os_version=os_version,
            full_revision_hash=full_revision_hash,
            labels=json.loads(labels_json),
            results_url=results_url,
            time_start=time_start,
        )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=10.0)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA busy_timeout=10000")
        return conn
