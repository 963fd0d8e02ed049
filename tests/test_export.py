from __future__ import annotations

from pathlib import Path

import duckdb

from bbluck.export import LUCK_EVENT_COLUMNS, LuckEventExporter, luck_event_rows
from bbluck.services import analyze_replay_input
from tests.helpers import standard_match_xml


def test_export_csv_parquet_row_count_parity(tmp_path: Path) -> None:
    report = analyze_replay_input(standard_match_xml())
    outputs = LuckEventExporter().export(report, tmp_path / "out")
    csv_path, parquet_path = outputs
    assert csv_path.suffix == ".csv" and parquet_path.suffix == ".parquet"

    with duckdb.connect() as conn:
        csv_count = conn.execute(f"SELECT COUNT(*) FROM read_csv_auto('{csv_path.as_posix()}')").fetchone()[0]
        parquet_count = conn.execute(f"SELECT COUNT(*) FROM parquet_scan('{parquet_path.as_posix()}')").fetchone()[0]
        assert csv_count == parquet_count == len(report.events)

        merged = conn.execute(
            f"SELECT merged_block_anchor_id FROM parquet_scan('{parquet_path.as_posix()}') WHERE event_id = '3-1-ResultBlockRoll'"
        ).fetchone()[0]
        assert merged == "3-0-ResultRoll"


def test_rows_follow_the_declared_columns() -> None:
    report = analyze_replay_input(standard_match_xml())
    rows = luck_event_rows(report)
    assert len(rows) == len(report.events)
    assert all(len(row) == len(LUCK_EVENT_COLUMNS) for row in rows)
    columns = [name for name, _ in LUCK_EVENT_COLUMNS]
    first = dict(zip(columns, rows[0]))
    assert first["match_id"] == "match-42"
    assert first["category"] == "dodge"
    assert first["calculation_method"] == "explicit"
