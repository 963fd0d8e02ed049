from __future__ import annotations

from pathlib import Path
from typing import Any

import duckdb

from bbluck.contracts import LuckReport

LUCK_EVENT_COLUMNS = (
    ("report_id", "VARCHAR"),
    ("match_id", "VARCHAR"),
    ("event_id", "VARCHAR"),
    ("turn", "INTEGER"),
    ("event_index", "INTEGER"),
    ("team_id", "VARCHAR"),
    ("team_name", "VARCHAR"),
    ("player_id", "VARCHAR"),
    ("category", "VARCHAR"),
    ("source_tag", "VARCHAR"),
    ("roll_type", "INTEGER"),
    ("scoring_status", "VARCHAR"),
    ("status_reason", "VARCHAR"),
    ("is_roll_candidate", "BOOLEAN"),
    ("probability_success", "DOUBLE"),
    ("actual_success", "BOOLEAN"),
    ("weighted_delta", "DOUBLE"),
    ("calculation_method", "VARCHAR"),
    ("merged_block_anchor_id", "VARCHAR"),
)


def luck_event_rows(report: LuckReport) -> list[tuple[Any, ...]]:
    return [
        (
            report.id,
            report.match.id,
            event.id,
            event.turn,
            event.event_index,
            event.team_id,
            event.team_name,
            event.player_id,
            event.type.value if event.type else None,
            event.metadata.source_tag,
            event.metadata.roll_type,
            event.scoring_status.value,
            event.status_reason,
            event.is_roll_candidate,
            event.probability_success,
            event.actual_success,
            event.weighted_delta,
            event.calculation_method.value if event.calculation_method else None,
            event.merged_block_anchor_id,
        )
        for event in report.events
    ]


class LuckEventExporter:
    def __init__(self, stem: str = "luck_events") -> None:
        self.stem = stem

    def export(self, report: LuckReport, output_dir: Path) -> list[Path]:
        output_dir.mkdir(parents=True, exist_ok=True)
        with duckdb.connect(":memory:") as conn:
            columns = ", ".join(f"{name} {dtype}" for name, dtype in LUCK_EVENT_COLUMNS)
            conn.execute(f"CREATE TABLE luck_events ({columns})")
            rows = luck_event_rows(report)
            if rows:
                placeholders = ", ".join("?" for _ in LUCK_EVENT_COLUMNS)
                conn.executemany(f"INSERT INTO luck_events VALUES ({placeholders})", rows)
            return self._export_table(conn, "luck_events", output_dir / self.stem)

    def _export_table(self, conn: Any, table: str, stem: Path) -> list[Path]:
        csv_path = stem.with_suffix(".csv")
        parquet_path = stem.with_suffix(".parquet")
        conn.execute(f"COPY (SELECT * FROM {table} ORDER BY turn, event_index) TO '{csv_path.as_posix()}' (HEADER, DELIMITER ',')")
        conn.execute(f"COPY (SELECT * FROM {table} ORDER BY turn, event_index) TO '{parquet_path.as_posix()}' (FORMAT PARQUET)")
        return [csv_path, parquet_path]
