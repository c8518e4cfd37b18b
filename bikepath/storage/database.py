"""SQLite-backed persistence for streets, paths, trips, reports and obstacles.

Geometry columns hold WKT written by shapely; timestamps are UTC ISO-8601
strings, so lexical comparison in SQL matches chronological order.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path as FilePath
from typing import Iterator, Optional, Sequence

from bikepath.core.exceptions import InvalidReportError, NotFoundError, StorageError
from bikepath.core.models import (
    Coordinate,
    Obstacle,
    ObstacleStatus,
    Path,
    PathSegment,
    Report,
    Street,
    StreetStatus,
    Trip,
    Visit,
    utcnow,
)
from bikepath.geometry.distance import combine_segments, from_wkt, to_wkt

logger = logging.getLogger("bikepath.storage.database")

SCHEMA = """\
CREATE TABLE IF NOT EXISTS streets (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL,
    geometry_wkt    TEXT,
    status          TEXT,
    city            TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS trips (
    id              TEXT PRIMARY KEY,
    author_id       TEXT NOT NULL,
    rating          INTEGER,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS visits (
    id              TEXT PRIMARY KEY,
    trip_id         TEXT NOT NULL,
    street_id       TEXT NOT NULL,
    order_index     INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY(trip_id) REFERENCES trips(id) ON DELETE CASCADE,
    FOREIGN KEY(street_id) REFERENCES streets(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS paths (
    id                  TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    trip_id             TEXT,
    geometry_wkt        TEXT,
    score               REAL,
    status              TEXT,
    score_calculated_at TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    FOREIGN KEY(trip_id) REFERENCES trips(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS path_segments (
    path_id         TEXT NOT NULL,
    street_id       TEXT NOT NULL,
    order_index     INTEGER NOT NULL,
    PRIMARY KEY (path_id, order_index),
    FOREIGN KEY(path_id) REFERENCES paths(id) ON DELETE CASCADE,
    FOREIGN KEY(street_id) REFERENCES streets(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS reports (
    id              TEXT PRIMARY KEY,
    author_id       TEXT NOT NULL,
    status          TEXT NOT NULL,
    rating          INTEGER,
    publishable     INTEGER NOT NULL DEFAULT 1,
    visit_id        TEXT,
    street_id       TEXT,
    lat             REAL,
    lon             REAL,
    created_at      TEXT NOT NULL,
    FOREIGN KEY(visit_id) REFERENCES visits(id) ON DELETE CASCADE,
    FOREIGN KEY(street_id) REFERENCES streets(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS obstacles (
    id              TEXT PRIMARY KEY,
    visit_id        TEXT NOT NULL,
    kind            TEXT NOT NULL,
    lat             REAL NOT NULL,
    lon             REAL NOT NULL,
    status          TEXT NOT NULL DEFAULT 'PENDING',
    description     TEXT,
    created_at      TEXT NOT NULL,
    confirmed_at    TEXT,
    FOREIGN KEY(visit_id) REFERENCES visits(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_visit_street ON visits(street_id);
CREATE INDEX IF NOT EXISTS idx_visit_trip ON visits(trip_id);
CREATE INDEX IF NOT EXISTS idx_segment_street ON path_segments(street_id);
CREATE INDEX IF NOT EXISTS idx_report_visit ON reports(visit_id);
CREATE INDEX IF NOT EXISTS idx_report_street ON reports(street_id);
CREATE INDEX IF NOT EXISTS idx_obstacle_visit ON obstacles(visit_id);
"""


def _new_id() -> str:
    return str(uuid.uuid4())[:12]


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _status(value: Optional[str]) -> Optional[StreetStatus]:
    return StreetStatus(value) if value else None


class BikePathStore:
    """Persistence collaborator for the aggregation and matching engines.

    Usage::

        store = BikePathStore(Path("bikepath.db"))
        street = store.add_street("Via Roma", [(9.18, 45.46), (9.19, 45.47)])
        path = store.add_path("Commute", [street.id])
        store.close()
    """

    def __init__(self, db_path: FilePath):
        self.db_path = FilePath(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(SCHEMA)
            logger.info("BikePath database opened: %s", self.db_path)
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back and raise ``StorageError`` on failure."""
        conn = self.conn
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc

    def _fetchone(self, sql: str, params: Sequence = ()) -> Optional[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def _fetchall(self, sql: str, params: Sequence = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    # ── Streets ─────────────────────────────────────────────────────────

    def add_street(
        self,
        name: str,
        coordinates: Sequence[Coordinate] = (),
        city: Optional[str] = None,
        street_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Street:
        now = now or utcnow()
        street = Street(
            id=street_id or _new_id(),
            name=name,
            coordinates=[tuple(c) for c in coordinates],
            city=city,
            created_at=now,
            updated_at=now,
        )
        with self.transaction() as conn:
            conn.execute(
                """INSERT INTO streets (id, name, geometry_wkt, status, city, created_at, updated_at)
                   VALUES (?, ?, ?, NULL, ?, ?, ?)""",
                (street.id, name, to_wkt(street.coordinates), city, _iso(now), _iso(now)),
            )
        return street

    @staticmethod
    def _street_from_row(row: sqlite3.Row) -> Street:
        return Street(
            id=row["id"],
            name=row["name"],
            coordinates=from_wkt(row["geometry_wkt"]),
            status=_status(row["status"]),
            city=row["city"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    def get_street(self, street_id: str) -> Street:
        row = self._fetchone("SELECT * FROM streets WHERE id = ?", (street_id,))
        if row is None:
            raise NotFoundError(f"Street not found: {street_id}")
        return self._street_from_row(row)

    def set_street_status(
        self, street_id: str, status: Optional[StreetStatus], now: datetime
    ) -> None:
        with self.transaction() as conn:
            cursor = conn.execute(
                "UPDATE streets SET status = ?, updated_at = ? WHERE id = ?",
                (status.value if status else None, _iso(now), street_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Street not found: {street_id}")

    # ── Trips & Visits ──────────────────────────────────────────────────

    def add_trip(
        self,
        author_id: str,
        rating: Optional[int] = None,
        trip_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Trip:
        trip = Trip(id=trip_id or _new_id(), author_id=author_id, rating=rating,
                    created_at=now or utcnow())
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO trips (id, author_id, rating, created_at) VALUES (?, ?, ?, ?)",
                (trip.id, author_id, rating, _iso(trip.created_at)),
            )
        return trip

    def get_trip(self, trip_id: str) -> Trip:
        row = self._fetchone("SELECT * FROM trips WHERE id = ?", (trip_id,))
        if row is None:
            raise NotFoundError(f"Trip not found: {trip_id}")
        return Trip(id=row["id"], author_id=row["author_id"], rating=row["rating"],
                    created_at=_dt(row["created_at"]))

    def add_visit(self, trip_id: str, street_id: str, order_index: int = 0) -> Visit:
        self.get_trip(trip_id)
        self.get_street(street_id)
        visit = Visit(id=_new_id(), trip_id=trip_id, street_id=street_id, order_index=order_index)
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO visits (id, trip_id, street_id, order_index) VALUES (?, ?, ?, ?)",
                (visit.id, trip_id, street_id, order_index),
            )
        return visit

    def get_visit(self, visit_id: str) -> Visit:
        row = self._fetchone("SELECT * FROM visits WHERE id = ?", (visit_id,))
        if row is None:
            raise NotFoundError(f"Visit not found: {visit_id}")
        return Visit(id=row["id"], trip_id=row["trip_id"], street_id=row["street_id"],
                     order_index=row["order_index"])

    # ── Paths ───────────────────────────────────────────────────────────

    def add_path(
        self,
        name: str,
        street_ids: Sequence[str],
        trip_id: Optional[str] = None,
        path_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Path:
        """Create a path over ``street_ids`` in order.

        Segment order indices are 0..n-1; the geometry is derived from the
        streets and never taken from the caller.
        """
        now = now or utcnow()
        streets = [self.get_street(sid) for sid in street_ids]
        coords = combine_segments(s.coordinates for s in streets)
        path_id = path_id or _new_id()

        with self.transaction() as conn:
            conn.execute(
                """INSERT INTO paths (id, name, trip_id, geometry_wkt, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (path_id, name, trip_id, to_wkt(coords), _iso(now), _iso(now)),
            )
            conn.executemany(
                "INSERT INTO path_segments (path_id, street_id, order_index) VALUES (?, ?, ?)",
                [(path_id, s.id, i) for i, s in enumerate(streets)],
            )
        logger.info("Created path %s with %d segments", path_id, len(streets))
        return self.get_path(path_id)

    def _path_from_row(self, row: sqlite3.Row, segments: list[PathSegment]) -> Path:
        return Path(
            id=row["id"],
            name=row["name"],
            segments=segments,
            coordinates=from_wkt(row["geometry_wkt"]) or None,
            trip_id=row["trip_id"],
            score=row["score"],
            status=_status(row["status"]),
            score_calculated_at=_dt(row["score_calculated_at"]),
            created_at=_dt(row["created_at"]),
        )

    def _segments(self, path_ids: Sequence[str]) -> dict[str, list[PathSegment]]:
        if not path_ids:
            return {}
        placeholders = ", ".join("?" * len(path_ids))
        rows = self._fetchall(
            f"""SELECT ps.path_id, ps.order_index, s.*
                FROM path_segments ps JOIN streets s ON s.id = ps.street_id
                WHERE ps.path_id IN ({placeholders})
                ORDER BY ps.path_id, ps.order_index ASC""",
            list(path_ids),
        )
        by_path: dict[str, list[PathSegment]] = {pid: [] for pid in path_ids}
        for r in rows:
            street = self._street_from_row(r)
            by_path[r["path_id"]].append(
                PathSegment(street_id=street.id, order_index=r["order_index"], street=street)
            )
        return by_path

    def get_path(self, path_id: str) -> Path:
        row = self._fetchone("SELECT * FROM paths WHERE id = ?", (path_id,))
        if row is None:
            raise NotFoundError(f"Path not found: {path_id}")
        return self._path_from_row(row, self._segments([path_id])[path_id])

    def list_paths(self) -> list[Path]:
        """The full candidate corpus, segments and streets loaded."""
        rows = self._fetchall("SELECT * FROM paths ORDER BY created_at ASC")
        segments = self._segments([r["id"] for r in rows])
        return [self._path_from_row(r, segments[r["id"]]) for r in rows]

    def paths_containing_street(self, street_id: str) -> list[str]:
        rows = self._fetchall(
            "SELECT DISTINCT path_id FROM path_segments WHERE street_id = ? ORDER BY path_id",
            (street_id,),
        )
        return [r["path_id"] for r in rows]

    def paths_for_trip(self, trip_id: str) -> list[str]:
        rows = self._fetchall("SELECT id FROM paths WHERE trip_id = ? ORDER BY id", (trip_id,))
        return [r["id"] for r in rows]

    def set_path_score(
        self,
        path_id: str,
        score: float,
        status: Optional[StreetStatus],
        calculated_at: datetime,
    ) -> None:
        with self.transaction() as conn:
            cursor = conn.execute(
                """UPDATE paths SET score = ?, status = ?, score_calculated_at = ?, updated_at = ?
                   WHERE id = ?""",
                (score, status.value if status else None, _iso(calculated_at),
                 _iso(calculated_at), path_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Path not found: {path_id}")

    # ── Reports ─────────────────────────────────────────────────────────

    def add_report(
        self,
        author_id: str,
        status: StreetStatus | str,
        visit_id: Optional[str] = None,
        street_id: Optional[str] = None,
        rating: Optional[int] = None,
        publishable: bool = True,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        created_at: Optional[datetime] = None,
    ) -> Report:
        """Insert a report linked to a visit or, standalone, to a street."""
        if (visit_id is None) == (street_id is None):
            raise InvalidReportError("A report needs exactly one of visit_id or street_id")
        if visit_id is not None:
            self.get_visit(visit_id)
        else:
            self.get_street(street_id)

        report = Report(
            id=_new_id(),
            author_id=author_id,
            status=status,
            created_at=created_at or utcnow(),
            rating=rating,
            publishable=publishable,
            visit_id=visit_id,
            street_id=street_id,
            lat=lat,
            lon=lon,
        )
        self._write_report(report, insert=True)
        return report

    def _write_report(self, report: Report, insert: bool) -> None:
        values = (
            report.author_id, report.status.value, report.rating,
            1 if report.publishable else 0, report.visit_id, report.street_id,
            report.lat, report.lon, _iso(report.created_at), report.id,
        )
        with self.transaction() as conn:
            if insert:
                conn.execute(
                    """INSERT INTO reports (author_id, status, rating, publishable, visit_id,
                           street_id, lat, lon, created_at, id)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    values,
                )
            else:
                conn.execute(
                    """UPDATE reports SET author_id = ?, status = ?, rating = ?, publishable = ?,
                           visit_id = ?, street_id = ?, lat = ?, lon = ?, created_at = ?
                       WHERE id = ?""",
                    values,
                )

    def save_report(self, report: Report) -> None:
        """Persist an edited report."""
        self.get_report(report.id)
        self._write_report(report, insert=False)

    @staticmethod
    def _report_from_row(row: sqlite3.Row) -> Report:
        return Report(
            id=row["id"],
            author_id=row["author_id"],
            status=row["status"],
            created_at=_dt(row["created_at"]),
            rating=row["rating"],
            publishable=bool(row["publishable"]),
            visit_id=row["visit_id"],
            street_id=row["street_id"],
            lat=row["lat"],
            lon=row["lon"],
        )

    def get_report(self, report_id: str) -> Report:
        row = self._fetchone("SELECT * FROM reports WHERE id = ?", (report_id,))
        if row is None:
            raise NotFoundError(f"Report not found: {report_id}")
        return self._report_from_row(row)

    def street_of_report(self, report: Report) -> str:
        if report.street_id is not None:
            return report.street_id
        return self.get_visit(report.visit_id).street_id

    def reports_for_street(
        self, street_id: str, since: Optional[datetime] = None
    ) -> list[Report]:
        """Visit-linked and standalone reports for a street, newest first."""
        sql = """SELECT * FROM reports
                 WHERE (street_id = ?
                        OR visit_id IN (SELECT id FROM visits WHERE street_id = ?))"""
        params: list = [street_id, street_id]
        if since is not None:
            sql += " AND created_at >= ?"
            params.append(_iso(since))
        sql += " ORDER BY created_at DESC"
        return [self._report_from_row(r) for r in self._fetchall(sql, params)]

    def list_reports(
        self, author_id: Optional[str] = None, street_id: Optional[str] = None
    ) -> list[Report]:
        """All reports, optionally filtered by author and/or street, newest first."""
        sql = "SELECT * FROM reports WHERE 1 = 1"
        params: list = []
        if author_id is not None:
            sql += " AND author_id = ?"
            params.append(author_id)
        if street_id is not None:
            sql += """ AND (street_id = ?
                            OR visit_id IN (SELECT id FROM visits WHERE street_id = ?))"""
            params.extend([street_id, street_id])
        sql += " ORDER BY created_at DESC"
        return [self._report_from_row(r) for r in self._fetchall(sql, params)]

    def delete_report(self, report_id: str) -> Report:
        """Remove a report and return it as it was before deletion."""
        report = self.get_report(report_id)
        with self.transaction() as conn:
            conn.execute("DELETE FROM reports WHERE id = ?", (report_id,))
        return report

    def reports_for_trip(self, trip_id: str) -> list[Report]:
        rows = self._fetchall(
            """SELECT r.* FROM reports r JOIN visits v ON v.id = r.visit_id
               WHERE v.trip_id = ? ORDER BY r.created_at DESC""",
            (trip_id,),
        )
        return [self._report_from_row(r) for r in rows]

    # ── Obstacles ───────────────────────────────────────────────────────

    def add_obstacle(
        self,
        visit_id: str,
        kind: str,
        lat: float,
        lon: float,
        description: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Obstacle:
        self.get_visit(visit_id)
        obstacle = Obstacle(
            id=_new_id(),
            visit_id=visit_id,
            kind=kind,
            lat=lat,
            lon=lon,
            description=description,
            created_at=created_at or utcnow(),
        )
        with self.transaction() as conn:
            conn.execute(
                """INSERT INTO obstacles (id, visit_id, kind, lat, lon, status, description,
                       created_at, confirmed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL)""",
                (obstacle.id, visit_id, kind, lat, lon, obstacle.status.value, description,
                 _iso(obstacle.created_at)),
            )
        return obstacle

    @staticmethod
    def _obstacle_from_row(row: sqlite3.Row) -> Obstacle:
        return Obstacle(
            id=row["id"],
            visit_id=row["visit_id"],
            kind=row["kind"],
            lat=row["lat"],
            lon=row["lon"],
            status=ObstacleStatus(row["status"]),
            description=row["description"],
            created_at=_dt(row["created_at"]),
            confirmed_at=_dt(row["confirmed_at"]),
        )

    def get_obstacle(self, obstacle_id: str) -> Obstacle:
        row = self._fetchone("SELECT * FROM obstacles WHERE id = ?", (obstacle_id,))
        if row is None:
            raise NotFoundError(f"Obstacle not found: {obstacle_id}")
        return self._obstacle_from_row(row)

    def save_obstacle(self, obstacle: Obstacle) -> None:
        with self.transaction() as conn:
            cursor = conn.execute(
                """UPDATE obstacles SET status = ?, description = ?, lat = ?, lon = ?,
                       confirmed_at = ?
                   WHERE id = ?""",
                (obstacle.status.value, obstacle.description, obstacle.lat, obstacle.lon,
                 _iso(obstacle.confirmed_at), obstacle.id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError(f"Obstacle not found: {obstacle.id}")

    def obstacles_for_trip(
        self, trip_id: str, since: Optional[datetime] = None
    ) -> list[Obstacle]:
        sql = """SELECT o.* FROM obstacles o JOIN visits v ON v.id = o.visit_id
                 WHERE v.trip_id = ?"""
        params: list = [trip_id]
        if since is not None:
            sql += " AND o.created_at >= ?"
            params.append(_iso(since))
        sql += " ORDER BY o.created_at ASC"
        return [self._obstacle_from_row(r) for r in self._fetchall(sql, params)]

    def obstacles_for_path(self, path_id: str) -> list[Obstacle]:
        """Every obstacle reported on the visits of the path's trip."""
        row = self._fetchone("SELECT trip_id FROM paths WHERE id = ?", (path_id,))
        if row is None:
            raise NotFoundError(f"Path not found: {path_id}")
        if row["trip_id"] is None:
            return []
        return self.obstacles_for_trip(row["trip_id"])

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
