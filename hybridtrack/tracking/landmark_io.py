"""
Landmark stream I/O utilities.

This module reads and writes per-frame landmark PointSets as CSV, one
row per point:

    frame,point,x,y,z[,method,error]

Coordinates are normalized. Frames without a subject have no rows.
"""

import csv
from pathlib import Path
from typing import Iterator

import numpy as np


LANDMARK_FIELDS = ["frame", "point", "x", "y", "z"]
RESULT_FIELDS = LANDMARK_FIELDS + ["method", "error"]


def parse_landmark_row(row: dict[str, str]) -> tuple[int, int, float, float, float] | None:
    """
    Parse one CSV row.

    Args:
        row: Row as produced by csv.DictReader

    Returns:
        Tuple of (frame, point, x, y, z) or None if the row is incomplete
    """
    try:
        frame = int(row["frame"])
        point = int(row["point"])
        x = float(row["x"])
        y = float(row["y"])
    except (KeyError, TypeError, ValueError):
        return None

    z_text = row.get("z")
    try:
        z = float(z_text) if z_text not in (None, "") else 0.0
    except ValueError:
        z = 0.0
    return frame, point, x, y, z


def iter_landmark_csv(path: str | Path) -> Iterator[tuple[int, int, float, float, float]]:
    """
    Iterate over the rows of a landmark CSV file.

    Yields:
        Tuples of (frame, point, x, y, z)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Landmark file not found: {path}")

    with open(path, "r", newline="") as f:
        for row in csv.DictReader(f):
            parsed = parse_landmark_row(row)
            if parsed:
                yield parsed


def read_landmark_csv(path: str | Path) -> dict[int, np.ndarray]:
    """
    Read a landmark CSV file.

    Args:
        path: Path to the CSV file

    Returns:
        Dictionary mapping frame numbers to (N, 3) PointSets ordered by
        point index

    Example:
        >>> data = read_landmark_csv("detections.csv")
        >>> wrist = data[100][0]
    """
    rows: dict[int, dict[int, tuple[float, float, float]]] = {}
    for frame, point, x, y, z in iter_landmark_csv(path):
        rows.setdefault(frame, {})[point] = (x, y, z)

    return {
        frame: np.array([points[i] for i in sorted(points)], dtype=np.float64)
        for frame, points in sorted(rows.items())
    }


def write_landmark_csv(path: str | Path, data: dict[int, np.ndarray]) -> None:
    """
    Write per-frame PointSets to a landmark CSV file.

    Args:
        path: Output path
        data: Dictionary mapping frame numbers to (N, 2) or (N, 3) arrays
    """
    with LandmarkCSVWriter(path) as writer:
        for frame in sorted(data):
            writer.write(frame, data[frame])


class LandmarkCSVWriter:
    """
    Streaming writer for landmark CSV files.

    Example:
        with LandmarkCSVWriter("tracked.csv", include_result=True) as out:
            for frame_num, result in results:
                out.write(frame_num, result.points, result.method.value, result.error)
    """

    def __init__(self, path: str | Path, include_result: bool = False):
        """
        Args:
            path: Output path
            include_result: Add the method and error columns
        """
        self.path = Path(path)
        self.include_result = include_result
        self.rows_written = 0
        self._file = None
        self._writer = None

    def open(self) -> "LandmarkCSVWriter":
        self._file = open(self.path, "w", newline="")
        self._writer = csv.writer(self._file)
        self._writer.writerow(RESULT_FIELDS if self.include_result else LANDMARK_FIELDS)
        return self

    def write(
        self,
        frame: int,
        points: np.ndarray | None,
        method: str = "",
        error: float | None = None,
    ) -> None:
        """Write one frame's PointSet (nothing is written for None)."""
        if self._writer is None:
            raise RuntimeError("Writer not opened. Call open() first.")
        if points is None:
            return

        for idx, p in enumerate(np.asarray(points, dtype=np.float64)):
            z = p[2] if len(p) > 2 else 0.0
            row = [frame, idx, f"{p[0]:.6f}", f"{p[1]:.6f}", f"{z:.6f}"]
            if self.include_result:
                row += [method, "" if error is None else f"{error:.6f}"]
            self._writer.writerow(row)
            self.rows_written += 1

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None
            self._writer = None

    def __enter__(self) -> "LandmarkCSVWriter":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
