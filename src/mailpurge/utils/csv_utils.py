"""Reading deletion targets from CSV or plain text files."""

import csv
from pathlib import Path

from ..core.exceptions import ValidationError
from ..models.run import Target
from .logging_utils import get_logger

logger = get_logger(__name__)

SENDER_COLUMNS = ("email", "sender", "from", "identifier")
COUNT_COLUMNS = ("count", "estimated_count", "messages", "total")


def _find_column(headers: list[str], candidates: tuple[str, ...]) -> str | None:
    lowered = {h.strip().lower(): h for h in headers}
    for candidate in candidates:
        if candidate in lowered:
            return lowered[candidate]
    return None


def _parse_count(raw: str | None, line_no: int) -> int:
    if raw is None or not raw.strip():
        return 0
    try:
        return int(raw.strip().replace(",", ""))
    except ValueError as e:
        raise ValidationError(
            f"Invalid message count on line {line_no}", field="count", value=raw
        ) from e


def read_targets(file_path: str | Path) -> list[Target]:
    """Read deletion targets from a file.

    Accepts a CSV with a header naming the sender and count columns
    (``email,count``), or a plain list with one sender per line and an
    optional ``,count`` suffix. Blank lines and ``#`` comments are skipped;
    repeated senders are merged with their counts summed, keeping the
    position of the first occurrence.

    Args:
        file_path: Path to the targets file

    Returns:
        List[Target]: Targets in file order

    Raises:
        ValidationError: If the file is missing or a row is malformed
    """
    path = Path(file_path)
    if not path.is_file():
        raise ValidationError(f"Targets file not found: {path}", field="file_path")

    with open(path, encoding="utf-8", newline="") as f:
        rows = [row for row in csv.reader(f) if row and row[0].strip()]

    rows = [row for row in rows if not row[0].lstrip().startswith("#")]
    if not rows:
        return []

    sender_idx, count_idx, start = 0, 1, 0
    header = [cell.strip() for cell in rows[0]]
    sender_col = _find_column(header, SENDER_COLUMNS)
    if sender_col is not None:
        sender_idx = header.index(sender_col)
        count_col = _find_column(header, COUNT_COLUMNS)
        count_idx = header.index(count_col) if count_col is not None else -1
        start = 1

    merged: dict[str, int] = {}
    for line_no, row in enumerate(rows[start:], start=start + 1):
        identifier = row[sender_idx].strip() if sender_idx < len(row) else ""
        if not identifier:
            continue
        raw_count = row[count_idx] if 0 <= count_idx < len(row) else None
        merged[identifier] = merged.get(identifier, 0) + _parse_count(raw_count, line_no)

    targets = [Target(identifier=k, estimated_count=v) for k, v in merged.items()]
    logger.debug(
        f"Read {len(targets)} targets from {path}",
        extra={"operation": "read_targets"},
    )
    return targets
