"""CelesTrak SOCRATES comma-separated conjunction report.

Each row carries 11 fields in a fixed order::

    NORAD_CAT_ID_1, OBJECT_NAME_1, DSE_1,
    NORAD_CAT_ID_2, OBJECT_NAME_2, DSE_2,
    TCA, TCA_RANGE, TCA_RELATIVE_SPEED, MAX_PROB, DILUTION

``DSE`` is days since the element epoch, the range is in meters, the
relative speed in m/s, and ``MAX_PROB`` a true collision probability
(magnitude convention).
"""

from __future__ import annotations

import csv
import io
import logging

from orbwatch.core.elements import parse_timestamp
from orbwatch.core.events import ConjunctionEvent, EventObject, Provenance
from orbwatch.core.risk import ProbabilityConvention
from orbwatch.data.normalize import FeedResult, clean_name, parse_float, parse_int
from orbwatch.errors import MalformedRecordError

logger = logging.getLogger(__name__)

SOURCE = "celestrak-socrates"
HEADER = (
    "NORAD_CAT_ID_1", "OBJECT_NAME_1", "DSE_1",
    "NORAD_CAT_ID_2", "OBJECT_NAME_2", "DSE_2",
    "TCA", "TCA_RANGE", "TCA_RELATIVE_SPEED", "MAX_PROB", "DILUTION",
)
FIELD_COUNT = len(HEADER)


def _is_header(row: list[str]) -> bool:
    return tuple(cell.replace('"', "").strip().upper() for cell in row) == HEADER


def parse_socrates_row(row: list[str]) -> ConjunctionEvent:
    """Normalize one SOCRATES row.

    Raises:
        MalformedRecordError: If the row has the wrong shape or any field
            fails to parse or violates an event invariant.
    """
    if len(row) != FIELD_COUNT:
        raise MalformedRecordError(f"expected {FIELD_COUNT} fields, got {len(row)}", row)

    try:
        object1 = EventObject(
            catalog_id=parse_int(row[0], "NORAD_CAT_ID_1"),
            name=clean_name(row[1]),
            element_age_days=parse_float(row[2], "DSE_1"),
        )
        object2 = EventObject(
            catalog_id=parse_int(row[3], "NORAD_CAT_ID_2"),
            name=clean_name(row[4]),
            element_age_days=parse_float(row[5], "DSE_2"),
        )
        try:
            tca = parse_timestamp(row[6].replace('"', ""))
        except ValueError:
            raise MalformedRecordError(f"TCA is not ISO-8601: {row[6]!r}") from None

        return ConjunctionEvent(
            object1=object1,
            object2=object2,
            tca=tca,
            range_m=parse_float(row[7], "TCA_RANGE"),
            relative_speed_m_s=parse_float(row[8], "TCA_RELATIVE_SPEED"),
            provenance=Provenance.SOURCE_A,
            probability=parse_float(row[9], "MAX_PROB"),
            probability_convention=ProbabilityConvention.MAGNITUDE,
            dilution=parse_float(row[10], "DILUTION"),
        )
    except MalformedRecordError as exc:
        exc.row = row
        raise
    except ValueError as exc:
        raise MalformedRecordError(str(exc), row) from exc


def parse_socrates_csv(text: str) -> FeedResult:
    """Normalize a SOCRATES CSV report into canonical events.

    A leading row is skipped only when it carries the expected column
    names. Anything else is treated as data, so a plain-text error page
    served in place of the report is a feed-level failure. Malformed rows
    are logged, counted in ``dropped`` and otherwise ignored. A report
    whose data rows are all malformed is a feed-level failure.

    Args:
        text: Raw CSV text.

    Returns:
        A :class:`FeedResult` for source ``celestrak-socrates``.
    """
    result = FeedResult(source=SOURCE)
    data_rows = 0
    first = True

    for line_no, row in enumerate(csv.reader(io.StringIO(text.strip())), start=1):
        if not row or not any(cell.strip() for cell in row):
            continue
        if first:
            first = False
            if _is_header(row):
                continue
        data_rows += 1
        try:
            result.events.append(parse_socrates_row(row))
        except MalformedRecordError as exc:
            result.dropped += 1
            logger.warning("SOCRATES row %d dropped: %s", line_no, exc.reason)

    if data_rows and not result.events:
        return FeedResult.unavailable(
            SOURCE, f"none of {data_rows} rows could be parsed", dropped=result.dropped
        )

    logger.debug("SOCRATES: %d events, %d rows dropped", len(result.events), result.dropped)
    return result
