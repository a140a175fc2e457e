"""KeepTrack SOCRATES structured conjunction report.

The feed is a JSON list of records with named fields. Minimum range is in
km, relative speed in km/s, and ``MAX_PROB`` is a normalized score in
[0, 1]. All three are converted to canonical units (m, m/s) with the
normalized convention tag kept.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from orbwatch.core.elements import ObjectStatus, parse_timestamp
from orbwatch.core.events import ConjunctionEvent, EventObject, Provenance
from orbwatch.core.risk import ProbabilityConvention
from orbwatch.data.normalize import FeedResult, clean_name, parse_float, parse_int
from orbwatch.errors import MalformedRecordError

logger = logging.getLogger(__name__)

SOURCE = "keeptrack-socrates"

# SATCAT operational status codes, plus spelled-out variants
_STATUS_CODES: dict[str, ObjectStatus] = {
    "+": ObjectStatus.OPERATIONAL,
    "P": ObjectStatus.OPERATIONAL,
    "B": ObjectStatus.OPERATIONAL,
    "S": ObjectStatus.OPERATIONAL,
    "X": ObjectStatus.OPERATIONAL,
    "ACTIVE": ObjectStatus.OPERATIONAL,
    "OPERATIONAL": ObjectStatus.OPERATIONAL,
    "-": ObjectStatus.NON_OPERATIONAL,
    "D": ObjectStatus.NON_OPERATIONAL,
    "INACTIVE": ObjectStatus.NON_OPERATIONAL,
    "NONOPERATIONAL": ObjectStatus.NON_OPERATIONAL,
    "NON-OPERATIONAL": ObjectStatus.NON_OPERATIONAL,
}


def map_status(value: Any) -> ObjectStatus:
    """Map a reported status string to :class:`ObjectStatus`. Unknown codes map to UNKNOWN."""
    if value is None:
        return ObjectStatus.UNKNOWN
    return _STATUS_CODES.get(str(value).strip().upper(), ObjectStatus.UNKNOWN)


def _field(record: Mapping[str, Any], key: str) -> Any:
    try:
        return record[key]
    except KeyError:
        raise MalformedRecordError(f"missing field {key}") from None


def parse_keeptrack_record(record: Any) -> ConjunctionEvent:
    """Normalize one KeepTrack record.

    Raises:
        MalformedRecordError: If the record is not a mapping, lacks a field,
            or a field fails to parse or violates an event invariant.
    """
    if not isinstance(record, Mapping):
        raise MalformedRecordError(f"record is not an object: {type(record).__name__}", record)

    try:
        objects = []
        for side in ("SAT1", "SAT2"):
            objects.append(
                EventObject(
                    catalog_id=parse_int(_field(record, side), side),
                    name=clean_name(_field(record, f"{side}_NAME")),
                    status=map_status(record.get(f"{side}_STATUS")),
                    element_age_days=parse_float(_field(record, f"{side}_AGE_OF_TLE"), f"{side}_AGE_OF_TLE"),
                )
            )
        toca = _field(record, "TOCA")
        try:
            tca = parse_timestamp(str(toca))
        except ValueError:
            raise MalformedRecordError(f"TOCA is not ISO-8601: {toca!r}") from None

        return ConjunctionEvent(
            object1=objects[0],
            object2=objects[1],
            tca=tca,
            range_m=parse_float(_field(record, "MIN_RNG"), "MIN_RNG") * 1000.0,
            relative_speed_m_s=parse_float(_field(record, "REL_SPEED"), "REL_SPEED") * 1000.0,
            provenance=Provenance.SOURCE_B,
            probability=parse_float(_field(record, "MAX_PROB"), "MAX_PROB"),
            probability_convention=ProbabilityConvention.NORMALIZED,
            dilution=parse_float(_field(record, "DILUTION_THRESHOLD"), "DILUTION_THRESHOLD"),
            source_id=parse_int(_field(record, "ID"), "ID"),
        )
    except MalformedRecordError as exc:
        exc.row = record
        raise
    except ValueError as exc:
        raise MalformedRecordError(str(exc), record) from exc


def parse_keeptrack_records(payload: Any) -> FeedResult:
    """Normalize a decoded KeepTrack payload into canonical events.

    Args:
        payload: The decoded JSON body; expected to be a list of records.

    Returns:
        A :class:`FeedResult` for source ``keeptrack-socrates``. A payload
        that is not a list, or whose records are all malformed, is a
        feed-level failure.
    """
    if not isinstance(payload, list):
        return FeedResult.unavailable(SOURCE, f"expected a JSON list, got {type(payload).__name__}")

    result = FeedResult(source=SOURCE)
    for index, record in enumerate(payload):
        try:
            result.events.append(parse_keeptrack_record(record))
        except MalformedRecordError as exc:
            result.dropped += 1
            logger.warning("KeepTrack record %d dropped: %s", index, exc.reason)

    if payload and not result.events:
        return FeedResult.unavailable(
            SOURCE, f"none of {len(payload)} records could be parsed", dropped=result.dropped
        )

    logger.debug("KeepTrack: %d events, %d records dropped", len(result.events), result.dropped)
    return result
