"""
TLE (Two-Line Element) parsing and element records.

Records are immutable. A record that cannot be parsed is replaced by the
known-good fallback record for its body; fresher data supersedes a record
rather than mutating it.
"""

import math
import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from .bodies import Body, BODY_CONFIGS, MOON_PERIOD_DAYS, get_body_config, resolve_body

logger = logging.getLogger(__name__)

# Plain decimal column: optional sign, digits with at most one point
_NUMERIC_FIELD = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)")

SECONDS_PER_DAY = 86400.0

# Two-digit epoch years below this pivot are 20xx
EPOCH_YEAR_PIVOT = 57

SOURCE_PARSED = 'parsed'
SOURCE_FALLBACK = 'fallback'
SOURCE_CONSTANT = 'constant'


class TLEParseError(ValueError):
    """Raised when a two-line element set is malformed."""


@dataclass(frozen=True)
class ElementRecord:
    """
    Mean orbital elements of one body at a reference epoch.

    Attributes:
        body_id: NORAD catalog number, or the body name for constant records
        name: Display name
        epoch: Reference instant (timezone-aware UTC)
        mean_motion: Revolutions per day
        eccentricity: 0 <= e < 1
        inclination: Radians
        raan: Right ascension of the ascending node (radians)
        arg_perigee: Argument of periapsis (radians)
        mean_anomaly: Radians
        bstar: Drag term (1/earth radii)
        mean_motion_dot: First derivative of mean motion / 2 (rev/day^2)
        line1: Source TLE line 1 (None for constant records)
        line2: Source TLE line 2 (None for constant records)
        source: 'parsed', 'fallback' or 'constant'
    """
    body_id: str
    name: str
    epoch: datetime
    mean_motion: float
    eccentricity: float
    inclination: float
    raan: float
    arg_perigee: float
    mean_anomaly: float
    bstar: float = 0.0
    mean_motion_dot: float = 0.0
    line1: Optional[str] = None
    line2: Optional[str] = None
    source: str = SOURCE_PARSED

    @property
    def has_tle_lines(self) -> bool:
        return bool(self.line1 and self.line2)

    @property
    def period_seconds(self) -> float:
        """Orbital period implied by the mean motion."""
        return SECONDS_PER_DAY / self.mean_motion

    def age(self, instant: datetime) -> timedelta:
        """Signed time from epoch to instant."""
        return instant - self.epoch


def _checksum(line: str) -> int:
    total = 0
    for char in line[:68]:
        if char.isdigit():
            total += int(char)
        elif char == '-':
            total += 1
    return total % 10


def _float_field(line: str, start: int, end: int, label: str) -> float:
    text = line[start:end].strip()
    if not _NUMERIC_FIELD.fullmatch(text):
        raise TLEParseError(f"Non-numeric {label} field: {text!r}")
    return float(text)


def _implied_decimal(text: str, label: str) -> float:
    """Parse the ' 92768-3' style field (0.92768e-3)."""
    field = text.strip()
    sign = -1.0 if field.startswith('-') else 1.0
    field = field.lstrip('+-')
    mantissa, exponent = field[:-2], field[-2:]

    if not mantissa.isdigit() or len(exponent) != 2 or exponent[0] not in '+-' or not exponent[1].isdigit():
        raise TLEParseError(f"Malformed {label} field: {text!r}")

    return sign * float('0.' + mantissa) * 10.0 ** int(exponent)


def _parse_epoch(line1: str) -> datetime:
    year_text = line1[18:20]
    if not year_text.isdigit():
        raise TLEParseError(f"Non-numeric epoch year: {year_text!r}")

    year = int(year_text)
    year += 2000 if year < EPOCH_YEAR_PIVOT else 1900

    day_of_year = _float_field(line1, 20, 32, 'epoch day')
    if not 1.0 <= day_of_year < 367.0:
        raise TLEParseError(f"Epoch day out of range: {day_of_year}")

    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=day_of_year - 1.0)


def parse_tle(line1: str, line2: str, name: Optional[str] = None) -> ElementRecord:
    """
    Parse a two-line element set using the fixed TLE columns.

    Args:
        line1: TLE line 1
        line2: TLE line 2
        name: Optional display name (defaults to the catalog number)

    Returns:
        ElementRecord with angles in radians

    Raises:
        TLEParseError: If the lines are malformed or describe an open orbit
    """
    line1 = line1.rstrip()
    line2 = line2.rstrip()

    if not line1.startswith('1 ') or not line2.startswith('2 '):
        raise TLEParseError("Invalid TLE format: lines must start with '1 ' and '2 '")
    if len(line1) < 61 or len(line2) < 63:
        raise TLEParseError(f"TLE lines too short ({len(line1)}, {len(line2)} chars)")

    catalog = line1[2:7].strip()
    if not catalog or catalog != line2[2:7].strip():
        raise TLEParseError(f"Catalog number mismatch: {line1[2:7]!r} vs {line2[2:7]!r}")

    for line in (line1, line2):
        if len(line) >= 69 and line[68].isdigit() and int(line[68]) != _checksum(line):
            logger.debug(f"TLE checksum mismatch for {catalog} (line {line[0]})")

    # Line 1
    epoch = _parse_epoch(line1)
    mean_motion_dot = _float_field(line1, 33, 43, 'mean motion derivative')
    bstar = _implied_decimal(line1[53:61], 'BSTAR')

    # Line 2
    inclination = _float_field(line2, 8, 16, 'inclination')
    raan = _float_field(line2, 17, 25, 'RAAN')
    ecc_text = line2[26:33].strip()
    if not ecc_text.isdigit():
        raise TLEParseError(f"Non-numeric eccentricity field: {ecc_text!r}")
    eccentricity = float('0.' + ecc_text)
    arg_perigee = _float_field(line2, 34, 42, 'argument of perigee')
    mean_anomaly = _float_field(line2, 43, 51, 'mean anomaly')
    mean_motion = _float_field(line2, 52, 63, 'mean motion')

    if eccentricity >= 1.0:
        raise TLEParseError(f"Eccentricity must be < 1, got {eccentricity}")
    if mean_motion <= 0.0:
        raise TLEParseError(f"Mean motion must be > 0, got {mean_motion}")

    return ElementRecord(
        body_id=catalog,
        name=name.strip() if name else catalog,
        epoch=epoch,
        mean_motion=mean_motion,
        eccentricity=eccentricity,
        inclination=math.radians(inclination),
        raan=math.radians(raan),
        arg_perigee=math.radians(arg_perigee),
        mean_anomaly=math.radians(mean_anomaly),
        bstar=bstar,
        mean_motion_dot=mean_motion_dot,
        line1=line1,
        line2=line2,
        source=SOURCE_PARSED,
    )


# Known-good element sets used when no valid record is available
FALLBACK_TLES: Dict[Body, tuple] = {
    Body.LUMELITE4: (
        '1 56309U 23057B   25268.21372113  .00018713  00000+0  92768-3 0  9997',
        '2 56309   9.9929 258.2316 0005640 174.9481 185.0791 15.14929629133702',
    ),
    Body.ISS: (
        '1 25544U 98067A   25001.50000000  .00016717  00000+0  30171-3 0  9999',
        '2 25544  51.6400 123.4567 0001234 123.4567 236.5432 15.49000000480000',
    ),
    Body.HUBBLE: (
        '1 20580U 90037B   25001.50000000  .00001234  00000+0  62345-4 0  9990',
        '2 20580  28.4692 345.6789 0002500 234.5678 125.4321 15.15000000700009',
    ),
    Body.STARLINK: (
        '1 44294U 19029A   25001.50000000  .00001234  00000+0  12345-4 0  9995',
        '2 44294  53.0000 234.5678 0001234 345.6789  14.3210 15.06000000300006',
    ),
    Body.TIANGONG: (
        '1 48274U 21035A   25001.50000000  .00021234  00000+0  24345-3 0  9991',
        '2 48274  41.4700 156.7890 0001234 267.8901  92.1098 15.60000000210006',
    ),
    Body.GPS: (
        '1 36585U 10022A   25001.50000000 -.00000045  00000+0  00000+0 0  9993',
        '2 36585  55.0000  78.9012 0001234 189.0123 171.0987  2.00561000108006',
    ),
}

# Mean lunar elements at J2000, referred to the equator
MOON_RECORD = ElementRecord(
    body_id=Body.MOON.value,
    name=BODY_CONFIGS[Body.MOON].name,
    epoch=datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
    mean_motion=1.0 / MOON_PERIOD_DAYS,
    eccentricity=0.0549,
    inclination=math.radians(23.5),
    raan=math.radians(125.08),
    arg_perigee=math.radians(318.15),
    mean_anomaly=math.radians(134.963),
    source=SOURCE_CONSTANT,
)

_fallback_cache: Dict[Body, ElementRecord] = {}
_fallback_warned: Set[Body] = set()


def fallback_record(body: Union[Body, str]) -> Optional[ElementRecord]:
    """
    Get the known-good record for a body.

    Args:
        body: Body, body name or NORAD id

    Returns:
        ElementRecord, or None if the body has no fallback
    """
    try:
        body = resolve_body(body)
    except KeyError:
        return None

    if body is Body.MOON:
        return MOON_RECORD

    if body not in _fallback_cache:
        lines = FALLBACK_TLES.get(body)
        if lines is None:
            return None
        record = parse_tle(lines[0], lines[1], get_body_config(body).name)
        _fallback_cache[body] = replace(record, source=SOURCE_FALLBACK)

    return _fallback_cache[body]


def parse_tle_or_fallback(body: Union[Body, str], line1: str, line2: str,
                          name: Optional[str] = None) -> Optional[ElementRecord]:
    """
    Parse a TLE, substituting the body's fallback record if it is malformed.

    The substitution is logged once per body.

    Args:
        body: Body the lines are expected to describe
        line1: TLE line 1
        line2: TLE line 2
        name: Optional display name

    Returns:
        Parsed or fallback ElementRecord (None if parsing failed and no fallback exists)
    """
    try:
        return parse_tle(line1, line2, name)
    except TLEParseError as e:
        record = fallback_record(body)
        try:
            key = resolve_body(body)
        except KeyError:
            key = None

        if key not in _fallback_warned:
            if key is not None:
                _fallback_warned.add(key)
            if record is not None:
                logger.warning(f"Malformed TLE for {body}: {e}; using fallback record")
            else:
                logger.warning(f"Malformed TLE for {body}: {e}; no fallback available")
        return record


def load_tle_file(tle_file: Union[str, Path]) -> List[ElementRecord]:
    """
    Load element records from a TLE text file.

    Accepts 3-line (name, line1, line2) and bare 2-line groups. Malformed
    groups are skipped with a warning.

    Args:
        tle_file: Path to TLE file

    Returns:
        List of parsed records in file order
    """
    path = Path(tle_file)
    if not path.exists():
        logger.error(f"TLE file not found: {path}")
        raise FileNotFoundError(f"TLE file not found: {path}")

    with open(path, 'r') as f:
        lines = [line.rstrip() for line in f if line.strip()]

    records = []
    i = 0
    while i < len(lines) - 1:
        if lines[i].startswith('1 ') and lines[i + 1].startswith('2 '):
            name, line1, line2 = None, lines[i], lines[i + 1]
            step = 2
        elif i + 2 < len(lines) and lines[i + 1].startswith('1 ') and lines[i + 2].startswith('2 '):
            name, line1, line2 = lines[i].strip(), lines[i + 1], lines[i + 2]
            step = 3
        else:
            logger.warning(f"Skipping unrecognised TLE line {i + 1}: {lines[i][:30]!r}")
            i += 1
            continue

        try:
            record = parse_tle(line1, line2, name)
            records.append(record)
            logger.debug(f"Loaded TLE: {record.name}")
        except TLEParseError as e:
            logger.warning(f"Failed to parse TLE for {name or line1[2:7]}: {e}")

        i += step

    logger.info(f"Loaded {len(records)} records from {path}")
    return records
