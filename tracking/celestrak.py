"""
CelesTrak GP element fetcher.
"""

import logging
from typing import Optional, Union

import requests

from utils.bodies import Body, get_body_config, resolve_body
from utils.tle import ElementRecord, TLEParseError, parse_tle

logger = logging.getLogger(__name__)

DEFAULT_URL = 'https://celestrak.org/NORAD/elements/gp.php'


class CelestrakClient:
    """Fetches the current TLE for one catalog number at a time."""

    def __init__(self, url: str = DEFAULT_URL, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        """
        Args:
            url: GP query endpoint
            timeout: Request timeout (seconds)
            session: Optional requests session (default: module-level requests.get)
        """
        self.url = url
        self.timeout = timeout
        self.session = session

    def fetch_lines(self, norad_id: str) -> Optional[tuple]:
        """
        Fetch raw TLE lines.

        Args:
            norad_id: NORAD catalog number

        Returns:
            (name, line1, line2) with name None for a bare 2-line reply,
            or None on any network or format problem
        """
        params = {'CATNR': norad_id, 'FORMAT': 'TLE'}
        getter = self.session.get if self.session is not None else requests.get

        try:
            response = getter(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"CelesTrak request for {norad_id} failed: {e}")
            return None

        lines = [line.rstrip() for line in response.text.strip().splitlines() if line.strip()]
        if len(lines) >= 3 and lines[1].startswith('1 ') and lines[2].startswith('2 '):
            return lines[0].strip(), lines[1], lines[2]
        if len(lines) == 2 and lines[0].startswith('1 ') and lines[1].startswith('2 '):
            return None, lines[0], lines[1]

        logger.warning(f"Unexpected CelesTrak reply for {norad_id}: {response.text[:80]!r}")
        return None

    def fetch_record(self, body: Union[Body, str]) -> Optional[ElementRecord]:
        """
        Fetch and parse the current record for a body.

        Returns:
            Parsed ElementRecord, or None if the body has no catalog number
            or the fetch/parse failed
        """
        body = resolve_body(body)
        config = get_body_config(body)
        if config.norad_id is None:
            logger.debug(f"{body.value} has no NORAD id, nothing to fetch")
            return None

        fetched = self.fetch_lines(config.norad_id)
        if fetched is None:
            return None

        name, line1, line2 = fetched
        try:
            record = parse_tle(line1, line2, name or config.name)
        except TLEParseError as e:
            logger.warning(f"CelesTrak returned a malformed TLE for {body.value}: {e}")
            return None

        if record.body_id != config.norad_id:
            logger.warning(f"CelesTrak returned catalog {record.body_id} for {body.value}, expected {config.norad_id}")
            return None

        logger.info(f"Fetched {body.value} elements, epoch {record.epoch.isoformat()}")
        return record
