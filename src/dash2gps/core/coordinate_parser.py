"""Parse degrees/minutes/seconds overlay text into coordinates."""

import re
from typing import Dict, List, Mapping, Optional

from dash2gps.core.errors import ParseFailure
from dash2gps.core.models import Coordinate

# Common OCR confusions on dashcam overlays, applied before numeric parsing.
# Keys may be longer than one character; they are replaced in order.
DEFAULT_SUBSTITUTIONS: Dict[str, str] = {
    # letters read in place of digits
    "O": "0",
    "Q": "0",
    "D": "0",
    "l": "1",
    "I": "1",
    "|": "1",
    # typographic marks
    "’": "'",
    "‘": "'",
    "′": "'",
    "`": "'",
    "´": "'",
    "”": '"',
    "“": '"',
    "″": '"',
    "º": "°",
    "˚": "°",
}

_HEMISPHERE_CASE = str.maketrans({"n": "N", "s": "S", "e": "E", "w": "W"})

# Anything else is noise (speed, clock, date, stray glyphs)
_OUTSIDE_CHARSET_RE = re.compile(r"[^0-9.,°'\"NSEW\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def _dms(prefix: str) -> str:
    # degrees ° minutes <' or " or space> seconds [second mark]
    return (
        rf"(?<!\d)(?P<{prefix}_deg>\d{{1,3}})\s?°\s?"
        rf"(?P<{prefix}_min>\d{{1,2}})(?:\s?['\"]\s?|\s)"
        rf"(?P<{prefix}_sec>\d{{1,2}}(?:\.\d+)?)(?!\.?\d)"
        rf"(?:\s?(?:''|[\"']))?"
    )


# N51°25 48" E0°19 20"
_HEMISPHERE_FIRST_RE = re.compile(
    rf"(?P<lat_hemi>[NS])\s?{_dms('lat')}[\s,]*(?P<lon_hemi>[EW])\s?{_dms('lon')}"
)

# 51°25'46"N 0°19'25"E
_HEMISPHERE_LAST_RE = re.compile(
    rf"{_dms('lat')}\s?(?P<lat_hemi>[NS])[\s,]*{_dms('lon')}\s?(?P<lon_hemi>[EW])"
)

_LAYOUTS = (_HEMISPHERE_FIRST_RE, _HEMISPHERE_LAST_RE)

_GROUP_RE = re.compile(_dms("g"))


def dms_to_decimal(
    degrees: float,
    minutes: float,
    seconds: float,
    hemisphere: str,
) -> float:
    """
    Convert degrees/minutes/seconds to signed decimal degrees.

    Args:
        degrees: Whole degrees
        minutes: Minutes (0-59)
        seconds: Seconds (0-59.999)
        hemisphere: One of N, S, E, W; S and W are negative

    Returns:
        Decimal degrees
    """
    value = degrees + minutes / 60.0 + seconds / 3600.0
    if hemisphere in ("S", "W"):
        value = -value
    # no "-0.0" for the equator / prime meridian
    return value if value != 0 else 0.0


class CoordinateParser:
    """
    Turn raw overlay OCR text into a validated Coordinate.

    Parsing is a pure function of the text and the substitution table;
    the parser holds no other state and is safe to share between threads.
    """

    def __init__(
        self,
        substitutions: Optional[Mapping[str, str]] = None,
        use_default_substitutions: bool = True,
    ):
        """
        Initialize coordinate parser.

        Args:
            substitutions: Extra OCR confusion fixes (misread -> intended)
            use_default_substitutions: Start from DEFAULT_SUBSTITUTIONS
        """
        table: Dict[str, str] = {}
        if use_default_substitutions:
            table.update(DEFAULT_SUBSTITUTIONS)
        if substitutions:
            table.update(substitutions)
        self.substitutions = table

    def normalize(self, text: str) -> str:
        """
        Normalize raw OCR text.

        Applies the substitution table, upper-cases hemisphere letters,
        blanks characters outside the overlay charset and collapses
        whitespace.

        Args:
            text: Raw OCR text

        Returns:
            Normalized text
        """
        for misread, intended in self.substitutions.items():
            text = text.replace(misread, intended)
        text = text.translate(_HEMISPHERE_CASE)
        text = _OUTSIDE_CHARSET_RE.sub(" ", text)
        return _WHITESPACE_RE.sub(" ", text).strip()

    def parse(self, text: str, index: Optional[int] = None) -> Coordinate:
        """
        Parse one coordinate pair from OCR text.

        Args:
            text: Raw OCR text
            index: Sample index to tag the coordinate with

        Returns:
            Validated Coordinate

        Raises:
            ParseFailure: If no valid coordinate pair can be read
        """
        raw_text = text or ""
        normalized = self.normalize(raw_text)

        if not normalized:
            raise ParseFailure("no text recognized", raw_text, index)

        match = None
        for layout in _LAYOUTS:
            match = layout.search(normalized)
            if match is not None:
                break

        if match is None:
            groups = len(_GROUP_RE.findall(normalized))
            if groups < 2:
                reason = f"expected two coordinate groups, found {groups}"
            else:
                reason = "missing or misplaced hemisphere letter"
            raise ParseFailure(reason, raw_text, index)

        latitude = self._convert(match, "lat", raw_text, index)
        longitude = self._convert(match, "lon", raw_text, index)

        if not -90.0 <= latitude <= 90.0:
            raise ParseFailure(f"latitude out of range ({latitude:.6f})", raw_text, index)
        if not -180.0 <= longitude <= 180.0:
            raise ParseFailure(f"longitude out of range ({longitude:.6f})", raw_text, index)

        return Coordinate(latitude=latitude, longitude=longitude, index=index)

    def _convert(self, match: "re.Match", prefix: str, raw_text: str, index: Optional[int]) -> float:
        degrees = int(match.group(f"{prefix}_deg"))
        minutes = int(match.group(f"{prefix}_min"))
        seconds = float(match.group(f"{prefix}_sec"))
        hemisphere = match.group(f"{prefix}_hemi")

        # base 60
        if minutes >= 60:
            raise ParseFailure(f"minutes out of range ({minutes})", raw_text, index)
        if seconds >= 60:
            raise ParseFailure(f"seconds out of range ({seconds:g})", raw_text, index)

        return dms_to_decimal(degrees, minutes, seconds, hemisphere)

    def parse_lines(self, text: str) -> List[Coordinate]:
        """
        Parse a multi-line OCR dump, one candidate coordinate per line.

        Lines that do not parse are dropped. Coordinates are tagged with
        their 0-based line number.

        Args:
            text: OCR text with one overlay reading per line

        Returns:
            Coordinates that parsed, in line order
        """
        coordinates = []
        for line_number, line in enumerate(text.splitlines()):
            try:
                coordinates.append(self.parse(line, index=line_number))
            except ParseFailure:
                continue
        return coordinates


def parse_coordinate(
    text: str,
    substitutions: Optional[Mapping[str, str]] = None,
    index: Optional[int] = None,
) -> Coordinate:
    """Parse one coordinate pair with the default substitution table plus ``substitutions``."""
    return CoordinateParser(substitutions).parse(text, index=index)


def parse_coordinates_from_lines(
    text: str,
    substitutions: Optional[Mapping[str, str]] = None,
) -> List[Coordinate]:
    """Parse every line of ``text`` that holds a valid coordinate pair."""
    return CoordinateParser(substitutions).parse_lines(text)
