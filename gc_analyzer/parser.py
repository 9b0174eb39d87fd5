"""
Log parser interface.

Turning raw JVM GC log text into events is the job of an external parser
plugged in through GcLogParser. The bundled JsonLinesLogParser reads logs
that have already been converted to one JSON-encoded GcEvent per line.
"""

import json
import logging
from abc import ABC, abstractmethod

from gc_common.errors import LogParseError
from gc_common.models import GcEvent

logger = logging.getLogger(__name__)


class GcLogParser(ABC):
    """Converts an uploaded log into GC events."""

    @abstractmethod
    def parse(self, data: bytes) -> list[GcEvent]:
        """
        Parse the complete contents of an uploaded log.

        Args:
            data: Raw bytes exactly as uploaded

        Returns:
            Events in log order

        Raises:
            LogParseError: If the log is malformed
        """
        pass


class JsonLinesLogParser(GcLogParser):
    """
    Parses logs holding one JSON object per line.

    Each object uses the GcEvent.to_dict() layout. Blank lines are ignored.
    """

    def parse(self, data: bytes) -> list[GcEvent]:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise LogParseError(f"Log is not valid UTF-8: {e}") from e

        events = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                if not isinstance(record, dict):
                    raise TypeError("expected a JSON object")
                events.append(GcEvent.from_dict(record))
            except (
                json.JSONDecodeError,
                KeyError,
                TypeError,
                ValueError,
                RecursionError,
            ) as e:
                raise LogParseError(f"Malformed event on line {lineno}: {e}") from e

        logger.debug(f"Parsed {len(events)} events")
        return events
