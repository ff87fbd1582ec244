"""Conversion between human supplied dates and stored epoch strings."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

from .errors import InvalidDateFormat

DEFAULT_DATE_FORMAT = "%Y-%m-%d"


class EpochConverter:
    """Render dates as decimal epoch-second strings in UTC.

    Both sides of every stored comparison come from this class, so the
    representation is always a plain base-10 integer without padding.
    """

    def __init__(
        self,
        date_format: str = DEFAULT_DATE_FORMAT,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._date_format = date_format
        self._clock = clock

    @property
    def date_format(self) -> str:
        return self._date_format

    def to_epoch_seconds(self, date_string: str) -> str:
        if not isinstance(date_string, str):
            raise InvalidDateFormat(date_string, self._date_format)
        try:
            parsed = datetime.strptime(date_string.strip(), self._date_format)
        except ValueError as exc:
            raise InvalidDateFormat(date_string, self._date_format) from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return str(int(parsed.timestamp()))

    def to_date_string(self, epoch: str) -> str:
        moment = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
        return moment.strftime(self._date_format)

    def now(self) -> str:
        return str(int(self._clock()))


__all__ = ["DEFAULT_DATE_FORMAT", "EpochConverter"]
