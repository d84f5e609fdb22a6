"""ETI code validation for B2B volumes."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from litestar_expresso.exceptions import DuplicateCodeError, UnknownCodeError

logger = logging.getLogger(__name__)

ETI_PREFIX = "ETI-"
_ETI_DIGITS = re.compile(r"^\d{1,4}$")


def fallback_eti_codes(volume_count: int) -> list[str]:
    """Placeholder ETI codes for shipments with no persisted labels.

    Always ``ETI-0001`` up to ``ETI-{volume_count:04d}``.
    """
    return [f"{ETI_PREFIX}{number:04d}" for number in range(1, volume_count + 1)]


def normalize_eti_code(value: str) -> str:
    """Expand bare label digits (``"7"``, ``"0007"``) into ``ETI-0007``."""
    value = value.strip().upper()
    if _ETI_DIGITS.match(value):
        return f"{ETI_PREFIX}{value.zfill(4)}"
    return value


def _key(code: str) -> str:
    return code.strip().casefold()


class CodeValidator:
    """Tracks which required codes have been scanned for one shipment.

    A submitted code is accepted when, ignoring case, it equals a required
    code, is contained in one, or contains one. The same input submitted twice
    is a duplicate, and so is an input whose matching codes are all
    validated already.

    ``on_complete`` is called each time the validator goes from incomplete to
    complete, with the photo passed to the completing :meth:`submit` call.
    """

    def __init__(
        self,
        required_codes: Sequence[str],
        on_complete: Callable[[Any | None], None] | None = None,
    ) -> None:
        self._required = list(dict.fromkeys(c.strip() for c in required_codes))
        self._on_complete = on_complete
        # required code -> input that validated it
        self._validated: dict[str, str] = {}

    @property
    def required_codes(self) -> list[str]:
        return list(self._required)

    @property
    def validated_codes(self) -> list[str]:
        return [code for code in self._required if code in self._validated]

    @property
    def remaining_codes(self) -> list[str]:
        return [code for code in self._required if code not in self._validated]

    @property
    def validated_count(self) -> int:
        return len(self._validated)

    @property
    def required_count(self) -> int:
        return len(self._required)

    @property
    def is_complete(self) -> bool:
        return self.validated_count >= self.required_count

    def _matches(self, key: str) -> list[str]:
        exact = [code for code in self._required if _key(code) == key]
        if exact:
            return exact
        return [
            code
            for code in self._required
            if key in _key(code) or _key(code) in key
        ]

    def match(self, code: str) -> str:
        """Return the required code ``code`` would validate, without recording.

        Raises:
            UnknownCodeError: The input is blank or matches no required code.
            DuplicateCodeError: The input was accepted before, or every
                matching required code is already validated.
        """
        key = _key(code)
        if not key:
            raise UnknownCodeError(code)
        if key in {_key(scanned) for scanned in self._validated.values()}:
            raise DuplicateCodeError(code)
        matches = self._matches(key)
        if not matches:
            raise UnknownCodeError(code)
        for candidate in matches:
            if candidate not in self._validated:
                return candidate
        raise DuplicateCodeError(code)

    def submit(self, code: str, photo: Any | None = None) -> str:
        """Validate ``code`` and return the required code it matched."""
        was_complete = self.is_complete
        matched = self.match(code)
        self._validated[matched] = code.strip()
        logger.debug(
            "Code %r validated volume %s (%d/%d)",
            code,
            matched,
            self.validated_count,
            self.required_count,
        )
        if not was_complete and self.is_complete:
            self._notify(photo)
        return matched

    def submit_all(self, codes: Iterable[str]) -> list[str]:
        return [self.submit(code) for code in codes]

    def unvalidate(self, required_code: str) -> None:
        """Drop a validated volume so it has to be scanned again."""
        self._validated.pop(required_code.strip(), None)

    def _notify(self, photo: Any | None) -> None:
        if self._on_complete is not None:
            self._on_complete(photo)
