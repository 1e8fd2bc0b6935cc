"""
Compact, versioned encoding of the dashboard view state for URL fragments.

    state -> canonical JSON -> zlib -> URL-safe base64 (unpadded)

The encoded string only uses the characters A-Z a-z 0-9 - _ and can be put
after '#' without escaping.

Versions:
    1: date window and selector contents
    2: adds the pinned comparison points A and B

Version 1 links from the first dashboard were lz-string compressToBase64
output; decode() still reads them.
"""

import base64
import json
import logging
import zlib
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Optional, Tuple

from lzstring import LZString

from comparison import PinnedSelection
from config import STATE_VERSION

logger = logging.getLogger(__name__)


def _sorted_tuple(labels: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(labels))


def _label_list(data: Dict[str, Any], key: str) -> list:
    labels = data[key]
    if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
        raise TypeError(f"'{key}' must be a list of labels, got {labels!r}")
    return labels


@dataclass(frozen=True)
class ViewState:
    version: int
    date_lo: date
    date_hi: date
    option_selection: Tuple[str, ...] = ()
    case_selection: Tuple[str, ...] = ()
    run_selection: Tuple[str, ...] = ()
    step_metric_selection: Tuple[str, ...] = ()
    pinned_a: PinnedSelection = field(default_factory=PinnedSelection)
    pinned_b: PinnedSelection = field(default_factory=PinnedSelection)

    def __post_init__(self):
        # Selections are sets; keep them sorted so equal states compare equal
        for name in ("option_selection", "case_selection", "run_selection", "step_metric_selection"):
            object.__setattr__(self, name, _sorted_tuple(getattr(self, name)))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "version": self.version,
            "dateLo": self.date_lo.isoformat(),
            "dateHi": self.date_hi.isoformat(),
            "optionSelection": list(self.option_selection),
            "caseSelection": list(self.case_selection),
            "runSelection": list(self.run_selection),
            "smSelection": list(self.step_metric_selection),
        }
        if self.version >= 2:
            data["pinnedA"] = self.pinned_a.to_dict()
            data["pinnedB"] = self.pinned_b.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewState":
        version = data["version"]
        return cls(
            version=version,
            date_lo=date.fromisoformat(data["dateLo"]),
            date_hi=date.fromisoformat(data["dateHi"]),
            option_selection=_label_list(data, "optionSelection"),
            case_selection=_label_list(data, "caseSelection"),
            run_selection=_label_list(data, "runSelection"),
            step_metric_selection=_label_list(data, "smSelection"),
            pinned_a=PinnedSelection.from_dict(data.get("pinnedA")) if version >= 2 else PinnedSelection(),
            pinned_b=PinnedSelection.from_dict(data.get("pinnedB")) if version >= 2 else PinnedSelection(),
        )


def encode(state: ViewState) -> str:
    payload = json.dumps(state.to_dict(), separators=(",", ":"), ensure_ascii=False)
    compressed = zlib.compress(payload.encode("utf-8"), 9)
    return base64.urlsafe_b64encode(compressed).decode("ascii").rstrip("=")


def _zlib_payload(text: str) -> Any:
    padded = text + "=" * (-len(text) % 4)
    compressed = base64.b64decode(padded, altchars=b"-_", validate=True)
    return json.loads(zlib.decompress(compressed).decode("utf-8"))


def _lzstring_payload(text: str) -> Any:
    """Payload of a link made by the first dashboard: lz-string compressToBase64 of the JSON."""
    payload = LZString().decompressFromBase64(text)
    if not payload:
        raise ValueError("not an lz-string payload")
    return json.loads(payload)


def decode(text: str, max_version: int = STATE_VERSION) -> Optional[ViewState]:
    """
    Decode an encoded state.

    Strings that are not zlib/base64 encoded are tried as lz-string base64,
    the format of version 1 links.

    Returns:
        The ViewState, or None if the text is malformed or of a version newer
        than max_version (the error is logged)
    """
    text = text.strip().lstrip("#")
    if not text:
        logger.error("Cannot decode empty state")
        return None

    try:
        data = _zlib_payload(text)
    except (ValueError, zlib.error) as e:
        logger.debug(f"Not a zlib state string ({e}), trying lz-string")
        try:
            data = _lzstring_payload(text)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Malformed state string: {e!r}")
            return None

    if not isinstance(data, dict):
        logger.error(f"Malformed state: expected an object, got {type(data).__name__}")
        return None

    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        logger.error(f"Invalid state version '{version}'")
        return None
    if version > max_version:
        logger.error(f"Cannot handle state version '{version}' (newest known is {max_version})")
        return None

    try:
        return ViewState.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.error(f"Malformed state (version {version}): {e!r}")
        return None
