"""
QR Payload Interpreter

Stickers printed over the years carry one of three payloads:
1. JSON with a `thesis_id` field (current format, also used for borrow codes)
2. A direct link to the thesis PDF in hosted storage (legacy)
3. A bare numeric thesis id

The interpreter tries them in that order and resolves the payload to a
single thesis, or fails with a reason the scanner screen can show.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from loguru import logger

from thesisvault.access.identity import parse_thesis_id
from thesisvault.errors import AmbiguousMatchError, InvalidInputError, NotFoundError
from thesisvault.storage.pdf_storage import extract_filename
from thesisvault.storage.thesis_repository import StoredThesis, ThesisRepository

DEFAULT_STORAGE_MARKERS = ("storage",)

# ASCII digits only
BARE_ID_PATTERN = re.compile(r"[0-9]+")


class PayloadKind(str, Enum):
    """Recognized QR payload shapes."""
    JSON = "json"
    FILE_URL = "file_url"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class QRPayload:
    """A classified payload: the shape plus the lookup value it carries."""

    kind: PayloadKind
    value: Any


def _parse_json_object(raw: str) -> Optional[dict]:
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _is_storage_pdf_link(raw: str, markers: Sequence[str]) -> bool:
    lowered = raw.lower()
    if not any(marker.lower() in lowered for marker in markers):
        return False
    path = lowered.split("?")[0].split("#")[0].rstrip()
    return path.endswith(".pdf")


def classify(raw: str, storage_markers: Sequence[str] = DEFAULT_STORAGE_MARKERS) -> QRPayload:
    """
    Classify scanned text. First match wins.

    Args:
        raw: Text decoded from the QR code
        storage_markers: Path fragments that identify a hosted-storage link

    Returns:
        QRPayload

    Raises:
        InvalidInputError: the text matches none of the known shapes
    """
    if raw is None or not str(raw).strip():
        raise InvalidInputError("QR code is empty")

    raw = str(raw)

    data = _parse_json_object(raw)
    if data is not None and data.get("thesis_id") is not None:
        return QRPayload(PayloadKind.JSON, data["thesis_id"])

    if _is_storage_pdf_link(raw, storage_markers):
        return QRPayload(PayloadKind.FILE_URL, raw.strip())

    bare = raw.strip()
    if BARE_ID_PATTERN.fullmatch(bare):
        return QRPayload(PayloadKind.NUMERIC, int(bare))

    raise InvalidInputError(
        "QR code does not contain valid thesis information",
        detail="Unrecognized QR payload",
    )


class QRPayloadInterpreter:
    """Resolves scanned QR text to a thesis record."""

    def __init__(
        self,
        thesis_repository: ThesisRepository,
        storage_markers: Sequence[str] = DEFAULT_STORAGE_MARKERS,
    ):
        """
        Initialize interpreter.

        Args:
            thesis_repository: Thesis lookups
            storage_markers: Path fragments that identify a hosted-storage link
        """
        self.theses = thesis_repository
        self.storage_markers = tuple(storage_markers)

    def interpret(self, raw: str) -> StoredThesis:
        """
        Resolve scanned text to exactly one thesis.

        Raises:
            InvalidInputError: unrecognized payload or malformed id
            NotFoundError: well-formed payload, but no such thesis
            AmbiguousMatchError: file name matches more than one thesis
        """
        payload = classify(raw, self.storage_markers)
        logger.info(f"QR payload classified as {payload.kind.value}")

        if payload.kind == PayloadKind.FILE_URL:
            return self.thesis_by_file_url(payload.value)

        return self.thesis_by_id(payload.value)

    def thesis_by_id(self, raw_id: Any) -> StoredThesis:
        thesis_id = parse_thesis_id(raw_id)

        thesis = self.theses.get(thesis_id)
        if thesis is None:
            raise NotFoundError("Thesis", thesis_id)

        return thesis

    def thesis_by_file_url(self, url: str) -> StoredThesis:
        filename = extract_filename(url)
        if not filename:
            raise InvalidInputError("QR link does not name a file", detail=url)

        matches = self.theses.find_by_file_fragment(filename, limit=2)

        if not matches:
            raise NotFoundError("Thesis", filename)

        if len(matches) > 1:
            logger.warning(f"File name '{filename}' matches several theses")
            raise AmbiguousMatchError(filename, len(matches))

        logger.info(f"Found thesis {matches[0].thesis_id} for file {filename}")
        return matches[0]
