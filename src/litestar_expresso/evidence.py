"""Photo and signature capture ahead of a finalization upload."""

from __future__ import annotations

import logging
import secrets
import string
import time
import uuid
from dataclasses import dataclass, field

from litestar_expresso.enums import EvidenceKind

logger = logging.getLogger(__name__)

PHOTO_PREFIX = "shipment-photos"
SIGNATURE_PREFIX = "shipment-signatures"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def create_preview_url() -> str:
    """A fresh blob URL for a locally previewed file."""
    return f"blob:evidence/{uuid.uuid4()}"


def object_name(subject_id: str, kind: str = "photo", extension: str = "jpg") -> str:
    """Collision-resistant storage path for an evidence file.

    ``<prefix>/<kind>_<subject>_<epoch ms>_<random suffix>.<extension>``
    """
    prefix = SIGNATURE_PREFIX if kind == "signature" else PHOTO_PREFIX
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(7))
    millis = time.time_ns() // 1_000_000
    return f"{prefix}/{kind}_{subject_id}_{millis}_{suffix}.{extension}"


@dataclass
class CapturedFile:
    """A photo or signature held in memory until finalization."""

    content: bytes
    content_type: str = "image/jpeg"
    filename: str = ""
    preview_url: str = field(default="", compare=False)

    @property
    def extension(self) -> str:
        if self.content_type == "image/png":
            return "png"
        return "jpg"


@dataclass(frozen=True)
class UploadedEvidence:
    kind: EvidenceKind
    path: str
    url: str


class EvidenceCapture:
    """Photos and an optional signature collected for one transition.

    Every added photo gets a preview URL straight away; removing it revokes
    that URL. Previews live on the capture and are released once the flow
    has uploaded it.
    """

    def __init__(self) -> None:
        self._photos: list[CapturedFile] = []
        self._signature: CapturedFile | None = None
        # preview URL -> content, for previews not yet revoked
        self._previews: dict[str, bytes] = {}

    @classmethod
    def from_files(
        cls,
        photos: list[CapturedFile] | None = None,
        signature: CapturedFile | None = None,
    ) -> EvidenceCapture:
        capture = cls()
        for photo in photos or ():
            capture.add_photo(photo)
        if signature is not None:
            capture.set_signature(signature)
        return capture

    @property
    def photos(self) -> list[CapturedFile]:
        return list(self._photos)

    @property
    def signature(self) -> CapturedFile | None:
        return self._signature

    @property
    def has_photo(self) -> bool:
        return bool(self._photos)

    def __len__(self) -> int:
        return len(self._photos) + (1 if self._signature is not None else 0)

    @property
    def preview_count(self) -> int:
        return len(self._previews)

    def get_preview(self, url: str) -> bytes | None:
        return self._previews.get(url)

    def _preview(self, captured: CapturedFile) -> None:
        captured.preview_url = create_preview_url()
        self._previews[captured.preview_url] = captured.content

    def _revoke(self, captured: CapturedFile) -> None:
        self._previews.pop(captured.preview_url, None)

    def add_photo(self, photo: CapturedFile) -> CapturedFile:
        self._preview(photo)
        self._photos.append(photo)
        return photo

    def remove_photo(self, index: int) -> CapturedFile:
        photo = self._photos.pop(index)
        self._revoke(photo)
        return photo

    def set_signature(self, signature: CapturedFile) -> None:
        if self._signature is not None:
            self._revoke(self._signature)
        if not signature.content_type:
            signature.content_type = "image/png"
        self._preview(signature)
        self._signature = signature

    def release_previews(self) -> None:
        """Revoke every preview but keep the captured files."""
        self._previews.clear()

    def clear(self) -> None:
        """Drop everything, revoking all previews."""
        self.release_previews()
        self._photos = []
        self._signature = None
