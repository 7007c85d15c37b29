"""API key slot helpers: ids, fingerprints, and slot references."""

from __future__ import annotations

import hashlib
import re

from xyte.core.exceptions import ProfileError

DEFAULT_SLOT_ID = "default"

XYTE_PROVIDERS: tuple[str, ...] = ("xyte-org", "xyte-partner", "xyte-device")

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def make_key_fingerprint(secret: str) -> str:
    """Short, non-reversible identifier for a secret (first 12 hex chars of sha256)."""
    return "sha256:" + hashlib.sha256(secret.encode("utf-8")).hexdigest()[:12]


def slugify_slot_name(name: str) -> str:
    slug = _NON_SLUG_RE.sub("-", name.strip().lower()).strip("-")
    return slug or DEFAULT_SLOT_ID


def build_slot_id(name: str, existing_slot_ids: set[str]) -> str:
    """Slugify ``name`` and suffix ``-2``, ``-3``... until it is unique."""
    base = slugify_slot_name(name)
    if base not in existing_slot_ids:
        return base
    counter = 2
    while f"{base}-{counter}" in existing_slot_ids:
        counter += 1
    return f"{base}-{counter}"


def matches_slot_ref(slot_id: str, slot_name: str, slot_ref: str) -> bool:
    """True if ``slot_ref`` names the slot by id or display name (case-insensitive)."""
    needle = slot_ref.strip().lower()
    if not needle:
        return False
    return slot_id.lower() == needle or slot_name.lower() == needle


def ensure_slot_name(name: str) -> str:
    trimmed = name.strip()
    if not trimmed:
        raise ProfileError("Slot name must not be empty.")
    return trimmed
