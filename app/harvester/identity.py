"""Canonical place identities for listing entries.

Every dedup and resume decision keys on the value returned by :func:`resolve`,
so two cards pointing at the same place must always normalise to the same
string. Query strings and fragments carry tracking noise and are dropped.
"""
from __future__ import annotations

import html
import urllib.parse

from .errors import MissingReference
from .models import PlaceIdentity, RawEntry

# Characters left unescaped when re-encoding a path. Map place paths use
# ``!``, ``:`` and ``@`` heavily, so those must survive canonicalisation.
_PATH_SAFE = "/:@!$&'()*+,;=-._~"


def normalize_reference(raw: str | None) -> str:
    """Return the canonical form of a detail-page reference, or ``""``."""

    if raw is None:
        return ""

    ref = html.unescape(str(raw)).strip()
    if not ref or ref == "#" or ref.lower().startswith("javascript:"):
        return ""
    if ref.startswith("//"):
        ref = "https:" + ref

    parts = urllib.parse.urlsplit(ref)
    path = urllib.parse.quote(urllib.parse.unquote(parts.path), safe=_PATH_SAFE)
    if len(path) > 1:
        path = path.rstrip("/") or "/"

    if not parts.scheme and not parts.netloc:
        return path if path not in {"", "/"} else ""

    return urllib.parse.urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), path, "", "")
    )


def resolve(entry: RawEntry) -> PlaceIdentity:
    """Return the :data:`PlaceIdentity` for *entry*.

    Raises :class:`MissingReference` when the card carries no usable
    detail-page reference (sponsored or decorative cards).
    """

    identity = normalize_reference(entry.reference())
    if not identity:
        raise MissingReference(f"entry {getattr(entry, 'index', '?')} has no detail reference")
    return identity


__all__ = ["normalize_reference", "resolve"]
