"""Merge discovered references into a user's stored bibliography."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable

import structlog

from asesor.models import UNKNOWN_AUTHOR, Reference
from asesor.utils import first_author_surname
from .storage import ReferenceStore

logger = structlog.get_logger(__name__)

YEAR_PATTERN = re.compile(r"^\d{4}$")

AuthorMatcher = Callable[[Reference, Reference], bool]


class InvalidReferenceError(ValueError):
    """Raised when a reference is not acceptable for persistence."""


@dataclass(slots=True)
class SyncResult:
    checked: int = 0
    marked_used: list[str] = field(default_factory=list)
    marked_unused: list[str] = field(default_factory=list)

    @property
    def writes(self) -> int:
        return len(self.marked_used) + len(self.marked_unused)


def author_contains_match(existing: Reference, candidate: Reference) -> bool:
    """Loose identity: same year and the stored author contains the surname.

    No case folding or accent stripping is applied.
    """
    surname = first_author_surname(candidate.author)
    if not surname:
        return False
    return existing.year == candidate.year and surname in existing.author


def validate_reference(reference: Reference) -> None:
    """Reject records too poor to store."""
    author = reference.author.strip()
    if not author or author.lower() == UNKNOWN_AUTHOR:
        raise InvalidReferenceError("Reference has no recognizable author.")
    if not YEAR_PATTERN.match(reference.year or ""):
        raise InvalidReferenceError(f"Year must have four digits, got {reference.year!r}.")
    if not reference.title.strip():
        raise InvalidReferenceError("Reference title is empty.")


def citation_pattern(reference: Reference) -> re.Pattern[str]:
    """Pattern that finds ``Surname ... Year`` citations of a reference.

    Covers ``(García, 2021)``, ``García (2021)``, ``García et al. (2021)`` and
    bibliography entries such as ``García, R. (2021).``
    """
    surname = re.escape(first_author_surname(reference.author))
    year = re.escape(reference.year)
    return re.compile(rf"\b{surname}\b[^()\d]{{0,80}}?\(?\s*{year}\b")


class ReferenceReconciler:
    """Applies the insert / flag-update policy against a reference store."""

    def __init__(self, store: ReferenceStore, matcher: AuthorMatcher = author_contains_match) -> None:
        self._store = store
        self._matcher = matcher

    async def add_reference(self, owner_id: str, reference: Reference) -> Reference:
        """Validate and store a manually entered reference."""
        validate_reference(reference)
        reference_id = await self._store.insert(owner_id, reference)
        logger.info("reconcile.manual_insert", owner=owner_id, id=reference_id)
        return reference.model_copy(update={"id": reference_id})

    async def reconcile(
        self,
        owner_id: str,
        candidates: Iterable[Reference],
        existing: list[Reference] | None = None,
    ) -> int:
        """Merge ``candidates`` into the store and return how many were inserted.

        A candidate matching a stored record never changes its descriptive
        fields; only a missing ``in_document`` flag is switched on.
        """
        known = list(existing) if existing is not None else await self._store.select(owner_id)
        inserted = 0
        for candidate in candidates:
            match = self._find_match(known, candidate)
            if match is None:
                reference_id = await self._store.insert(owner_id, candidate)
                known.append(candidate.model_copy(update={"id": reference_id}))
                inserted += 1
                logger.info("reconcile.insert", owner=owner_id, key=candidate.key)
                continue
            if candidate.in_document and not match.in_document:
                await self._store.update(match.id, in_document=True)
                match.in_document = True
                logger.info("reconcile.flag_update", owner=owner_id, id=match.id)
        return inserted

    async def sync(self, owner_id: str, document_text: str) -> SyncResult:
        """Recompute every stored ``in_document`` flag from the document text."""
        result = SyncResult()
        text = document_text or ""
        for reference in await self._store.select(owner_id):
            result.checked += 1
            used = bool(reference.surname) and bool(citation_pattern(reference).search(text))
            if used == reference.in_document:
                continue
            await self._store.update(reference.id, in_document=used)
            if used:
                result.marked_used.append(reference.id)
            else:
                result.marked_unused.append(reference.id)
        logger.info("reconcile.sync", owner=owner_id, checked=result.checked, writes=result.writes)
        return result

    def _find_match(self, known: list[Reference], candidate: Reference) -> Reference | None:
        for existing in known:
            if self._matcher(existing, candidate):
                return existing
        return None
