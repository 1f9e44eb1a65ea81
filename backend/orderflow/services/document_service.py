# Overview: Allocation of human-readable sequence numbers for orders and receipts.

from __future__ import annotations

from ..extensions import db
from ..models import DocumentSequence
from .concurrency import lock_for_update


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_sequence_number(document_type: str) -> int:
    """
    Allocate the next number for a document type inside the caller's transaction.

    The sequence row is locked for the rest of the transaction, so concurrent
    allocators serialize on it. Numbers start at 1 and are never reused once
    the enclosing transaction commits.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    seq = lock_for_update(
        db.session.query(DocumentSequence).filter_by(document_type=document_type)
    ).first()

    if seq is None:
        seq = DocumentSequence(document_type=document_type, next_number=1)
        db.session.add(seq)

    number = seq.next_number
    seq.next_number = number + 1
    db.session.flush()
    return number
