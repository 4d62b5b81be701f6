"""Core data types for the matchday application."""

from typing import Any, Optional, TypedDict


class _FirestoreDocumentBase(TypedDict):
    id: str
    createdAt: Any


class FirestoreDocument(_FirestoreDocumentBase, total=False):
    """Generic Firestore document structure."""

    path: str
    updatedAt: Any


class Participant(TypedDict, total=False):
    """A participant as supplied by the identity provider."""

    id: str
    displayName: str
    photoURL: Optional[str]
