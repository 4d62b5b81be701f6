"""Core module for the matchday application."""

from .types import FirestoreDocument, Participant

__all__ = ["FirestoreDocument", "Participant"]
