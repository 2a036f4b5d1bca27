"""Identifier generation for batches and other engine-assigned ids."""
from typing import Protocol
from uuid import uuid4


class IdGenerator(Protocol):
    def new_id(self) -> str:
        """Return a fresh, unique identifier."""


class UuidGenerator:
    """Default generator: random UUID4 strings."""

    def new_id(self) -> str:
        return str(uuid4())
