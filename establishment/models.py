"""Data models for the establishment graph and its users."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class RelationshipType(str, Enum):
    """Types of relationships between persons."""
    FAMILY = "FAMILY"
    COLLEAGUE = "COLLEAGUE"
    PARTY = "PARTY"
    BUSINESS = "BUSINESS"
    FRIEND = "FRIEND"


class Person(BaseModel):
    """Person node with attributes."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    occupation: str = ""
    party: Optional[str] = None
    collaboration_status: Optional[str] = None
    image_url: Optional[str] = None
    twitter: Optional[str] = None
    description: Optional[str] = None


class Relationship(BaseModel):
    """Directed, typed relationship between two persons."""

    source_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    type: RelationshipType
    details: str = ""

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the edge: (source, target, type)."""
        return self.source_id, self.target_id, self.type.value


class Graph(BaseModel):
    """Read-only projection of persons and the edges between them."""

    nodes: list[Person] = Field(default_factory=list)
    edges: list[Relationship] = Field(default_factory=list)


class User(BaseModel):
    """Registered user. The hash never leaves the auth layer."""

    id: str
    login: str
    email: str
    password_hash: str


class PublicUser(BaseModel):
    """Identity exposed to callers of a valid session."""

    login: str


class Session(BaseModel):
    """Login session, valid until expires_at (epoch seconds)."""

    id: str
    user_id: str
    expires_at: int

    def is_expired(self, now: float) -> bool:
        return self.expires_at < int(now)
