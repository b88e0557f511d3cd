"""Error kinds raised by the graph and auth layers."""


class EstablishmentError(Exception):
    """Base class for all domain errors."""
    pass


class ValidationError(EstablishmentError):
    """Malformed input, e.g. a missing required field."""
    pass


class NotFoundError(EstablishmentError):
    """Referenced entity is absent."""
    pass


class AlreadyExistsError(EstablishmentError):
    """Uniqueness violation."""
    pass


class InvalidRelationshipError(EstablishmentError):
    """Relationship whose source and target are the same person."""
    pass


class EndpointNotFoundError(EstablishmentError):
    """Relationship referencing a person that does not exist."""

    def __init__(self, source_id: str, target_id: str):
        super().__init__(
            f"One or both persons not found: source_id={source_id}, target_id={target_id}"
        )
        self.source_id = source_id
        self.target_id = target_id


class InvalidCredentialsError(EstablishmentError):
    """Unknown login or wrong password."""
    pass


class NoSessionError(EstablishmentError):
    """No session token supplied, or the session is unknown."""
    pass


class SessionExpiredError(EstablishmentError):
    """Session exists but its expiry has passed."""
    pass


class StoreError(EstablishmentError):
    """Connectivity, transport or query failure from the backing store."""
    pass


class StoreTimeoutError(StoreError):
    """Store call exceeded its deadline."""
    pass
