"""Person operations for PoliticalGraph."""

from typing import Iterator

from establishment.errors import NotFoundError
from establishment.logging_config import get_logger
from establishment.models import Person
from establishment.store.base import BackingStore

logger = get_logger(__name__)


class PersonListing:
    """Lazy, restartable view of all persons; each iteration re-queries the store."""

    def __init__(self, store: BackingStore):
        self._store = store

    def __iter__(self) -> Iterator[Person]:
        return self._store.iter_persons()


class PersonOperations:
    """Create and read Person nodes."""

    def __init__(self, store: BackingStore):
        self.store = store

    def add(self, person: Person) -> None:
        """Insert a person; AlreadyExistsError if the id is taken."""
        logger.info(f'Adding person: id={person.id}, name={person.name}')
        self.store.create_person(person)

    def get(self, person_id: str) -> Person:
        person = self.store.fetch_person(person_id)
        if person is None:
            logger.info(f'Person not found for ID: {person_id}')
            raise NotFoundError(f"Person {person_id} not found")
        return person

    def get_all(self) -> PersonListing:
        return PersonListing(self.store)
