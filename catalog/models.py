"""
catalog/models.py -- Domain dataclasses for the HomeCinema movie catalog.

Pure data containers. Persistence and paging live in catalog/store.py.

The catalog never looks at users or roles; access control happens at the
HTTP boundary before any catalog code runs.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Stock:
    """One physical copy of a movie available for rental.

    unique_key is a UUID4 string generated when the stock row is created.
    """

    movie_id: int
    unique_key: str
    is_available: bool = True
    id: Optional[int] = None


@dataclass
class Movie:
    """A catalog entry.

    release_date is an ISO date (YYYY-MM-DD); string comparison orders it
    correctly. image is the stored file name of the uploaded poster, empty
    until one is uploaded.

    id is None before the record is written to the database.
    """

    title: str
    genre: str
    release_date: str
    description: str = ""
    director: str = ""
    writer: str = ""
    producer: str = ""
    rating: int = 0
    trailer_uri: str = ""
    image: str = ""
    id: Optional[int] = None
    stocks: list[Stock] = field(default_factory=list)

    @property
    def number_of_stocks(self) -> int:
        return len(self.stocks)

    @property
    def is_available(self) -> bool:
        return any(s.is_available for s in self.stocks)
