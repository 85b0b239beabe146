"""
catalog/store.py -- SQLAlchemy-backed persistence layer for the movie catalog.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. CatalogStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CatalogStore()
    movie_id = store.create_movie(movie, number_of_stocks=3)
    movies, total = store.page_movies(page=0, page_size=3, title_filter="alien")
    store.update_movie(movie_id, rating=5)
    store.set_image(movie_id, "poster.jpg")
    store.close()
"""

import logging
import uuid
from math import ceil
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine

from catalog.models import Movie, Stock

logger = logging.getLogger("homecinema.catalog")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'homecinema_catalog.db'}"

LATEST_COUNT = 6

# Columns a caller may change through update_movie(). id and stocks are not
# editable; image has its own setter used by the upload route.
_EDITABLE_FIELDS = {
    "title",
    "description",
    "genre",
    "director",
    "writer",
    "producer",
    "release_date",
    "rating",
    "trailer_uri",
}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_movies = Table(
    "movies",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(100), nullable=False),
    Column("description", Text, nullable=False, server_default=""),
    Column("image", String(255), nullable=False, server_default=""),
    Column("genre", String(50), nullable=False),
    Column("director", String(100), nullable=False, server_default=""),
    Column("writer", String(100), nullable=False, server_default=""),
    Column("producer", String(100), nullable=False, server_default=""),
    Column("release_date", String(10), nullable=False),  # YYYY-MM-DD
    Column("rating", Integer, nullable=False, server_default="0"),
    Column("trailer_uri", String(255), nullable=False, server_default=""),
)

_stocks = Table(
    "stocks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("movie_id", Integer, ForeignKey("movies.id", ondelete="CASCADE"), nullable=False),
    Column("unique_key", String(36), nullable=False, unique=True),
    Column("is_available", Integer, nullable=False, server_default="1"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def total_pages(total_count: int, page_size: int) -> int:
    """Number of pages needed to show total_count items page_size at a time."""
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return ceil(total_count / page_size)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Movies
    # ------------------------------------------------------------------

    def create_movie(self, movie: Movie, number_of_stocks: int = 0) -> int:
        """Insert a movie plus number_of_stocks available stock rows.

        Movie and stocks are written in one transaction: a failure on any
        stock row leaves no movie behind.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _movies.insert().values(
                    title=movie.title,
                    description=movie.description,
                    image=movie.image,
                    genre=movie.genre,
                    director=movie.director,
                    writer=movie.writer,
                    producer=movie.producer,
                    release_date=movie.release_date,
                    rating=movie.rating,
                    trailer_uri=movie.trailer_uri,
                )
            )
            movie_id = result.inserted_primary_key[0]
            if number_of_stocks > 0:
                conn.execute(
                    _stocks.insert(),
                    [
                        {"movie_id": movie_id, "unique_key": str(uuid.uuid4()), "is_available": 1}
                        for _ in range(number_of_stocks)
                    ],
                )
        logger.info("Created movie_id=%s with %d stock(s)", movie_id, number_of_stocks)
        return movie_id

    def get_movie(self, movie_id: int) -> Optional[Movie]:
        """Fetch a single movie with its stocks. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_movies.select().where(_movies.c.id == movie_id)).fetchone()
            if row is None:
                return None
            stock_rows = conn.execute(
                _stocks.select().where(_stocks.c.movie_id == movie_id).order_by(_stocks.c.id)
            ).fetchall()
        return _row_to_movie(row, [_row_to_stock(s) for s in stock_rows])

    def latest_movies(self, limit: int = LATEST_COUNT) -> list[Movie]:
        """Return the newest movies by release date."""
        query = _movies.select().order_by(_movies.c.release_date.desc(), _movies.c.id.desc()).limit(limit)
        return self._fetch_with_stocks(query)

    def page_movies(self, page: int, page_size: int, title_filter: Optional[str] = None) -> tuple[list[Movie], int]:
        """Return one page of movies ordered by id, plus the total match count.

        title_filter is a case-insensitive substring match on the title,
        trimmed first. An empty or whitespace-only filter matches everything.
        """
        condition = None
        needle = (title_filter or "").strip().lower()
        if needle:
            condition = _movies.c.title.icontains(needle, autoescape=True)

        query = _movies.select().order_by(_movies.c.id).offset(page * page_size).limit(page_size)
        count_query = select(func.count()).select_from(_movies)
        if condition is not None:
            query = query.where(condition)
            count_query = count_query.where(condition)

        movies = self._fetch_with_stocks(query)
        with self.engine.connect() as conn:
            total = conn.execute(count_query).scalar() or 0
        return movies, total

    def update_movie(self, movie_id: int, **fields) -> bool:
        """Update editable fields on an existing movie.

        Unknown keys raise ValueError rather than being silently ignored.
        Returns True if a row was updated, False if movie_id was not found.
        """
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown movie fields: {unknown!r}")
        if not fields:
            return self.get_movie(movie_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_movies.update().where(_movies.c.id == movie_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_image(self, movie_id: int, file_name: str) -> bool:
        """Record the stored poster file name. Returns False if movie_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_movies.update().where(_movies.c.id == movie_id).values(image=file_name))
            conn.commit()
        return result.rowcount > 0

    def _fetch_with_stocks(self, query) -> list[Movie]:
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
            ids = [r.id for r in rows]
            by_movie: dict[int, list[Stock]] = {i: [] for i in ids}
            if ids:
                for s in conn.execute(
                    _stocks.select().where(_stocks.c.movie_id.in_(ids)).order_by(_stocks.c.id)
                ).fetchall():
                    by_movie[s.movie_id].append(_row_to_stock(s))
        return [_row_to_movie(r, by_movie[r.id]) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_movie(row, stocks: list[Stock]) -> Movie:
    return Movie(
        id=row.id,
        title=row.title,
        description=row.description,
        image=row.image,
        genre=row.genre,
        director=row.director,
        writer=row.writer,
        producer=row.producer,
        release_date=row.release_date,
        rating=row.rating,
        trailer_uri=row.trailer_uri,
        stocks=stocks,
    )


def _row_to_stock(row) -> Stock:
    return Stock(
        id=row.id,
        movie_id=row.movie_id,
        unique_key=row.unique_key,
        is_available=bool(row.is_available),
    )
