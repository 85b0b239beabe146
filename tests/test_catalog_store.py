"""Unit tests for catalog/store.py -- movie persistence, paging and filtering.

Covers:
- create_movie() writes the requested number of available stock rows
- latest_movies() orders by release date and caps the result
- page_movies() paging arithmetic, id ordering and title filtering
- update_movie() / set_image() behaviour for known and unknown ids
- total_pages() rounding
"""

import pytest

from catalog.models import Movie
from catalog.store import LATEST_COUNT, CatalogStore, total_pages


def _movie(title: str, release_date: str = "2000-01-01", genre: str = "Drama") -> Movie:
    return Movie(title=title, genre=genre, release_date=release_date)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def test_create_movie_with_stocks(catalog: CatalogStore):
    movie_id = catalog.create_movie(_movie("Alien"), number_of_stocks=3)
    movie = catalog.get_movie(movie_id)
    assert movie.title == "Alien"
    assert movie.number_of_stocks == 3
    assert movie.is_available
    assert len({s.unique_key for s in movie.stocks}) == 3
    assert all(s.movie_id == movie_id for s in movie.stocks)


def test_movie_without_stocks_is_unavailable(catalog: CatalogStore):
    movie = catalog.get_movie(catalog.create_movie(_movie("Solaris")))
    assert movie.number_of_stocks == 0
    assert not movie.is_available


def test_get_movie_missing(catalog: CatalogStore):
    assert catalog.get_movie(404) is None


# ---------------------------------------------------------------------------
# Latest
# ---------------------------------------------------------------------------


def test_latest_movies_newest_first_and_capped(catalog: CatalogStore):
    for year in range(1990, 1990 + LATEST_COUNT + 2):
        catalog.create_movie(_movie(f"Film {year}", release_date=f"{year}-06-01"))
    latest = catalog.latest_movies()
    assert len(latest) == LATEST_COUNT
    assert latest[0].title == f"Film {1990 + LATEST_COUNT + 1}"
    assert [m.release_date for m in latest] == sorted((m.release_date for m in latest), reverse=True)


# ---------------------------------------------------------------------------
# Paging and filtering
# ---------------------------------------------------------------------------


@pytest.fixture
def stocked(catalog: CatalogStore) -> CatalogStore:
    for title in ["Alien", "Blade Runner", "Aliens", "Heat", "Alien 3", "Ronin", "100%"]:
        catalog.create_movie(_movie(title), number_of_stocks=1)
    return catalog


def test_page_movies_first_page(stocked: CatalogStore):
    movies, total = stocked.page_movies(page=0, page_size=3)
    assert total == 7
    assert [m.title for m in movies] == ["Alien", "Blade Runner", "Aliens"]
    assert all(m.number_of_stocks == 1 for m in movies)


def test_page_movies_last_partial_page(stocked: CatalogStore):
    movies, total = stocked.page_movies(page=2, page_size=3)
    assert total == 7
    assert [m.title for m in movies] == ["100%"]


def test_page_movies_past_the_end(stocked: CatalogStore):
    movies, total = stocked.page_movies(page=10, page_size=3)
    assert movies == []
    assert total == 7


def test_page_movies_filter_is_case_insensitive_substring(stocked: CatalogStore):
    movies, total = stocked.page_movies(page=0, page_size=10, title_filter="  ALIEN ")
    assert total == 3
    assert [m.title for m in movies] == ["Alien", "Aliens", "Alien 3"]


def test_page_movies_blank_filter_matches_all(stocked: CatalogStore):
    _, total = stocked.page_movies(page=0, page_size=10, title_filter="   ")
    assert total == 7


def test_page_movies_filter_wildcards_are_literal(stocked: CatalogStore):
    movies, total = stocked.page_movies(page=0, page_size=10, title_filter="%")
    assert total == 1
    assert movies[0].title == "100%"
    _, total = stocked.page_movies(page=0, page_size=10, title_filter="_")
    assert total == 0


@pytest.mark.parametrize(
    ("total", "page_size", "expected"),
    [(0, 3, 0), (1, 3, 1), (3, 3, 1), (7, 3, 3), (9, 3, 3)],
)
def test_total_pages(total, page_size, expected):
    assert total_pages(total, page_size) == expected


def test_total_pages_rejects_bad_page_size():
    with pytest.raises(ValueError):
        total_pages(10, 0)


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------


def test_update_movie(catalog: CatalogStore):
    movie_id = catalog.create_movie(_movie("Heat"), number_of_stocks=2)
    assert catalog.update_movie(movie_id, rating=5, director="Michael Mann")
    movie = catalog.get_movie(movie_id)
    assert movie.rating == 5
    assert movie.director == "Michael Mann"
    assert movie.number_of_stocks == 2


def test_update_movie_missing(catalog: CatalogStore):
    assert catalog.update_movie(404, rating=1) is False
    assert catalog.update_movie(404) is False


def test_update_movie_unknown_field(catalog: CatalogStore):
    movie_id = catalog.create_movie(_movie("Heat"))
    with pytest.raises(ValueError):
        catalog.update_movie(movie_id, image="sneaky.png")


def test_set_image(catalog: CatalogStore):
    movie_id = catalog.create_movie(_movie("Heat"))
    assert catalog.set_image(movie_id, "poster.png")
    assert catalog.get_movie(movie_id).image == "poster.png"
    assert catalog.set_image(404, "poster.png") is False
