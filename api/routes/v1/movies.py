"""
api/routes/v1/movies.py -- Movie catalog routes for the HomeCinema REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET   /movies/latest               -- newest releases (public)
  GET   /movies                      -- paged, optionally title-filtered list (public)
  GET   /movies/details/{movie_id}   -- single movie (Admin)
  POST  /movies/add                  -- create movie + stock copies (Admin)
  POST  /movies/update               -- edit movie fields (Admin)
  POST  /movies/images/upload        -- poster upload (Admin)

Paging:
  page is zero-based. total_pages = ceil(total_count / page_size).

File uploads:
  /images/upload accepts multipart/form-data. Size is capped at
  MAX_UPLOAD_BYTES. Only image extensions are accepted. The stored name is
  random; the client's file name is never used as a path.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, UploadFile
from starlette.concurrency import run_in_threadpool

from api.models import ErrorDetail, FileUploadResult, MovieCreate, MovieResponse, MovieUpdate, PaginationSet
from auth.dependencies import GatedRoute
from auth.gate import ADMIN_ROLE, allow_anonymous, require_roles
from catalog.models import Movie
from catalog.store import CatalogStore, total_pages
from core.config import get_settings

logger = logging.getLogger("homecinema.api")

router = APIRouter(route_class=GatedRoute)

_ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}


def _movie_not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ErrorDetail(code="movie_not_found", message="Invalid movie.").model_dump(),
    )


def _write_image(local_path: Path, raw: bytes) -> None:
    local_path.parent.mkdir(parents=True, exist_ok=True)
    local_path.write_bytes(raw)


# ---------------------------------------------------------------------------
# Public browsing
# ---------------------------------------------------------------------------


@router.get("/movies/latest", response_model=list[MovieResponse])
@allow_anonymous
def latest(request: Request) -> list[MovieResponse]:
    catalog: CatalogStore = request.app.state.catalog
    return [MovieResponse.from_movie(m) for m in catalog.latest_movies()]


@router.get("/movies", response_model=PaginationSet[MovieResponse])
@allow_anonymous
def list_movies(
    request: Request,
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=3, ge=1, le=100),
    title_filter: Optional[str] = Query(default=None, alias="filter", max_length=100),
) -> PaginationSet[MovieResponse]:
    """Return one page of movies ordered by id, optionally filtered by title."""
    catalog: CatalogStore = request.app.state.catalog
    movies, total = catalog.page_movies(page, page_size, title_filter)
    return PaginationSet[MovieResponse](
        page=page,
        total_count=total,
        total_pages=total_pages(total, page_size),
        items=[MovieResponse.from_movie(m) for m in movies],
    )


# ---------------------------------------------------------------------------
# Management (Admin)
# ---------------------------------------------------------------------------


@router.get("/movies/details/{movie_id}", response_model=MovieResponse)
@require_roles(ADMIN_ROLE)
def details(request: Request, movie_id: int) -> MovieResponse:
    catalog: CatalogStore = request.app.state.catalog
    movie = catalog.get_movie(movie_id)
    if movie is None:
        raise _movie_not_found()
    return MovieResponse.from_movie(movie)


@router.post("/movies/add", response_model=MovieResponse, status_code=201)
@require_roles(ADMIN_ROLE)
def add(request: Request, body: MovieCreate) -> MovieResponse:
    """Create a movie with number_of_stocks available copies."""
    catalog: CatalogStore = request.app.state.catalog
    movie = Movie(
        title=body.title,
        description=body.description,
        genre=body.genre,
        director=body.director,
        writer=body.writer,
        producer=body.producer,
        release_date=body.release_date,
        rating=body.rating,
        trailer_uri=body.trailer_uri,
    )
    movie_id = catalog.create_movie(movie, number_of_stocks=body.number_of_stocks)
    return MovieResponse.from_movie(catalog.get_movie(movie_id))


@router.post("/movies/update", response_model=MovieResponse)
@require_roles(ADMIN_ROLE)
def update(request: Request, body: MovieUpdate) -> MovieResponse:
    """Overwrite a movie's editable fields. The poster image is kept."""
    catalog: CatalogStore = request.app.state.catalog
    fields = body.model_dump(exclude={"id"})
    if not catalog.update_movie(body.id, **fields):
        raise _movie_not_found()
    return MovieResponse.from_movie(catalog.get_movie(body.id))


@router.post("/movies/images/upload", response_model=FileUploadResult)
@require_roles(ADMIN_ROLE)
async def upload_image(request: Request, movie_id: int, file: UploadFile) -> FileUploadResult:
    """Store a poster image for movie_id and point the movie at it."""
    settings = get_settings()
    catalog: CatalogStore = request.app.state.catalog
    if await run_in_threadpool(catalog.get_movie, movie_id) is None:
        raise _movie_not_found()

    extension = Path(file.filename or "").suffix.lower()
    if extension not in _ALLOWED_IMAGE_EXTENSIONS:
        raise HTTPException(
            status_code=415,
            detail=ErrorDetail(
                code="unsupported_format",
                message=f"Image must be one of: {', '.join(sorted(_ALLOWED_IMAGE_EXTENSIONS))}",
            ).model_dump(),
        )

    # Size guard -- read up to the limit + 1 byte; reject if over limit
    raw = await file.read(settings.max_upload_bytes + 1)
    if len(raw) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=ErrorDetail(
                code="file_too_large",
                message=f"Upload must be {settings.max_upload_bytes} bytes or smaller.",
            ).model_dump(),
        )

    file_name = f"{uuid.uuid4().hex}{extension}"
    local_path = Path(settings.image_upload_dir) / file_name
    # Disk and database work stay off the event loop.
    await run_in_threadpool(_write_image, local_path, raw)
    await run_in_threadpool(catalog.set_image, movie_id, file_name)
    logger.info("Stored image %s (%d bytes) for movie_id=%s", file_name, len(raw), movie_id)
    return FileUploadResult(local_file_path=str(local_path), file_name=file_name, file_length=len(raw))
