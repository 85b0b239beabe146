"""
API request and response models for HomeCinema REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Secrets never appear in a response model: UserResponse has no salt or hash.
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from catalog.models import Movie

# Deliberately loose: one "@" with something on each side and a dot in the
# domain. Deliverability is not the API's concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Account -- requests
# ---------------------------------------------------------------------------


USERNAME_MAX_LENGTH = 100
PASSWORD_MAX_LENGTH = 255


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/account/authenticate.

    Lengths are not enforced by validation: a login with an empty username
    or an oversized password is a failed login, not a malformed request.
    """

    username: str = ""
    password: str = ""

    @property
    def is_well_formed(self) -> bool:
        return 1 <= len(self.username) <= USERNAME_MAX_LENGTH and len(self.password) <= PASSWORD_MAX_LENGTH


class RegistrationRequest(BaseModel):
    """Request body for POST /api/v1/account/register.

    username and email are trimmed before validation. The password is taken
    exactly as sent; whitespace in a password is significant.
    """

    username: str = Field(min_length=1, max_length=USERNAME_MAX_LENGTH)
    email: str = Field(min_length=3, max_length=200, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=4, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("username", "email", mode="before")
    @classmethod
    def strip_identity(cls, value):
        return value.strip() if isinstance(value, str) else value


class UserCreate(RegistrationRequest):
    """Request body for POST /api/v1/account/users (admin only)."""

    role_ids: list[int] = Field(default_factory=list, max_length=20)


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/account/users/{id}."""

    is_locked: bool


# ---------------------------------------------------------------------------
# Account -- responses
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    authenticated: bool


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    is_locked: bool
    date_created: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            is_locked=user.is_locked,
            date_created=user.date_created or "",
        )


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    created: bool
    user: Optional[UserResponse] = None


class RoleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    email: str
    roles: list[str]


# ---------------------------------------------------------------------------
# Movies
# ---------------------------------------------------------------------------


class MovieCreate(BaseModel):
    """Request body for POST /api/v1/movies/add."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=2000)
    genre: str = Field(min_length=1, max_length=50)
    director: str = Field(default="", max_length=100)
    writer: str = Field(default="", max_length=100)
    producer: str = Field(default="", max_length=100)
    release_date: str = Field(pattern=DATE_PATTERN)
    rating: int = Field(default=0, ge=0, le=5)
    trailer_uri: str = Field(default="", max_length=255)
    number_of_stocks: int = Field(default=1, ge=0, le=100)


class MovieUpdate(BaseModel):
    """Request body for POST /api/v1/movies/update.

    Stocks are managed on creation only; number_of_stocks is not accepted here.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=2000)
    genre: str = Field(min_length=1, max_length=50)
    director: str = Field(default="", max_length=100)
    writer: str = Field(default="", max_length=100)
    producer: str = Field(default="", max_length=100)
    release_date: str = Field(pattern=DATE_PATTERN)
    rating: int = Field(default=0, ge=0, le=5)
    trailer_uri: str = Field(default="", max_length=255)


class MovieResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    image: str
    genre: str
    director: str
    writer: str
    producer: str
    release_date: str
    rating: int
    trailer_uri: str
    is_available: bool
    number_of_stocks: int

    @classmethod
    def from_movie(cls, movie: Movie) -> "MovieResponse":
        return cls(
            id=movie.id,
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
            is_available=movie.is_available,
            number_of_stocks=movie.number_of_stocks,
        )


class PaginationSet(BaseModel, Generic[T]):
    """One page of results plus the totals a pager needs."""

    model_config = ConfigDict(frozen=True)

    page: int
    total_count: int
    total_pages: int
    items: list[T]


class FileUploadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    local_file_path: str
    file_name: str
    file_length: int
