from __future__ import annotations

import logging
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import get_backend, require_backend, require_user
from .auth.models import AuthUser, LoginRequest
from .backend.base import Backend
from .backend.config import DEFAULT_BACKEND_CONFIG, BackendConfig
from .backend.memory import InMemoryBackend
from .backend.supabase import SupabaseBackend
from .bookings.models import BookingCreate, BookingRecord, BookingsResponse, BookingStatusUpdate
from .bookings.service import bookings_overview, create_booking, update_booking_status
from .comments.models import CommentCreate, CommentNode, CommentThreadResponse
from .comments.service import CommentThread
from .engagement.models import Badge, FavoriteState, LikeState, RestaurantSummary
from .engagement.service import current_like_state, toggle_favorite, toggle_like
from .errors import FoodFeedError
from .feed.config import DEFAULT_FEED_CONFIG, FeedConfig
from .feed.loader import PaginatedFeedLoader
from .feed.models import Coordinate, FeedItem, FeedItemOut, FeedPageResponse, FeedReloadRequest
from .feed.sessions import LoaderRegistry
from .formatting import format_view_count
from .geo.distance import describe_distance
from .media import upload_media
from .notifications.models import Notification, UnreadCountResponse
from .restaurants.models import RestaurantDetail, RestaurantOut
from .restaurants.service import restaurant_detail, search_restaurants
from .reviews.models import Review, ReviewCreate
from .reviews.service import submit_review

logger = logging.getLogger(__name__)


def default_backend(config: BackendConfig = DEFAULT_BACKEND_CONFIG) -> Backend:
    """Supabase when credentials are configured, otherwise the seeded demo data."""
    if config.enabled:
        return SupabaseBackend(config)
    logger.warning("SUPABASE_URL / SUPABASE_ANON_KEY not set, serving seeded in-memory data")
    return InMemoryBackend.seeded()


def _item_out(item: FeedItem, origin: Coordinate | None) -> FeedItemOut:
    distance, label = None, None
    if origin is not None:
        distance, label = describe_distance(origin.latitude, origin.longitude, item.latitude, item.longitude)
    return FeedItemOut(
        item=item,
        distance_km=distance,
        distance_label=label,
        views_label=format_view_count(item.views_count),
    )


def _page_response(loader: PaginatedFeedLoader) -> FeedPageResponse:
    return FeedPageResponse(
        items=[_item_out(item, loader.filter.origin) for item in loader.items],
        has_more=loader.has_more,
        state=loader.state,
        page=loader.page,
    )


def create_app(
    backend: Backend | None = None,
    feed_config: FeedConfig = DEFAULT_FEED_CONFIG,
    backend_config: BackendConfig = DEFAULT_BACKEND_CONFIG,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.backend.aclose()

    app = FastAPI(title="Food Feed API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        SessionMiddleware,
        secret_key=os.environ.get("SESSION_SECRET", "foodfeed-secret-change-in-production"),
    )
    app.state.backend = backend if backend is not None else default_backend(backend_config)
    app.state.feed_loaders = LoaderRegistry(feed_config.max_session_loaders, feed_config.session_loader_ttl)

    @app.exception_handler(FoodFeedError)
    async def food_feed_error(request: Request, exc: FoodFeedError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    def _loader_for(request: Request, backend: Backend) -> PaginatedFeedLoader:
        key = request.session.get("feed_key")
        if not key:
            key = uuid.uuid4().hex
            request.session["feed_key"] = key
        loader = app.state.feed_loaders.get_or_create(key, lambda: PaginatedFeedLoader(backend, feed_config))
        loader.backend = backend
        return loader

    # ── Public endpoints ─────────────────────────────────────────────────

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metadata")
    async def metadata(backend: Backend = Depends(get_backend)) -> dict:
        return {
            "categories": await backend.list_categories(),
            "radius_km": {
                "min": feed_config.min_radius_km,
                "max": feed_config.max_radius_km,
                "default": feed_config.default_radius_km,
            },
            "page_size": feed_config.page_size,
        }

    # ── Auth endpoints ───────────────────────────────────────────────────

    @app.post("/auth/login")
    async def login(body: LoginRequest, request: Request) -> dict:
        user = await app.state.backend.sign_in(body.email, body.password)
        request.session["user"] = user.model_dump(mode="json")
        logger.info("User %s signed in", user.id)
        return {"status": "ok", "user": user.public()}

    @app.post("/auth/logout")
    def logout(request: Request) -> dict:
        app.state.feed_loaders.discard(request.session.get("feed_key"))
        request.session.clear()
        return {"status": "logged_out"}

    @app.get("/auth/me")
    def auth_me(user: AuthUser = Depends(require_user)) -> dict:
        return user.public()

    # ── Feed ─────────────────────────────────────────────────────────────

    @app.post("/feed/reload", response_model=FeedPageResponse)
    async def feed_reload(
        body: FeedReloadRequest,
        request: Request,
        backend: Backend = Depends(require_backend),
    ) -> FeedPageResponse:
        feed_filter = body.to_filter()
        if feed_filter.origin is not None and feed_filter.radius_km is None:
            feed_filter = feed_filter.model_copy(update={"radius_km": feed_config.default_radius_km})
        loader = _loader_for(request, backend)
        await loader.load_first_page(body.page_size or feed_config.page_size, feed_filter)
        return _page_response(loader)

    @app.post("/feed/more", response_model=FeedPageResponse)
    async def feed_more(request: Request, backend: Backend = Depends(require_backend)) -> FeedPageResponse:
        loader = _loader_for(request, backend)
        await loader.load_next_page()
        return _page_response(loader)

    @app.get("/videos/{video_id}", response_model=FeedItemOut)
    async def video_detail(video_id: str, backend: Backend = Depends(get_backend)) -> FeedItemOut:
        return _item_out(await backend.fetch_feed_item(video_id), None)

    @app.post("/videos/{video_id}/like", response_model=LikeState)
    async def like_video(video_id: str, backend: Backend = Depends(require_backend)) -> LikeState:
        state = await current_like_state(backend, video_id)
        return await toggle_like(backend, state)

    # ── Comments ─────────────────────────────────────────────────────────

    @app.get("/videos/{video_id}/comments", response_model=CommentThreadResponse)
    async def list_comments(video_id: str, backend: Backend = Depends(get_backend)) -> CommentThreadResponse:
        thread = CommentThread(backend, video_id)
        tree = await thread.refresh()
        return CommentThreadResponse(video_id=video_id, comments=tree, total=len(thread.flat))

    @app.post("/videos/{video_id}/comments", response_model=CommentNode)
    async def add_comment(
        video_id: str,
        body: CommentCreate,
        backend: Backend = Depends(require_backend),
    ) -> CommentNode:
        return await CommentThread(backend, video_id).post(body.text, body.parent_id)

    # ── Bookings ─────────────────────────────────────────────────────────

    @app.get("/bookings", response_model=BookingsResponse)
    async def list_bookings(backend: Backend = Depends(require_backend)) -> BookingsResponse:
        return await bookings_overview(backend)

    @app.post("/bookings", response_model=BookingRecord)
    async def book_table(body: BookingCreate, backend: Backend = Depends(require_backend)) -> BookingRecord:
        return await create_booking(backend, body)

    @app.patch("/bookings/{booking_id}/status", response_model=BookingRecord)
    async def set_booking_status(
        booking_id: str,
        body: BookingStatusUpdate,
        backend: Backend = Depends(require_backend),
    ) -> BookingRecord:
        return await update_booking_status(backend, booking_id, body.status)

    # ── Restaurants ──────────────────────────────────────────────────────

    @app.get("/restaurants", response_model=list[RestaurantOut])
    async def list_restaurants(
        q: str | None = Query(None, max_length=100),
        category: str | None = None,
        lat: float | None = Query(None, ge=-90.0, le=90.0),
        lng: float | None = Query(None, ge=-180.0, le=180.0),
        radius_km: float | None = Query(None, gt=0, le=20000),
        limit: int = Query(50, ge=1, le=200),
        backend: Backend = Depends(get_backend),
    ) -> list[RestaurantOut]:
        origin = Coordinate(latitude=lat, longitude=lng) if lat is not None and lng is not None else None
        return await search_restaurants(backend, q, category, origin, radius_km, limit)

    @app.get("/restaurants/{restaurant_id}", response_model=RestaurantDetail)
    async def get_restaurant(restaurant_id: str, backend: Backend = Depends(get_backend)) -> RestaurantDetail:
        return await restaurant_detail(backend, restaurant_id)

    # ── Restaurants: reviews & favorites ─────────────────────────────────

    @app.get("/restaurants/{restaurant_id}/reviews", response_model=list[Review])
    async def list_reviews(restaurant_id: str, backend: Backend = Depends(get_backend)) -> list[Review]:
        return await backend.fetch_reviews(restaurant_id)

    @app.post("/reviews", response_model=Review)
    async def post_review(body: ReviewCreate, backend: Backend = Depends(require_backend)) -> Review:
        return await submit_review(backend, body)

    @app.post("/restaurants/{restaurant_id}/favorite", response_model=FavoriteState)
    async def favorite_restaurant(restaurant_id: str, backend: Backend = Depends(require_backend)) -> FavoriteState:
        favorites = await backend.fetch_favorites()
        state = FavoriteState(
            restaurant_id=restaurant_id,
            favorited=any(r.id == restaurant_id for r in favorites),
        )
        return await toggle_favorite(backend, state)

    @app.get("/favorites", response_model=list[RestaurantSummary])
    async def list_favorites(backend: Backend = Depends(require_backend)) -> list[RestaurantSummary]:
        return await backend.fetch_favorites()

    # ── Notifications & badges ───────────────────────────────────────────

    @app.get("/notifications", response_model=list[Notification])
    async def list_notifications(backend: Backend = Depends(require_backend)) -> list[Notification]:
        return await backend.fetch_notifications()

    @app.get("/notifications/unread-count", response_model=UnreadCountResponse)
    async def unread_count(backend: Backend = Depends(require_backend)) -> UnreadCountResponse:
        return UnreadCountResponse(unread=await backend.unread_notification_count())

    @app.post("/notifications/{notification_id}/read")
    async def read_notification(notification_id: str, backend: Backend = Depends(require_backend)) -> dict:
        await backend.mark_notification_read(notification_id)
        return {"status": "ok"}

    @app.get("/users/{user_id}/badges", response_model=list[Badge])
    async def user_badges(user_id: str, backend: Backend = Depends(get_backend)) -> list[Badge]:
        return await backend.fetch_user_badges(user_id)

    # ── Media ────────────────────────────────────────────────────────────

    @app.post("/media")
    async def upload(
        request: Request,
        file_name: str = Query(..., min_length=1),
        folder: str = Query("uploads", pattern=r"^[a-z_-]+$"),
        backend: Backend = Depends(require_backend),
    ) -> dict:
        data = await request.body()
        content_type = request.headers.get("content-type", "application/octet-stream")
        url = await upload_media(backend, file_name, data, content_type, folder, backend_config)
        return {"url": url}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    uvicorn.run(
        "foodfeed.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
