# swapit_feed/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing import List
from .. import crud
from ..errors import InvalidInputError, StorageError
from ..query import DEFAULT_PAGE_SIZE
from ..schemas import FeedView
from ..services import FeedService
from ..utils import logger

router = APIRouter()


def get_feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


def _read(fn, *args, **kwargs) -> FeedView:
    try:
        return fn(*args, **kwargs)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except StorageError as e:
        logger.error("Feed read failed: %s", e)
        raise HTTPException(status_code=503, detail="Feed temporarily unavailable")


@router.get("/health")
def health(request: Request):
    db = request.app.state.session_factory()
    try:
        return {"status": "ok", "indexed": crud.count_summaries(db)}
    finally:
        db.close()

@router.get("/feed", response_model=FeedView)
def latest(
    n: int = Query(DEFAULT_PAGE_SIZE),
    page: int = Query(1),
    service: FeedService = Depends(get_feed_service)
):
    return _read(service.get_latest, n, page)


@router.get("/feed/tags", response_model=FeedView)
def by_tags(
    tag: List[str] = Query(...),
    n: int = Query(DEFAULT_PAGE_SIZE),
    page: int = Query(1),
    service: FeedService = Depends(get_feed_service)
):
    return _read(service.filter_by_tags, tag, n, page)


@router.get("/feed/tags/{tag}", response_model=FeedView)
def by_tag(
    tag: str,
    n: int = Query(DEFAULT_PAGE_SIZE),
    page: int = Query(1),
    service: FeedService = Depends(get_feed_service)
):
    return _read(service.filter_by_tag, tag, n, page)


@router.get("/feed/price", response_model=FeedView)
def by_price(
    min_price: float | None = Query(None),
    max_price: float | None = Query(None),
    n: int = Query(DEFAULT_PAGE_SIZE),
    page: int = Query(1),
    service: FeedService = Depends(get_feed_service)
):
    return _read(service.filter_by_price, min_price, max_price, n, page)


@router.get("/feed/search", response_model=FeedView)
def search(
    tag: List[str] | None = Query(None),
    min_price: float | None = Query(None),
    max_price: float | None = Query(None),
    n: int = Query(DEFAULT_PAGE_SIZE),
    page: int = Query(1),
    service: FeedService = Depends(get_feed_service)
):
    return _read(service.filter_by_combined, None, min_price, max_price, n, page, tags=tag)


@router.post("/feed/refresh")
async def refresh(service: FeedService = Depends(get_feed_service)):
    event = await service.refresh_feed()
    return {"status": "ok", "timestamp": event.timestamp}
