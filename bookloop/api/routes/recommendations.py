"""Discovery routes: vibe search, personalized recommendations and trending."""

from fastapi import APIRouter, Depends, Query

from bookloop.api.deps import get_recommendation_engine
from bookloop.api.middleware.auth import get_current_caller, get_optional_caller
from bookloop.api.schemas import (
    BookSummary,
    HomeFeedResponse,
    PersonalizedResponse,
    SearchMatchResponse,
)
from bookloop.domain.caller import Caller
from bookloop.services.recommendations import EmotionFilter, RecommendationEngine

router = APIRouter(tags=["Intelligence"])


@router.get("/search", response_model=list[SearchMatchResponse])
async def vibe_search(
    q: str = Query(min_length=1, max_length=500),
    joy: float = Query(default=0.0, ge=0.0, le=1.0),
    sadness: float = Query(default=0.0, ge=0.0, le=1.0),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> list[SearchMatchResponse]:
    """Describe the mood you are after; optionally require minimum joy/sadness."""
    matches = await engine.hybrid_search(q, EmotionFilter(joy=joy, sadness=sadness))
    return [SearchMatchResponse.model_validate(m) for m in matches]


@router.get("/recommendations", response_model=HomeFeedResponse)
async def home_feed(
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    caller: Caller | None = Depends(get_optional_caller),
) -> HomeFeedResponse:
    """Trending for everyone, plus history and wishlist picks for signed-in users."""
    feed = await engine.home_feed(caller.user_id if caller else None)
    return HomeFeedResponse.model_validate(feed)


@router.get("/recommendations/trending", response_model=list[BookSummary])
async def trending(
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> list[BookSummary]:
    return [BookSummary.model_validate(b) for b in await engine.trending()]


@router.get("/recommendations/history", response_model=PersonalizedResponse)
async def history_recommendations(
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    caller: Caller = Depends(get_current_caller),
) -> PersonalizedResponse:
    return PersonalizedResponse.model_validate(await engine.history_based(caller.user_id))


@router.get("/recommendations/wishlist", response_model=PersonalizedResponse)
async def wishlist_recommendations(
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    caller: Caller = Depends(get_current_caller),
) -> PersonalizedResponse:
    return PersonalizedResponse.model_validate(await engine.wishlist_based(caller.user_id))
