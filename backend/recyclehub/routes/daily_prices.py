from datetime import date
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from recyclehub.core.auth import get_current_staff, get_current_user
from recyclehub.core.errors import RecycleHubError, http_error
from recyclehub.database.deps import get_price_engine
from recyclehub.models.user import User
from recyclehub.schemas.daily_price import DailyPriceCreate, DailyPriceDayOut, DailyPriceOut
from recyclehub.services.price_engine import PriceEngine
from recyclehub.services.price_history_csv import build_price_history_csv

router = APIRouter(prefix="/daily-prices", tags=["DailyPrices"])


@router.post("/", response_model=DailyPriceOut, status_code=status.HTTP_201_CREATED)
def create_daily_price(
    payload: DailyPriceCreate,
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_staff)
):
    try:
        price = engine.set_price(payload.dropping_point_id, payload.category, payload.price, current_user.id)
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return DailyPriceOut.model_validate(price)


@router.get("/current", response_model=list[DailyPriceOut])
def list_current_prices(
    dropping_point_id: Optional[int] = Query(default=None),
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_user)
):
    try:
        return engine.resolve_current_prices(dropping_point_id)
    except RecycleHubError as exc:
        raise http_error(exc) from exc


@router.get("/current/{dropping_point_id}/{category}", response_model=DailyPriceOut)
def read_current_price(
    dropping_point_id: int,
    category: str,
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_user)
):
    try:
        return engine.current_price(dropping_point_id, category)
    except RecycleHubError as exc:
        raise http_error(exc) from exc


@router.get("/history", response_model=list[DailyPriceOut])
def list_price_history(
    dropping_point_id: Optional[int] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    days: Optional[int] = Query(default=None, ge=1, le=366),
    exclude_today: bool = Query(default=False),
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_user)
):
    try:
        return engine.list_history(
            dropping_point_id=dropping_point_id,
            start_date=start_date,
            end_date=end_date,
            days=days,
            exclude_today=exclude_today,
        )
    except RecycleHubError as exc:
        raise http_error(exc) from exc


@router.get("/last-7-days", response_model=list[DailyPriceOut])
def list_last_week_prices(
    dropping_point_id: Optional[int] = Query(default=None),
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_user)
):
    return engine.list_history(dropping_point_id=dropping_point_id, days=7)


@router.get("/history/by-date", response_model=list[DailyPriceDayOut])
def list_price_history_by_date(
    dropping_point_id: Optional[int] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_user)
):
    try:
        return engine.history_by_date(
            dropping_point_id=dropping_point_id,
            start_date=start_date,
            end_date=end_date,
        )
    except RecycleHubError as exc:
        raise http_error(exc) from exc


@router.get("/history.csv")
def export_price_history(
    dropping_point_id: Optional[int] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_staff)
):
    try:
        rows = engine.list_history(
            dropping_point_id=dropping_point_id,
            start_date=start_date,
            end_date=end_date,
        )
    except RecycleHubError as exc:
        raise http_error(exc) from exc

    content = build_price_history_csv(rows).encode("utf-8-sig")
    filename = f"price_history_{engine.today().strftime('%Y%m%d')}.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(BytesIO(content), media_type="text/csv; charset=utf-8", headers=headers)


@router.delete("/{price_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_daily_price(
    price_id: int,
    engine: PriceEngine = Depends(get_price_engine),
    current_user: User = Depends(get_current_staff)
):
    try:
        engine.delete_price(price_id)
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return None
