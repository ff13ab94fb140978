from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from recyclehub.core.auth import get_current_staff, get_current_user
from recyclehub.database.deps import get_db
from recyclehub.models.daily_price import DailyPrice
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.models.pickup_order import PickupOrder
from recyclehub.models.user import User
from recyclehub.schemas.dropping_point import DroppingPointCreate, DroppingPointOut, DroppingPointUpdate

router = APIRouter(prefix="/dropping-points", tags=["DroppingPoints"])


def _get_point_or_404(db: Session, point_id: int) -> DroppingPoint:
    point = db.query(DroppingPoint).filter(DroppingPoint.id == point_id).first()
    if not point:
        raise HTTPException(status_code=404, detail="Dropping point not found")
    return point


@router.get("/", response_model=list[DroppingPointOut])
def list_dropping_points(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return db.query(DroppingPoint).order_by(DroppingPoint.location_name.asc(), DroppingPoint.id.asc()).all()


@router.get("/{point_id}", response_model=DroppingPointOut)
def read_dropping_point(
    point_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _get_point_or_404(db, point_id)


@router.post("/", response_model=DroppingPointOut, status_code=status.HTTP_201_CREATED)
def create_dropping_point(
    payload: DroppingPointCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    point = DroppingPoint(
        location_name=payload.location_name.strip(),
        address=payload.address.strip(),
        created_by=current_user.id
    )
    db.add(point)
    db.commit()
    db.refresh(point)
    return point


@router.put("/{point_id}", response_model=DroppingPointOut)
def update_dropping_point(
    point_id: int,
    payload: DroppingPointUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    point = _get_point_or_404(db, point_id)
    data = payload.model_dump(exclude_unset=True)
    for key, value in data.items():
        if value is not None:
            setattr(point, key, value.strip())
    db.commit()
    db.refresh(point)
    return point


@router.delete("/{point_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_dropping_point(
    point_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    point = _get_point_or_404(db, point_id)
    if db.query(PickupOrder.id).filter(PickupOrder.dropping_point_id == point_id).first():
        raise HTTPException(status_code=409, detail="Dropping point is referenced by pickup orders")
    if db.query(DailyPrice.id).filter(DailyPrice.dropping_point_id == point_id).first():
        raise HTTPException(status_code=409, detail="Dropping point has price history")
    db.delete(point)
    db.commit()
    return None
