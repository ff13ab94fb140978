from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from recyclehub.core.auth import get_current_admin, get_current_staff
from recyclehub.core.permissions import (
    ALLOWED_ROLES,
    ROLE_DEFINITIONS,
    parse_roles,
    roles_for_user,
    serialize_roles,
)
from recyclehub.core.security import get_password_hash
from recyclehub.database.deps import get_db
from recyclehub.models.daily_price import DailyPrice
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.models.pickup_order import OrderCompletion, PickupOrder
from recyclehub.models.user import User
from recyclehub.routes.auth import build_user_out, is_valid_email
from recyclehub.schemas.user import (
    RoleOptionOut,
    UserCreate,
    UserOut,
    UserPasswordReset,
    UserRolesUpdate,
)

router = APIRouter(prefix='/users', tags=['Users'])


def _clean_roles(raw_roles: list[str]) -> list[str]:
    unknown = {str(item or '').strip().lower() for item in raw_roles} - ALLOWED_ROLES - {''}
    if unknown:
        raise HTTPException(status_code=400, detail=f"Invalid role: {', '.join(sorted(unknown))}")
    roles = parse_roles(raw_roles)
    if not roles:
        raise HTTPException(status_code=400, detail='At least one role is required')
    return roles


@router.get('/roles', response_model=list[RoleOptionOut])
def list_roles(
    current_user: User = Depends(get_current_admin),
):
    return [RoleOptionOut(code=item['code'], label=item['label']) for item in ROLE_DEFINITIONS]


@router.get('/', response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    rows = db.query(User).order_by(User.name.asc()).all()
    return [build_user_out(row) for row in rows]


@router.get('/vendors', response_model=list[UserOut])
def list_vendors(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff),
):
    rows = db.query(User).order_by(User.name.asc()).all()
    return [build_user_out(row) for row in rows if 'vendor' in roles_for_user(row)]


@router.post('/', response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    email = payload.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail='Invalid email')
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=409, detail='Email already registered')
    roles = _clean_roles(payload.roles)

    user = User(
        name=payload.name.strip(),
        email=email,
        phone_number=(payload.phone_number or '').strip() or None,
        password=get_password_hash(payload.password),
        roles=serialize_roles(roles),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return build_user_out(user)


@router.put('/{user_id}/roles', response_model=UserOut)
def update_user_roles(
    user_id: int,
    payload: UserRolesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    roles = _clean_roles(payload.roles)
    if current_user.id == user_id and 'admin' not in roles:
        raise HTTPException(status_code=400, detail='You cannot remove your own administrator role')

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail='User not found')

    user.roles = serialize_roles(roles)
    db.commit()
    db.refresh(user)
    return build_user_out(user)


@router.delete('/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    if current_user.id == user_id:
        raise HTTPException(status_code=400, detail='You cannot delete your own user')
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail='User not found')
    references = [
        ('pickup orders', db.query(PickupOrder.id).filter((PickupOrder.vendor_id == user_id) | (PickupOrder.assigned_to == user_id))),
        ('order completions', db.query(OrderCompletion.id).filter(OrderCompletion.completed_by == user_id)),
        ('daily prices', db.query(DailyPrice.id).filter(DailyPrice.created_by == user_id)),
        ('dropping points', db.query(DroppingPoint.id).filter(DroppingPoint.created_by == user_id)),
    ]
    for label, query in references:
        if query.first():
            raise HTTPException(status_code=409, detail=f'User is referenced by {label}')
    db.delete(user)
    db.commit()
    return None


@router.put('/{user_id}/password', status_code=status.HTTP_204_NO_CONTENT)
def reset_password(
    user_id: int,
    payload: UserPasswordReset,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail='User not found')
    user.password = get_password_hash(payload.password)
    db.commit()
    return None
