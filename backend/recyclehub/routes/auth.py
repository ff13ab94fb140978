import re
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from recyclehub.database.deps import get_db
from recyclehub.models.user import User
from recyclehub.schemas.token import Token
from recyclehub.schemas.user import UserCreate, UserLogin, UserOut, UserPasswordChange, UserProfileUpdate
from recyclehub.core.security import get_password_hash, verify_password, create_access_token
from recyclehub.core.auth import get_current_user
from recyclehub.core.permissions import roles_for_user, serialize_roles

router = APIRouter(prefix="/auth", tags=["Auth"])
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

def is_valid_email(value: str) -> bool:
    if not value:
        return False
    return bool(EMAIL_PATTERN.match(value))

def build_user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        phone_number=user.phone_number,
        roles=roles_for_user(user),
        created_at=user.created_at,
    )

@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    email = credentials.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(credentials.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token({
        "sub": str(user.id),
        "name": user.name,
        "email": user.email,
        "roles": roles_for_user(user)
    })
    return {"access_token": token, "token_type": "bearer"}

@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register_vendor(payload: UserCreate, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email")
    if not payload.name.strip() or not payload.password:
        raise HTTPException(status_code=422, detail="Name and password are required")
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="Email already registered")

    # Self sign-up always yields a vendor account; staff are created by an admin.
    user = User(
        name=payload.name.strip(),
        email=email,
        phone_number=(payload.phone_number or "").strip() or None,
        password=get_password_hash(payload.password),
        roles=serialize_roles(["vendor"]),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return build_user_out(user)

@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return build_user_out(current_user)

@router.put("/me", response_model=UserOut)
def update_me(
    payload: UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    data = payload.model_dump(exclude_unset=True)
    if "name" in data:
        name = (data["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=422, detail="Name is required")
        current_user.name = name
    if "phone_number" in data:
        current_user.phone_number = (data["phone_number"] or "").strip() or None
    db.commit()
    db.refresh(current_user)
    return build_user_out(current_user)

@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def change_my_password(
    payload: UserPasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not payload.current_password or not payload.new_password:
        raise HTTPException(status_code=400, detail="All fields are required")
    if not verify_password(payload.current_password, current_user.password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    current_user.password = get_password_hash(payload.new_password)
    db.commit()
    return None
