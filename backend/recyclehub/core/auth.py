from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from recyclehub.core.config import SECRET_KEY, ALGORITHM
from recyclehub.core.permissions import is_staff, roles_for_user
from recyclehub.database.deps import get_db
from recyclehub.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"}
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.query(User).filter(User.id == int(user_id)).first()
    if not user:
        raise credentials_exception
    return user

def get_current_admin(current_user: User = Depends(get_current_user)):
    if "admin" not in roles_for_user(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return current_user


def get_current_staff(current_user: User = Depends(get_current_user)):
    if not is_staff(roles_for_user(current_user)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return current_user


def require_role(*roles: str):
    clean_roles = {str(item or "").strip().lower() for item in roles if str(item or "").strip()}

    def dependency(current_user: User = Depends(get_current_user)):
        if not clean_roles:
            return current_user
        if clean_roles.intersection(roles_for_user(current_user)):
            return current_user
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    return dependency
