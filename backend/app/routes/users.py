from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.auth import get_current_admin
from app.core.security import get_password_hash
from app.database.deps import get_db
from app.models.user import User
from app.repositories.assignments import AssignmentRepository
from app.routes.auth import is_valid_email
from app.schemas.user import (
    UserCreate,
    UserOut,
    UserPasswordReset,
)

router = APIRouter(prefix='/users', tags=['Users'])
VALID_ROLES = {'admin', 'user'}


@router.get('/', response_model=list[UserOut])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    return db.query(User).order_by(User.name.asc()).all()


@router.post('/', response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    email = payload.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail='Invalid email')
    if payload.role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail='Invalid role')
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=409, detail='Email already registered')

    user = User(
        name=payload.name,
        email=email,
        password=get_password_hash(payload.password),
        role=payload.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


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
    AssignmentRepository(db).delete_by_owner(user_id)
    db.flush()
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
