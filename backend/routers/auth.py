from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from backend.config import settings
from backend.database import get_db
from backend.models.user import User
from backend.routers.deps import get_current_user, get_token
from backend.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from backend.services.auth import create_session, hash_password, revoke_session, verify_password

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        gender=user.gender,
        department=user.department,
    )


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_hours * 3600,
        httponly=True,
        samesite="lax",
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        gender=payload.gender,
        date_of_birth=payload.date_of_birth,
        department=payload.department,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    session = create_session(db, user.id)
    _set_session_cookie(response, session.id)
    return AuthResponse(token=session.id, user=_user_response(user))


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    session = create_session(db, user.id)
    _set_session_cookie(response, session.id)
    return AuthResponse(token=session.id, user=_user_response(user))


@router.post("/logout")
def logout(response: Response, token: str = Depends(get_token), db: Session = Depends(get_db)):
    revoke_session(db, token)
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True, "message": "Logged out"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return _user_response(current_user)
