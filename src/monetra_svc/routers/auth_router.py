import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from monetra_svc.config import Settings, get_settings
from monetra_svc.errors import AppError, AuthenticationError, Conflict
from monetra_svc.models.base import get_db
from monetra_svc.models.user import User
from monetra_svc.schemas import AuthResponse, SigninRequest, SignupRequest, UserOut
from monetra_svc.security import check_password, create_access_token, get_current_user, hash_password

logger = logging.getLogger(__name__)

router = APIRouter()


def _send_token(user: User, response: Response, settings: Settings) -> AuthResponse:
    token = create_access_token(user.id, settings)
    response.set_cookie(
        key="jwt",
        value=token,
        max_age=settings.jwt_expires_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
    )
    return AuthResponse(token=token, user=UserOut.model_validate(user))


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
def signup(payload: SignupRequest, response: Response, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    logger.info("Signup request received")
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        logger.warning(f"User creation failed: Email {email} already exists")
        raise Conflict("Email already in use")

    user = User(email=email, password=hash_password(payload.password))
    db.add(user)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(e, exc_info=True)
        raise AppError("Failed to create user")
    db.refresh(user)
    logger.info(f"User created with ID: {user.id}")
    return _send_token(user, response, settings)


@router.post("/signin", response_model=AuthResponse)
def signin(payload: SigninRequest, response: Response, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    logger.info("Signin request received")
    email = payload.email.lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None or not check_password(payload.password, user.password):
        logger.warning(f"Auth failed for email: {email}")
        raise AuthenticationError("Incorrect email or password")
    logger.info(f"User {email} signed in successfully")
    return _send_token(user, response, settings)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("jwt")
    return {"status": "success"}
