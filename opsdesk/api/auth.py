import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from opsdesk.core.auth import hash_password, verify_password, create_access_token, get_current_user
from opsdesk.core.config import DEFAULT_CURRENCY
from opsdesk.db.session import get_db, commit_or_rollback
from opsdesk.models.models import User, Organization
from opsdesk.schemas.schemas import LoginRequest, TokenResponse, UserCreate, UserResponse, UserWithOrg
from opsdesk.services.currency import is_supported

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = structlog.get_logger(__name__)


@router.post("/register", response_model=UserResponse)
def register(data: UserCreate, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == data.email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    if data.currency and not is_supported(data.currency):
        raise HTTPException(status_code=422, detail=f"Unsupported currency: {data.currency}")

    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        full_name=data.full_name
    )
    # every account owns exactly one organization
    user.organization = Organization(
        name=(data.organization_name or "").strip() or f"{data.full_name}'s Business",
        currency=(data.currency or DEFAULT_CURRENCY).upper(),
    )
    db.add(user)
    commit_or_rollback(db, "register", email=data.email)
    db.refresh(user)
    logger.info("user_registered", user_id=user.id, organization_id=user.organization.id)
    return user


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.warning("login_failed", email=data.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    token = create_access_token({"sub": user.id})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserWithOrg)
def get_me(user: User = Depends(get_current_user)):
    org = user.organization
    return UserWithOrg(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        is_active=user.is_active,
        created_at=user.created_at,
        organization_id=org.id if org else None,
        organization_name=org.name if org else None,
        currency=org.currency if org else None
    )
