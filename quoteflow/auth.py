import hashlib
import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .cache import KVCache, get_kv
from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import Company, CompanyMember, User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

SESSION_COOKIE_NAME = "sb-access-token"
SESSION_CACHE_TTL = 300  # 5 minutes
COMPANY_HEADER = "X-Company-Id"


def session_cache_key(token: str) -> str:
    """Cache key over the whole token; JWT headers are identical across users"""
    return f"session:{hashlib.sha256(token.encode()).hexdigest()}"


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the Supabase session cookie"""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


def verify_supabase_token(token: str) -> dict:
    """Verify a Supabase access token (HS256, audience 'authenticated')"""
    if len(token.split(".")) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    try:
        return jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        logger.warning("⚠️ Expired session token")
        raise HTTPException(status_code=401, detail="Session expired. Please sign in again.") from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e


def get_or_create_user(db: Session, claims: dict) -> User:
    supabase_uid = claims.get("sub")
    email = claims.get("email") or ""
    metadata = claims.get("user_metadata") or {}

    if not supabase_uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.supabase_uid == supabase_uid).first()
    if user:
        return user

    logger.info(f"🆕 Creating new user: {supabase_uid}")
    user = User(
        supabase_uid=supabase_uid,
        email=email or f"{supabase_uid}@users.invalid",
        full_name=metadata.get("full_name") or metadata.get("name"),
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        if "duplicate key" in str(e).lower() or "unique constraint" in str(e).lower():
            raise HTTPException(
                status_code=409,
                detail="This email is already registered. Please sign in with your existing account.",
            ) from e
        raise
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    kv: KVCache = Depends(get_kv),
) -> User:
    """Resolve the authenticated user from the Supabase session"""
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token or session cookie.",
        )

    cache_key = session_cache_key(token)
    cached = kv.get(cache_key)
    user = None
    if cached and cached.get("user_id"):
        user = db.query(User).filter(User.id == cached["user_id"]).first()

    if user is None:
        claims = verify_supabase_token(token)
        user = get_or_create_user(db, claims)
        user.last_login_at = datetime.utcnow()
        db.commit()
        kv.set(cache_key, {"user_id": user.id}, SESSION_CACHE_TTL)

    if not user.is_active:
        logger.warning(f"🚫 Inactive user {user.id} attempted access")
        raise HTTPException(status_code=403, detail="Account is disabled")

    return user


def _member_companies(db: Session, user: User):
    return (
        db.query(Company)
        .join(CompanyMember, CompanyMember.company_id == Company.id)
        .filter(CompanyMember.user_id == user.id, CompanyMember.is_active.is_(True))
    )


async def get_current_company(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Company:
    """
    Resolve the tenant for this request.

    Uses the X-Company-Id header when present, otherwise the user's first
    active membership.
    """
    header_value = request.headers.get(COMPANY_HEADER)
    query = _member_companies(db, user)

    if header_value:
        try:
            company_id = int(header_value)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid company id") from e
        company = query.filter(Company.id == company_id).first()
        if not company:
            logger.warning(f"🚫 User {user.id} is not a member of company {company_id}")
            raise HTTPException(status_code=403, detail="You are not a member of this company")
        return company

    company = query.order_by(CompanyMember.joined_at.asc(), CompanyMember.id.asc()).first()
    if not company:
        raise HTTPException(status_code=400, detail="No company selected. Create or join a company first.")
    return company


async def get_current_company_id(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Optional[int]:
    """Same tenant resolution as get_current_company, but None instead of an error"""
    try:
        company = await get_current_company(request, user, db)
    except HTTPException:
        return None
    return company.id


def invalidate_session(kv: KVCache, token: str) -> None:
    kv.delete(session_cache_key(token))
