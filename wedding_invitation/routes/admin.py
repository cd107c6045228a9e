"""
Admin session and maintenance routes.
Login issues the admin_session cookie that every other admin endpoint checks.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from datetime import datetime, timezone
from pathlib import Path
import logging
import os
import platform

from wedding_invitation.config import settings
from wedding_invitation.database import get_db, seed_admin_account
from wedding_invitation.models import AdminAccount
from wedding_invitation.schemas import (
    ApiResponse,
    CleanupResponse,
    LoginRequest,
    LoginResponse,
    SessionStatusResponse,
)
from wedding_invitation.services.gallery import purge_deleted_gallery
from wedding_invitation.services.storage import IMAGES_SUBDIR, directory_status, today_folder, upload_root
from wedding_invitation.utils.auth import (
    clear_session_cookie,
    create_session_token,
    hash_password,
    is_admin_session,
    require_admin,
    set_session_cookie,
    verify_admin_password,
)
from wedding_invitation.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", response_model=ApiResponse[LoginResponse])
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Check the admin password and set the session cookie.

    A plaintext password left over from before hashing is accepted once and
    replaced by its bcrypt hash.
    """
    try:
        if not payload.password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password is required",
            )

        # First login on a fresh database creates the configured account
        await seed_admin_account(db)

        username = payload.username or settings.ADMIN_USERNAME
        result = await db.execute(select(AdminAccount).where(AdminAccount.username == username))
        admin = result.scalar_one_or_none()

        matches, needs_rehash = (False, False)
        if admin:
            matches, needs_rehash = verify_admin_password(payload.password, admin.password)

        if not matches:
            logger.warning(f"Failed admin login for '{username}'")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid password",
            )

        if needs_rehash:
            try:
                admin.password = hash_password(payload.password)
                await db.commit()
                logger.info(f"Upgraded plaintext password of admin '{username}'")
            except SQLAlchemyError as e:
                await db.rollback()
                logger.warning(f"Could not rehash admin password: {str(e)}")

        token = create_session_token(admin.id)
        set_session_cookie(response, token)

        logger.info(f"Admin '{username}' logged in")

        return ApiResponse(data=LoginResponse(token=token))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in admin login: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        )


@router.post("/logout", response_model=ApiResponse[None])
async def logout(response: Response):
    """Expire the session cookie."""
    clear_session_cookie(response)
    return ApiResponse()


@router.get("/verify", response_model=ApiResponse[SessionStatusResponse])
async def verify_session(request: Request):
    """Report whether the request carries an admin session. Never 401."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    return ApiResponse(data=SessionStatusResponse(authenticated=is_admin_session(token)))


@router.get("/system-status", response_model=ApiResponse[dict])
async def system_status(admin_token: str = Depends(require_admin)):
    """Upload directory health and interpreter information."""
    try:
        root = upload_root()
        directories = [
            ("uploads_base", root),
            ("uploads_images", root / IMAGES_SUBDIR),
            ("uploads_today", root / today_folder()),
            ("project_root", Path.cwd()),
        ]

        results = [
            {"name": name, "path": str(path), **directory_status(path)}
            for name, path in directories
        ]

        process_info = {
            "pythonVersion": platform.python_version(),
            "implementation": platform.python_implementation(),
            "platform": platform.system(),
            "arch": platform.machine(),
            "cwd": os.getcwd(),
            "pid": os.getpid(),
            "env": {"ENVIRONMENT": settings.ENVIRONMENT},
        }

        return ApiResponse(data={
            "directories": results,
            "process": process_info,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    except Exception as e:
        logger.error(f"System status check error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"System status check failed: {str(e)}",
        )


@router.post("/cleanup", response_model=ApiResponse[CleanupResponse])
async def cleanup(
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Purge gallery rows soft-deleted more than GALLERY_PURGE_AFTER_HOURS ago, with their files."""
    try:
        cleaned, errors = await purge_deleted_gallery(db)
        return ApiResponse(data=CleanupResponse(cleaned=cleaned, errors=errors))

    except Exception as e:
        logger.error(f"Error in cleanup process: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to perform cleanup",
        )
