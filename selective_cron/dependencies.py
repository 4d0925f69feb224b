from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from .config import Settings
from .logger import logger
from .service import SelectiveCronService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    return request.app.state.settings


def verify_token(
    token: str | None = Depends(oauth2_scheme),
    app_settings: Settings = Depends(get_settings),
) -> None:
    """
    HTTP authentication dependency.
    Accepts the configured master token as bearer token.
    """
    if not app_settings.master_token:
        logger.warning("API request rejected: no master token configured")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API access is disabled: no master token configured",
        )
    if token != app_settings.master_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_service(request: Request) -> SelectiveCronService:
    """Get the service instance the application was created with."""
    return request.app.state.service
