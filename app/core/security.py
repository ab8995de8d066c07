import json
import logging
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials
from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config import get_settings

logger = logging.getLogger(__name__)

_firebase_app = None


def init_firebase():
    """Initialize the Firebase Admin SDK once per process."""
    global _firebase_app
    if _firebase_app is None:
        settings = get_settings()
        # Option 1: Use service account file path
        if settings.GOOGLE_APPLICATION_CREDENTIALS:
            cred = credentials.Certificate(settings.GOOGLE_APPLICATION_CREDENTIALS)
        # Option 2: Use environment variable with JSON content
        elif settings.FIREBASE_SERVICE_ACCOUNT:
            service_account = json.loads(settings.FIREBASE_SERVICE_ACCOUNT)
            cred = credentials.Certificate(service_account)
        else:
            raise ValueError(
                "Firebase credentials not configured. "
                "Set FIREBASE_SERVICE_ACCOUNT or GOOGLE_APPLICATION_CREDENTIALS"
            )

        _firebase_app = firebase_admin.initialize_app(cred)
    return _firebase_app


security = HTTPBearer(auto_error=False)


@dataclass
class FirebaseUser:
    """Represents an authenticated Firebase user."""

    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> FirebaseUser:
    """
    Validate the Firebase ID token and return user info.

    Without a valid token there is no receipt data source for the caller,
    so every protected endpoint answers 401.
    """
    if credentials is None:
        raise _unauthorized("Missing authentication token")

    try:
        init_firebase()
        decoded_token = auth.verify_id_token(credentials.credentials)
    except auth.ExpiredIdTokenError:
        raise _unauthorized("Token has expired")
    except auth.InvalidIdTokenError:
        raise _unauthorized("Invalid authentication token")
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise _unauthorized(f"Authentication failed: {str(e)}")

    return FirebaseUser(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        name=decoded_token.get("name"),
    )
