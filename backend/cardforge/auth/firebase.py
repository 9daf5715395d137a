"""
Firebase Admin SDK initialization and configuration.
Initializes Firebase Admin SDK once at application startup.
"""
import json
import os
import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials, auth

from cardforge.config import settings

logger = logging.getLogger(__name__)


# Global Firebase app instance
_firebase_app: Optional[firebase_admin.App] = None


def _load_credentials():
    """
    Resolve credentials from FIREBASE_CREDENTIALS_JSON.

    Accepts a file path or an inline JSON document; without it the
    application default credentials are used (local dev with gcloud).
    """
    value = settings.firebase_credentials_json
    if not value:
        return credentials.ApplicationDefault()

    if os.path.exists(value):
        logger.info(f"Loaded Firebase credentials from file: {value}")
        return credentials.Certificate(value)

    try:
        cred_dict = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValueError("FIREBASE_CREDENTIALS_JSON must be a valid file path or JSON string") from e
    logger.info("Loaded Firebase credentials from JSON string")
    return credentials.Certificate(cred_dict)


def initialize_firebase() -> None:
    """
    Initialize Firebase Admin SDK.

    Raises:
        ValueError: FIREBASE_PROJECT_ID missing or credentials unreadable
    """
    global _firebase_app

    if _firebase_app is not None:
        return

    if not settings.firebase_project_id:
        raise ValueError("FIREBASE_PROJECT_ID must be set")

    _firebase_app = firebase_admin.initialize_app(
        _load_credentials(),
        {"projectId": settings.firebase_project_id}
    )


def verify_firebase_token(token: str) -> dict:
    """
    Verify Firebase ID token and return decoded token claims.

    Raises:
        ValueError: If token is invalid, expired, or revoked
    """
    if _firebase_app is None:
        raise RuntimeError("Firebase Admin SDK not initialized. Call initialize_firebase() first.")

    try:
        return auth.verify_id_token(token, app=_firebase_app)
    except ValueError:
        raise
    except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.CertificateFetchError) as e:
        raise ValueError(f"Token verification failed: {e}") from e