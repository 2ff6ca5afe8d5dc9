# firebase_client.py
import json
import logging

import firebase_admin
from firebase_admin import auth, credentials, firestore
from firebase_admin.exceptions import FirebaseError

import config
from errors import AuthError

logger = logging.getLogger(__name__)

_db = None


def init_firebase():
    """Initialise the firebase admin app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    if config.FIREBASE_SERVICE_ACCOUNT_JSON:
        svc_json = json.loads(config.FIREBASE_SERVICE_ACCOUNT_JSON)
        cred = credentials.Certificate(svc_json)
    else:
        # Cloud Run / local gcloud login
        cred = credentials.ApplicationDefault()

    options = {}
    if config.FIREBASE_PROJECT_ID:
        options["projectId"] = config.FIREBASE_PROJECT_ID
    app = firebase_admin.initialize_app(cred, options or None)
    logger.info("Firebase admin initialised")
    return app


def get_db():
    global _db
    if _db is None:
        init_firebase()
        _db = firestore.client()
    return _db


def verify_token(id_token: str) -> dict:
    """
    Verifies a Firebase ID token sent by the browser after the OAuth sign-in.
    Returns the decoded claims (uid, name, email, ...).
    """
    if not id_token:
        raise AuthError("Authorization token missing")
    init_firebase()
    try:
        return auth.verify_id_token(id_token, check_revoked=True)
    except auth.ExpiredIdTokenError:
        raise AuthError("Token has expired")
    except auth.RevokedIdTokenError:
        raise AuthError("Token has been revoked")
    except auth.UserDisabledError:
        raise AuthError("User account is disabled")
    except auth.UserNotFoundError:
        raise AuthError("User account no longer exists")
    except (auth.InvalidIdTokenError, ValueError):
        raise AuthError("Invalid token")
    except auth.CertificateFetchError:
        logger.exception("Could not fetch token verification certificates")
        raise AuthError("Could not verify token")
    except FirebaseError:
        logger.exception("Token verification failed")
        raise AuthError("Could not verify token")
