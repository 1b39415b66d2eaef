"""Process-wide Firebase Admin initialisation and client factories."""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials, firestore, storage

from diary_sync.auth import FirebaseTokenVerifier
from diary_sync.config import Config
from diary_sync.images import FirebaseImageStore
from diary_sync.profiles import FirestoreProfileStore

logger = logging.getLogger(__name__)

_app: firebase_admin.App | None = None


def get_firebase_app(config: Config) -> firebase_admin.App:
    """Initialise the default Firebase app once and reuse it afterwards."""
    global _app
    if _app:
        return _app

    try:
        _app = firebase_admin.get_app()
        return _app
    except ValueError:
        pass

    options = {}
    if config.firebase_storage_bucket:
        options["storageBucket"] = config.firebase_storage_bucket
    cred = (
        credentials.Certificate(str(config.firebase_credentials))
        if config.firebase_credentials
        else credentials.ApplicationDefault()
    )
    _app = firebase_admin.initialize_app(cred, options or None)
    logger.info("Firebase app initialised (bucket=%s)", config.firebase_storage_bucket)
    return _app


def make_profile_store(config: Config) -> FirestoreProfileStore:
    app = get_firebase_app(config)
    return FirestoreProfileStore(client=firestore.client(app), collection=config.profiles_collection)


def make_token_verifier(config: Config) -> FirebaseTokenVerifier:
    return FirebaseTokenVerifier(app=get_firebase_app(config))


def make_image_store(config: Config) -> FirebaseImageStore | None:
    if not config.firebase_storage_bucket:
        return None
    return FirebaseImageStore(bucket=storage.bucket(app=get_firebase_app(config)))
