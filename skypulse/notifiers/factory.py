from __future__ import annotations

import logging

from ..auth import decode_service_account
from ..config import Config
from .base import BaseDispatcher
from .rest import FcmRestDispatcher, FcmRestSettings
from .sdk import FirebaseDispatcher, FirebaseSettings, build_firebase_app


def build_dispatcher(config: Config) -> BaseDispatcher:
    logger = logging.getLogger(__name__)
    provider = config.provider
    credential = (
        decode_service_account(provider.service_account_b64)
        if provider.service_account_b64
        else None
    )

    if provider.transport == "rest":
        if credential is None:
            raise ValueError("The rest transport requires provider.service_account_b64")
        logger.debug("Using FCM REST transport for project %s", provider.project_id)
        return FcmRestDispatcher(
            FcmRestSettings(
                project_id=provider.project_id,
                credential=credential,
                endpoint_base_url=provider.endpoint_base_url,
                token_url=provider.token_url,
                timeout_seconds=config.settings.request_timeout_seconds,
                user_agent=config.settings.user_agent,
                cache_tokens=provider.cache_tokens,
            )
        )

    logger.debug("Using firebase-admin transport for project %s", provider.project_id)
    app = build_firebase_app(
        FirebaseSettings(
            project_id=provider.project_id,
            credential=credential,
            credentials_path=provider.credentials_path,
            timeout_seconds=config.settings.request_timeout_seconds,
        )
    )
    return FirebaseDispatcher(app)
