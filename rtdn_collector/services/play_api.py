"""Google Play Developer API client for subscription state.

Two read-only lookups:
- v2: purchases.subscriptionsv2.get(packageName, token)
- v1: purchases.subscriptions.get(packageName, subscriptionId, token)

Every failure (HTTP error, auth error, transport error, malformed body) is
logged and reported as None, i.e. "no data".
"""

import threading
from typing import Any, Optional, Protocol

import google.auth
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from rtdn_collector.logging_config import get_logger, short_token

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/androidpublisher"]


class SubscriptionStatusSource(Protocol):
    """Anything that can answer v2 and v1 subscription lookups."""

    def get_subscription_v2(self, package_name: str, purchase_token: str) -> Optional[dict[str, Any]]: ...

    def get_subscription_v1(
        self, package_name: str, subscription_id: str, purchase_token: str
    ) -> Optional[dict[str, Any]]: ...


class PlayDeveloperApi:
    """SubscriptionStatusSource backed by the androidpublisher v3 API.

    Credentials come from a service-account file when one is configured,
    otherwise from Application Default Credentials. The discovery client is
    built on first use.
    """

    def __init__(self, credentials_file: Optional[str] = None):
        self._credentials_file = credentials_file
        self._service: Any = None
        self._lock = threading.Lock()

    def _get_service(self) -> Any:
        with self._lock:
            if self._service is None:
                if self._credentials_file:
                    credentials = service_account.Credentials.from_service_account_file(
                        self._credentials_file, scopes=SCOPES
                    )
                else:
                    credentials, _ = google.auth.default(scopes=SCOPES)
                self._service = build(
                    "androidpublisher", "v3", credentials=credentials, cache_discovery=False
                )
                logger.info(
                    "play_api_client_created",
                    credentials="service_account_file" if self._credentials_file else "application_default",
                )
            return self._service

    def _execute(self, api_version: str, request_factory, **log_context: Any) -> Optional[dict[str, Any]]:
        try:
            result = request_factory(self._get_service()).execute()
        except HttpError as e:
            logger.warning(
                "play_api_request_failed",
                api_version=api_version,
                status_code=e.resp.status if e.resp is not None else None,
                error=str(e),
                **log_context,
            )
            return None
        except Exception as e:
            logger.error(
                "play_api_request_error",
                api_version=api_version,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
                **log_context,
            )
            return None

        if not isinstance(result, dict):
            logger.warning(
                "play_api_unexpected_response",
                api_version=api_version,
                response_type=type(result).__name__,
                **log_context,
            )
            return None

        logger.debug("play_api_request_succeeded", api_version=api_version, **log_context)
        return result

    def get_subscription_v2(self, package_name: str, purchase_token: str) -> Optional[dict[str, Any]]:
        """Fetch a SubscriptionPurchaseV2 resource."""
        return self._execute(
            "v2",
            lambda service: service.purchases().subscriptionsv2().get(
                packageName=package_name, token=purchase_token
            ),
            package_name=package_name,
            token=short_token(purchase_token),
        )

    def get_subscription_v1(
        self, package_name: str, subscription_id: str, purchase_token: str
    ) -> Optional[dict[str, Any]]:
        """Fetch a (v1) SubscriptionPurchase resource."""
        return self._execute(
            "v1",
            lambda service: service.purchases().subscriptions().get(
                packageName=package_name, subscriptionId=subscription_id, token=purchase_token
            ),
            package_name=package_name,
            subscription_id=subscription_id,
            token=short_token(purchase_token),
        )


_play_api: Optional[PlayDeveloperApi] = None
_play_api_lock = threading.Lock()


def get_play_api() -> PlayDeveloperApi:
    """Get or create the singleton PlayDeveloperApi."""
    global _play_api
    if _play_api is None:
        with _play_api_lock:
            if _play_api is None:
                from rtdn_collector.config import get_config

                _play_api = PlayDeveloperApi(get_config().settings.credentials_file)
    return _play_api


def reset_play_api() -> None:
    """Drop the singleton client (for testing)."""
    global _play_api
    with _play_api_lock:
        _play_api = None
