"""
Startup configuration resolution backed by Google Secret Manager.

Secrets are read once, merged into the Settings object and handed to
``create_app``; nothing re-reads them after startup.
"""

from __future__ import annotations

import logging
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import secretmanager

from relay.config import Settings
from relay.errors import SecretsUnavailableError

logger = logging.getLogger(__name__)

# Secret name -> Settings attribute.
REQUIRED_SECRETS = {
    "FRONTEND_URL": "frontend_url",
    "GCS_BUCKET_NAME": "gcs_bucket_name",
    "AIRTABLE_API_KEY": "airtable_api_key",
    "AIRTABLE_BASE_ID": "airtable_base_id",
}
OPTIONAL_SECRETS = {
    "GCP_PROJECT_ID": "gcp_project_id",
}


def secret_version_path(project_id: str, secret_name: str) -> str:
    return f"projects/{project_id}/secrets/{secret_name}/versions/latest"


def _access(client, project_id: str, secret_name: str) -> str:
    response = client.access_secret_version(
        request={"name": secret_version_path(project_id, secret_name)}
    )
    return response.payload.data.decode("utf-8")


def fetch_secrets(project_id: str, client=None) -> dict[str, str]:
    """
    Return Settings updates for every secret found in ``project_id``.

    Raises SecretsUnavailableError when a required secret cannot be read.
    """
    client = client or secretmanager.SecretManagerServiceClient()
    updates: dict[str, str] = {}

    for secret_name, attribute in REQUIRED_SECRETS.items():
        try:
            updates[attribute] = _access(client, project_id, secret_name)
        except google_exceptions.GoogleAPIError as exc:
            raise SecretsUnavailableError(
                f"Could not retrieve secret: {secret_name}"
            ) from exc

    for secret_name, attribute in OPTIONAL_SECRETS.items():
        try:
            updates[attribute] = _access(client, project_id, secret_name)
        except google_exceptions.GoogleAPIError as exc:
            logger.warning("Optional secret %s unavailable: %s", secret_name, exc)

    logger.info("All secrets have been initialized successfully.")
    return updates


def load_settings(settings: Optional[Settings] = None, client=None) -> Settings:
    """
    Build the process-wide Settings: environment first, then Secret Manager.
    """
    settings = settings or Settings()

    if settings.use_secret_manager:
        project_id = settings.secrets_project_id or settings.gcp_project_id
        if not project_id:
            raise SecretsUnavailableError(
                "SECRETS_PROJECT_ID or GCP_PROJECT_ID is required to read secrets"
            )
        settings = settings.model_copy(update=fetch_secrets(project_id, client))

    if not settings.use_in_memory_backends:
        missing = settings.missing_required()
        if missing:
            raise SecretsUnavailableError(
                "Missing required configuration: " + ", ".join(missing)
            )
    return settings
