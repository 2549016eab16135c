"""
Parameter Store Adapter

Architectural Intent:
- SecretStorePort adapter for AWS Systems Manager Parameter Store
- SecureString values are decrypted on read (WithDecryption=True)
- Retries belong to botocore's standard retry mode, not to the engine
- The boto3 client is created lazily so tests can inject a stub client

Security:
- Values are returned to the caller only; nothing is logged or cached
- The AWS profile comes from the opaque AuthContext ("aws_profile")
"""

import asyncio
import logging
import threading
from typing import Any, Optional

from keel.domain.errors import SecretNotFoundError, SecretStoreUnreachable
from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.value_objects.auth_context import AuthContext

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("ParameterNotFound", "ParameterVersionNotFound")


def _error_code(error: Exception) -> str:
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        return response.get("Error", {}).get("Code", "")
    return ""


class ParameterStoreAdapter(SecretStorePort):
    def __init__(
        self,
        client: Any = None,
        region: Optional[str] = None,
        max_attempts: int = 3,
        auth: Optional[AuthContext] = None,
    ) -> None:
        self._client = client
        self._region = region
        self._max_attempts = max_attempts
        self._auth = auth or AuthContext()
        self._lock = threading.Lock()

    def _get_client(self) -> Any:
        with self._lock:
            if self._client is None:
                import boto3
                from botocore.config import Config

                session = boto3.session.Session(
                    profile_name=self._auth.get("aws_profile"),
                    region_name=self._region,
                )
                self._client = session.client(
                    "ssm",
                    config=Config(
                        retries={"max_attempts": self._max_attempts, "mode": "standard"}
                    ),
                )
            return self._client

    def _get_sync(self, path: str) -> str:
        try:
            response = self._get_client().get_parameter(Name=path, WithDecryption=True)
        except Exception as e:
            code = _error_code(e)
            if code in _NOT_FOUND_CODES:
                raise SecretNotFoundError(path) from e
            logger.warning(
                "Parameter Store read of %s failed: %s", path, code or type(e).__name__
            )
            raise SecretStoreUnreachable(
                f"{path}: {code or type(e).__name__}"
            ) from e
        return response["Parameter"]["Value"]

    async def get(self, path: str) -> str:
        return await asyncio.get_running_loop().run_in_executor(
            None, self._get_sync, path
        )
