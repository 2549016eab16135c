"""
Publish Artifact Use Case

Architectural Intent:
- Build-side half of a release: push a built image to the registry
- Registry credentials are resolved from the build descriptor's
  parameter-store table at push time and held only for the push
"""

import logging

from keel.application.dtos.deployment_dtos import PublishRequest, PublishResponse
from keel.domain.errors import RegistryError, SecretUnavailable
from keel.domain.ports.artifact_registry_port import (
    ArtifactRegistryPort,
    registry_host,
)
from keel.domain.ports.secret_store_port import SecretStorePort
from keel.domain.services.secret_resolver import SecretResolver
from keel.domain.value_objects.credential import RegistryCredential
from keel.infrastructure.descriptors.build_descriptor import load_build_descriptor

logger = logging.getLogger(__name__)


class PublishArtifact:
    def __init__(self, secret_store: SecretStorePort, registry: ArtifactRegistryPort):
        self.secret_store = secret_store
        self.registry = registry

    async def execute(self, request: PublishRequest) -> PublishResponse:
        build = load_build_descriptor(request.buildspec_path)
        resolver = SecretResolver(self.secret_store, build.parameter_store)
        keys = [request.username_key, request.password_key]
        if request.url_key:
            keys.append(request.url_key)

        try:
            resolved = await resolver.resolve(keys)
        except SecretUnavailable as e:
            logger.error("Cannot publish %s: %s", request.artifact_reference, e)
            return PublishResponse(False, str(e))

        credential = RegistryCredential.from_resolved(
            resolved, request.username_key, request.password_key, request.url_key
        )
        if not credential.url:
            host = registry_host(request.artifact_reference)
            if host:
                credential = RegistryCredential(
                    credential.username, credential.password, host
                )

        try:
            await self.registry.push(request.artifact_reference, credential)
        except RegistryError as e:
            logger.error("Push of %s failed: %s", request.artifact_reference, e)
            return PublishResponse(False, str(e), credential.url)
        return PublishResponse(
            True, f"Pushed {request.artifact_reference}", credential.url
        )
