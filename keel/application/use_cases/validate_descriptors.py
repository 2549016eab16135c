"""
Validate Descriptors Use Case

Architectural Intent:
- Loads lifecycle and/or build descriptors without touching any host
- Reports the first DescriptorError, or hook and secret counts on success
"""

from typing import Optional

from keel.application.dtos.deployment_dtos import ValidateResponse
from keel.domain.errors import DescriptorError
from keel.infrastructure.descriptors.build_descriptor import load_build_descriptor
from keel.infrastructure.descriptors.lifecycle_descriptor import (
    load_lifecycle_descriptor,
)


class ValidateDescriptors:
    def execute(
        self,
        appspec_path: Optional[str] = None,
        buildspec_path: Optional[str] = None,
    ) -> ValidateResponse:
        if not appspec_path and not buildspec_path:
            raise ValueError("Nothing to validate: give an appspec and/or a buildspec")

        hook_count = 0
        secret_count = 0
        try:
            if appspec_path:
                hook_count = len(load_lifecycle_descriptor(appspec_path).all_hooks())
            if buildspec_path:
                secret_count = len(load_build_descriptor(buildspec_path).parameter_store)
        except (DescriptorError, OSError) as e:
            return ValidateResponse(False, str(e))

        return ValidateResponse(
            True,
            f"{hook_count} hook(s), {secret_count} secret mapping(s)",
            hook_count,
            secret_count,
        )
