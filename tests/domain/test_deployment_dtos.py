"""Tests for deployment DTOs."""

import pytest

from keel.application.dtos.deployment_dtos import DeployRevisionRequest, PublishRequest


class TestDeployRevisionRequest:
    def test_valid(self):
        dto = DeployRevisionRequest("appspec.yml", "app:1", ["web1"])
        assert dto.policy == "all-at-once"
        assert dto.secret_names == []

    def test_empty_targets(self):
        with pytest.raises(ValueError, match="targets"):
            DeployRevisionRequest("appspec.yml", "app:1", [])

    def test_empty_artifact(self):
        with pytest.raises(ValueError, match="artifact_reference"):
            DeployRevisionRequest("appspec.yml", "", ["web1"])

    def test_secret_names_need_buildspec(self):
        with pytest.raises(ValueError, match="buildspec_path"):
            DeployRevisionRequest("appspec.yml", "app:1", ["web1"], secret_names=["token"])


class TestPublishRequest:
    def test_defaults(self):
        dto = PublishRequest("buildspec.yml", "app:1")
        assert dto.username_key == "username"
        assert dto.password_key == "password"
        assert dto.url_key == ""

    def test_empty_keys(self):
        with pytest.raises(ValueError):
            PublishRequest("buildspec.yml", "app:1", username_key="")
