"""Tests for the lifecycle and build descriptors."""

import textwrap

import pytest
import yaml

from keel.domain.errors import DescriptorError
from keel.domain.value_objects.lifecycle_phase import LifecyclePhase
from keel.infrastructure.descriptors.build_descriptor import (
    load_build_descriptor,
    parse_build_descriptor,
)
from keel.infrastructure.descriptors.lifecycle_descriptor import (
    dump_lifecycle_descriptor,
    load_lifecycle_descriptor,
    parse_lifecycle_descriptor,
)

APPSPEC = textwrap.dedent(
    """\
    version: 0.0
    os: linux
    files:
    - source: /
      destination: /opt/app
    hooks:
      ApplicationStop:
      - location: scripts/stop_container.sh
        timeout: 300
        runas: root
      AfterInstall:
      - location: scripts/pull.sh
        timeout: 600
      ApplicationStart:
      - location: scripts/start_container.sh
        timeout: 300
        runas: root
    """
)

BUILDSPEC = textwrap.dedent(
    """\
    version: 0.2
    env:
      parameter-store:
        REGISTRY_USERNAME: /app/registry/username
        REGISTRY_PASSWORD: /app/registry/password
    phases:
      install:
        runtime-versions:
          python: 3.11
      pre_build:
        commands:
        - echo "$REGISTRY_PASSWORD" | docker login --username "$REGISTRY_USERNAME" --password-stdin
      build:
        commands:
        - docker build -t app:latest .
      post_build:
        commands:
        - docker push app:latest
    """
)


@pytest.fixture
def appspec(tmp_path):
    path = tmp_path / "appspec.yml"
    path.write_text(APPSPEC)
    return path


class TestLifecycleDescriptor:
    def test_load(self, appspec):
        descriptor = load_lifecycle_descriptor(appspec)
        assert descriptor.os == "linux"
        stop = descriptor.hooks[LifecyclePhase.APPLICATION_STOP][0]
        assert stop.command == "scripts/stop_container.sh"
        assert stop.timeout_seconds == 300
        assert stop.run_as == "root"
        assert descriptor.hooks[LifecyclePhase.AFTER_INSTALL][0].run_as is None
        assert descriptor.extras["files"][0]["destination"] == "/opt/app"
        assert len(descriptor.all_hooks()) == 3

    def test_round_trip_text(self, appspec):
        descriptor = load_lifecycle_descriptor(appspec)
        assert yaml.safe_load(dump_lifecycle_descriptor(descriptor)) == yaml.safe_load(APPSPEC)

    def test_round_trip_value(self, appspec, tmp_path):
        descriptor = load_lifecycle_descriptor(appspec)
        again = tmp_path / "again.yml"
        again.write_text(dump_lifecycle_descriptor(descriptor))
        assert load_lifecycle_descriptor(again) == descriptor

    def test_default_timeout(self):
        descriptor = parse_lifecycle_descriptor(
            {"os": "linux", "hooks": {"ValidateService": [{"location": "check.sh"}]}}
        )
        assert descriptor.hooks[LifecyclePhase.VALIDATE_SERVICE][0].timeout_seconds == 3600

    @pytest.mark.parametrize(
        "payload,match",
        [
            ({"hooks": {}}, "requires 'os'"),
            ({"os": "solaris"}, "Unsupported os"),
            ({"os": "linux", "hooks": {"Install": []}}, "Unknown lifecycle phase"),
            ({"os": "linux", "hooks": {"AfterInstall": [{"timeout": 5}]}}, "requires a location"),
            (
                {"os": "linux", "hooks": {"AfterInstall": [{"location": "a.sh", "timeout": 0}]}},
                "must be positive",
            ),
            (
                {"os": "linux", "hooks": {"AfterInstall": [{"location": "a.sh", "user": "x"}]}},
                "unknown keys",
            ),
            ({"os": "linux", "hooks": {"AfterInstall": "a.sh"}}, "must be a list"),
        ],
    )
    def test_invalid(self, payload, match):
        with pytest.raises(DescriptorError, match=match):
            parse_lifecycle_descriptor(payload)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "appspec.yml"
        path.write_text("hooks: [unclosed")
        with pytest.raises(DescriptorError, match="Invalid YAML"):
            load_lifecycle_descriptor(path)


class TestBuildDescriptor:
    def test_load(self, tmp_path):
        path = tmp_path / "buildspec.yml"
        path.write_text(BUILDSPEC)
        descriptor = load_build_descriptor(path)
        assert dict(descriptor.parameter_store) == {
            "REGISTRY_USERNAME": "/app/registry/username",
            "REGISTRY_PASSWORD": "/app/registry/password",
        }
        assert descriptor.commands("build") == ("docker build -t app:latest .",)
        assert descriptor.commands("install") == ()

    def test_relative_path_rejected(self):
        with pytest.raises(DescriptorError, match="absolute path"):
            parse_build_descriptor({"env": {"parameter-store": {"X": "app/x"}}})

    def test_unknown_phase_rejected(self):
        with pytest.raises(DescriptorError, match="Unknown build phase"):
            parse_build_descriptor({"phases": {"deploy": {"commands": []}}})

    def test_commands_must_be_strings(self):
        with pytest.raises(DescriptorError, match="list of strings"):
            parse_build_descriptor({"phases": {"build": {"commands": "make"}}})

    def test_unknown_phase_lookup(self):
        with pytest.raises(DescriptorError):
            parse_build_descriptor({}).commands("deploy")
