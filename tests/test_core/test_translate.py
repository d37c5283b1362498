"""Tests for the build directive translator."""

import pytest

from dockyard.core.translate import BuildPath, SecretDescriptor, merge_labels, translate
from dockyard.exceptions import UnsupportedOption
from dockyard.models.image import BuildSpec


class TestTranslate:
    """Test translate()."""

    def test_basic_request(self):
        request = translate(BuildSpec(context="./app", dockerfile="Dockerfile", tag=["app:v1"]))

        assert request.path is BuildPath.LEGACY
        assert request.context == "./app"
        assert request.dockerfile == "Dockerfile"
        assert request.tags == ["app:v1"]
        assert request.remove is True

    def test_image_name_appended_once(self):
        build = BuildSpec(context=".", tag=["app:v1"])

        assert translate(build, image_name="app:latest").tags == ["app:v1", "app:latest"]
        assert translate(build, image_name="app:v1").tags == ["app:v1"]

    def test_named_builder_path(self):
        request = translate(BuildSpec(context=".", builder="multiarch", build_log_file="/tmp/b.log"))

        assert request.path is BuildPath.BUILDX
        assert request.builder == "multiarch"
        assert request.log_file == "/tmp/b.log"

    def test_log_file_ignored_on_legacy_path(self):
        request = translate(BuildSpec(context=".", build_log_file="/tmp/b.log"))

        assert request.log_file is None

    def test_remote_context_overrides_on_legacy_path(self):
        request = translate(BuildSpec(context=".", remote_context="https://github.com/o/r.git"))

        assert request.remote_context == "https://github.com/o/r.git"
        assert request.context_ref == "https://github.com/o/r.git"

    def test_remote_context_ignored_with_builder(self):
        request = translate(BuildSpec(context="./src", remote_context="https://x/y.git", builder="b"))

        assert request.remote_context is None
        assert request.context_ref == "./src"

    def test_secrets_on_named_builder(self):
        build = BuildSpec(
            context=".",
            builder="b",
            secrets=[
                {"id": "npm", "src": "/home/u/.npmrc", "env": "NPM_TOKEN"},
                {"id": "gh", "env": "GH_TOKEN"},
            ],
        )

        request = translate(build)

        assert request.secrets == [
            SecretDescriptor("npm", "src", "/home/u/.npmrc"),
            SecretDescriptor("gh", "env", "GH_TOKEN"),
        ]
        assert request.secrets[0].as_flag() == "id=npm,src=/home/u/.npmrc"

    def test_secrets_on_legacy_path(self):
        build = BuildSpec(context=".", secrets=[{"id": "gh", "env": "GH_TOKEN"}])

        with pytest.raises(UnsupportedOption) as exc_info:
            translate(build)

        assert exc_info.value.option == "secrets"

    def test_auth_records_pass_populated_fields_only(self):
        build = BuildSpec(
            context=".",
            auth_config=[
                {"host_name": "registry.example.com", "user_name": "u", "password": "p"},
                {"host_name": "ghcr.io", "auth": "dTpw"},
                {"host_name": "acr.example.com", "identity_token": "idt", "server_address": "acr"},
            ],
        )

        auth = translate(build).auth_configs

        assert auth == {
            "registry.example.com": {"username": "u", "password": "p"},
            "ghcr.io": {"auth": "dTpw"},
            "acr.example.com": {"identitytoken": "idt", "serveraddress": "acr"},
        }

    def test_limits_pass_through(self):
        build = BuildSpec(
            context=".",
            cpu_set_cpus="0-3",
            cpu_set_mems="0",
            cpu_shares=512,
            cpu_quota=-5,
            cpu_period=100000,
            memory=1,
            memory_swap=-1,
            shm_size=64,
            cgroup_parent="/build",
            network_mode="host",
            ulimit=[{"name": "nofile", "soft": 1024, "hard": 4096}],
        )

        request = translate(build)

        assert request.cpu_set_cpus == "0-3"
        assert request.cpu_quota == -5
        assert request.memory == 1
        assert request.memory_swap == -1
        assert request.network_mode == "host"
        assert request.ulimits == [{"Name": "nofile", "Soft": 1024, "Hard": 4096}]

    def test_cancellation_and_session_fields(self):
        request = translate(BuildSpec(context=".", build_id="b-1", session_id="s-1", version="2"))

        assert request.build_id == "b-1"
        assert request.session_id == "s-1"
        assert request.version == "2"


class TestMergeLabels:
    """Test label/labels flattening."""

    def test_union(self):
        build = BuildSpec(context=".", label={"a": "1"}, labels={"b": "2"})

        assert merge_labels(build) == {"a": "1", "b": "2"}

    def test_label_wins_on_conflict(self):
        build = BuildSpec(context=".", label={"team": "new"}, labels={"team": "old"})

        assert merge_labels(build) == {"team": "new"}
        assert translate(build).labels == {"team": "new"}
