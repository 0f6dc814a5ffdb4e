"""
Unit tests for the version resolver.
"""
import asyncio
import json

import pytest

from dcm.REGISTRY.version_resolver import VersionResolver, parse_version_output, version_from_labels

RUN = ("docker", "run", "--rm", "app:latest", "--version")
INSPECT = ("docker", "image", "inspect", "app:latest", "--format", "{{json .Config.Labels}}")


def resolve(runner, image="app:latest", tag="latest"):
    return asyncio.run(VersionResolver(runner).resolve(image, tag))


@pytest.mark.parametrize("tag", ["1.25.3", "15-alpine", "v2", "sha256:abc"])
def test_pinned_tag_returned_without_running_image(runner, tag):
    assert resolve(runner, f"app:{tag}", tag) == tag
    assert runner.calls == []


def test_labelled_version_line(runner):
    runner.on(*RUN, stdout="Server Version:   18.7.1  \nbuild abc\n")
    assert resolve(runner) == "18.7.1"


def test_labelled_line_is_returned_verbatim(runner):
    runner.on(*RUN, stdout="nginx version: nginx/1.25.3\n")
    assert resolve(runner) == "nginx/1.25.3"


def test_version_token_strips_leading_v(runner):
    runner.on(*RUN, stdout="traefik v2.10.4 linux/amd64\n")
    assert resolve(runner) == "2.10.4"


def test_only_first_lines_are_scanned(runner):
    runner.on(*RUN, stdout="usage\nsee docs\nno luck\n4.5.6\n")
    runner.fail(*INSPECT)
    assert resolve(runner) == "latest"


def test_version_run_timeout_falls_back_to_labels(runner):
    runner.on(*RUN, timeout=True)
    runner.on(*INSPECT, stdout=json.dumps({"org.opencontainers.image.version": "3.1.0"}))
    assert resolve(runner) == "3.1.0"
    assert (RUN, None, 5.0) in runner.calls


def test_oci_label_equal_to_tag_is_ignored(runner):
    runner.fail(*RUN)
    runner.on(*INSPECT, stdout=json.dumps({
        "org.opencontainers.image.version": "latest",
        "version": "0.9.2",
    }))
    assert resolve(runner) == "0.9.2"


def test_upper_case_label(runner):
    runner.fail(*RUN)
    runner.on(*INSPECT, stdout=json.dumps({"VERSION": "7.0"}))
    assert resolve(runner) == "7.0"


def test_null_labels_return_tag(runner):
    runner.fail(*RUN)
    runner.on(*INSPECT, stdout="null\n")
    assert resolve(runner) == "latest"


def test_everything_failing_returns_tag(runner):
    assert resolve(runner, "app:edge", "edge") == "edge"


def test_parse_version_output_empty():
    assert parse_version_output("") is None
    assert parse_version_output("hello world") is None


def test_version_from_labels_prefers_oci():
    labels = {"version": "1", "org.opencontainers.image.version": "2.0"}
    assert version_from_labels(labels, "latest") == "2.0"
    assert version_from_labels({}, "latest") is None
