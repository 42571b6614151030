"""Thin wrappers around the docker CLI. Every call raises CalledProcessError on a non-zero exit."""

import json
import logging
import subprocess
from typing import List, Optional


def build_image(image: str, build_context: str, platform: str = "linux/amd64") -> None:
    build_cmd = ["docker", "build", "--platform", platform, "-t", image, build_context]
    logging.info(f"Building image for {platform}: {image}")
    subprocess.run(build_cmd, check=True)


def login(registry: str, username: str, password: str) -> None:
    login_cmd = ["docker", "login", "--username", username, "--password-stdin", registry]
    subprocess.run(login_cmd, input=password.encode(), check=True, capture_output=True)
    logging.info(f"Logged in to {registry}")


def tag_image(source: str, target: str) -> None:
    subprocess.run(["docker", "tag", source, target], check=True)


def push_image(image: str) -> None:
    logging.info(f"Pushing image {image}...")
    subprocess.run(["docker", "push", image], check=True)


def repo_digests(image: str) -> List[str]:
    inspect_cmd = ["docker", "image", "inspect", "--format", "{{json .RepoDigests}}", image]
    completed = subprocess.run(inspect_cmd, check=True, capture_output=True)
    return json.loads(completed.stdout.decode().strip() or "[]") or []


def repo_digest(image: str, repository_uri: str) -> Optional[str]:
    """Return the sha256 digest ``image`` is known under in ``repository_uri``, None if it was never pushed there."""
    for entry in repo_digests(image):
        repository, _, digest = entry.partition("@")
        if repository == repository_uri and digest:
            return digest

    return None
