"""Shared test fixtures for depforge."""

from __future__ import annotations

import asyncio
import json
import re
import shlex
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from depforge.artifacts.base import GET_PUBLISHED_HASH, BaseArtifact, InformationalDeps
from depforge.bridge import s3, shell
from depforge.bridge.shell import CommandError, CommandResult
from depforge.config import ForgeConfig
from depforge.core.hasher import compute_desired_hash
from depforge.models.artifacts import ArtifactKind

COMPUTED = object()


class FakeArtifact(BaseArtifact):
    """In-memory artifact with scripted hashes and recorded calls.

    ``desired`` is computed from ``inputs`` and the dependency hashes unless
    given explicitly (``None`` means not hash-checked).  Any accessor or
    action named in ``fail_on`` raises.
    """

    def __init__(
        self,
        name: str,
        *,
        kind: ArtifactKind = ArtifactKind.IMAGE,
        dependencies: list[str] | tuple[str, ...] = (),
        local: str | None = None,
        published: str | None = None,
        desired: Any = COMPUTED,
        inputs: str = "recipe",
        informational_dependencies: Mapping[str, tuple[str, ...]] | None = None,
        required_settings: tuple[str, ...] = (),
        log: list[tuple[str, str]] | None = None,
        fail_on: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.kind = kind
        super().__init__(
            name,
            dependencies=dependencies,
            informational_dependencies=informational_dependencies,
            required_settings=required_settings,
        )
        self.local = local
        self.published = published
        self.desired = desired
        self.inputs = inputs
        self.log = log if log is not None else []
        self.fail_on = fail_on or set()
        self.delay = delay
        self.seen_dependency_hashes: dict[str, str | None] | None = None
        self.built_with: str | None = None

    async def _record(self, operation: str) -> None:
        self.log.append((self.name, operation))
        if self.delay:
            await asyncio.sleep(self.delay)
        if operation in self.fail_on:
            if operation in ("build", "retrieve", "publish"):
                raise CommandError(f"make {operation} {self.name}", 2, "boom")
            raise OSError(f"{operation} exploded for {self.name}")

    async def get_local_hash(self) -> str | None:
        await self._record("local")
        return self.local

    async def get_published_hash(self, info: InformationalDeps) -> str | None:
        await self._record("published")
        keys = self.informational_keys(GET_PUBLISHED_HASH)
        if keys:
            return info[keys[0]].get(self.name)
        return self.published

    async def get_desired_hash(
        self, dependency_hashes: Mapping[str, str | None]
    ) -> str | None:
        await self._record("desired")
        self.seen_dependency_hashes = dict(dependency_hashes)
        if self.desired is not COMPUTED:
            return self.desired
        return compute_desired_hash(
            self.name, self.kind.value, {"recipe": self.inputs}, dependency_hashes
        )

    async def build_locally(self, desired_hash: str | None) -> None:
        await self._record("build")
        self.built_with = desired_hash
        self.local = desired_hash

    async def retrieve_from_registry(self, info: InformationalDeps) -> None:
        await self._record("retrieve")
        keys = [k for k in self.informational_keys(GET_PUBLISHED_HASH) if k in info]
        self.local = info[keys[0]].get(self.name) if keys else self.published

    async def publish_to_registry(self, info: InformationalDeps) -> None:
        await self._record("publish")
        self.published = self.local


@pytest.fixture
def call_log() -> list[tuple[str, str]]:
    """Shared, ordered record of every fake artifact call."""
    return []


@pytest.fixture
def make_artifact(call_log: list[tuple[str, str]]) -> Callable[..., FakeArtifact]:
    """Factory fixture: build a FakeArtifact that logs into ``call_log``."""

    def _factory(name: str, **overrides: Any) -> FakeArtifact:
        overrides.setdefault("log", call_log)
        if name.startswith("deploy:"):
            overrides.setdefault("kind", ArtifactKind.DEPLOY)
            overrides.setdefault("desired", None)
        elif name.startswith("deb:"):
            overrides.setdefault("kind", ArtifactKind.DEB)
        elif name.startswith("test:"):
            overrides.setdefault("kind", ArtifactKind.TEST)
        return FakeArtifact(name, **overrides)

    return _factory


# ---------------------------------------------------------------------------
# Source tree fixtures
# ---------------------------------------------------------------------------


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A minimal source tree: five Dockerfiles, two languages, one shared dep."""
    root = tmp_path / "repo"
    write(
        root / "docker/packaging/Dockerfile",
        "FROM riju:ubuntu\nCOPY docker/packaging/install.bash /tmp/\n"
        "RUN /tmp/install.bash\n",
    )
    write(root / "docker/packaging/install.bash", "apt-get install -y dpkg-dev\n")
    write(root / "docker/base/Dockerfile", "FROM riju:ubuntu\nRUN useradd riju\n")
    write(root / "docker/runtime/Dockerfile", "FROM riju:base\nRUN apt-get update\n")
    write(
        root / "docker/lang/Dockerfile",
        "FROM riju:runtime\nARG LANG\nRUN install-lang $LANG\n",
    )
    write(
        root / "docker/app/Dockerfile",
        "FROM riju:runtime AS build\nRUN make frontend\n\n"
        "FROM riju:base\nCOPY --from=build /src/out /srv/app\n",
    )
    write(root / "langs/python.yaml", "id: python\nname: Python\n")
    write(
        root / "langs/typescript.yaml",
        "id: typescript\nname: TypeScript\ninstall:\n  riju:\n    - nodejs\n",
    )
    write(root / "shared/nodejs.yaml", "id: nodejs\nname: Node.js\n")
    return root


@pytest.fixture
def config(repo: Path) -> ForgeConfig:
    """A ForgeConfig pointing at the temp source tree, with remote settings filled in."""
    return ForgeConfig(
        _env_file=None,
        repo_root=repo,
        s3_bucket="riju-test-bucket",
        docker_repo="registry.test/riju",
    )


# ---------------------------------------------------------------------------
# External command and object store fakes
# ---------------------------------------------------------------------------

HASH_LABEL = "riju.image-hash"

_MAKE_IMAGE = re.compile(r"^make (image|push|pull) I=(\S+)(?: HASH=(\S+))?$")
_MAKE_PKG = re.compile(r'^make shell I=packaging CMD="make pkg T=(\w+) L=(\S+) HASH=(\S+)"$')
_MAKE_DEB = re.compile(r"^make (upload|download) T=(\w+) L=(\S+)$")


class FakeS3:
    """In-memory bucket standing in for boto3's S3 client.

    Objects are ``{(bucket, key): body}``; listings are served a few keys
    per page so callers must follow pagination.
    """

    page_size = 2

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.listings: list[tuple[str, str]] = []
        self.uploads: list[tuple[str, str, str]] = []
        self.error: Exception | None = None
        self.clients: list[dict] = []

    def put(self, bucket: str, key: str, body: bytes = b"") -> None:
        self.objects[(bucket, key)] = body

    def keys(self, bucket: str, prefix: str = "") -> list[str]:
        return sorted(k for b, k in self.objects if b == bucket and k.startswith(prefix))

    def get_client(self, *, region: str = "", timeout: float | None = None) -> "FakeS3":
        self.clients.append({"region": region, "timeout": timeout})
        return self

    def get_paginator(self, operation: str) -> "FakeS3":
        assert operation == "list_objects_v2"
        return self

    def paginate(self, *, Bucket: str, Prefix: str):
        self.listings.append((Bucket, Prefix))
        if self.error is not None:
            raise self.error
        keys = self.keys(Bucket, Prefix)
        if not keys:
            yield {"KeyCount": 0}
        for start in range(0, len(keys), self.page_size):
            yield {"Contents": [{"Key": key} for key in keys[start:start + self.page_size]]}

    def upload_file(self, path: str, bucket: str, key: str) -> None:
        self.uploads.append((path, bucket, key))
        if self.error is not None:
            raise self.error
        self.put(bucket, key, Path(path).read_bytes())


class FakeShell:
    """Replacement for ``shell.run_command`` that emulates the build machine.

    Starts clean: no local images, nothing in the registry, no packages.
    ``make image`` records the ``HASH`` it was given as the image label,
    ``push``/``pull`` copy labels between daemon and registry, ``make pkg``
    writes a package whose control field ``dpkg-deb`` reads back, and
    ``make upload``/``download`` move packages through the ``FakeS3``
    bucket.  Every other command succeeds with no output.  A command line
    containing a string listed in ``failing`` exits 2.  Scripted answers
    can be added per command prefix and win over the emulation.
    """

    def __init__(self, bucket: FakeS3, *, s3_bucket: str = "riju-test-bucket") -> None:
        self.commands: list[str] = []
        self.responses: dict[str, CommandResult] = {}
        self.failing: set[str] = set()
        self.local_images: dict[str, str] = {}
        self.registry: dict[str, str] = {}
        self.packages: dict[str, str] = {}
        self.bucket = bucket
        self.s3_bucket = s3_bucket

    def respond(self, prefix: str, *, stdout: str = "", stderr: str = "", returncode: int = 0):
        self.responses[prefix] = CommandResult(prefix, returncode, stdout, stderr)

    @staticmethod
    def _inspect(command: str, images: dict[str, str], tag: str, missing: str) -> CommandResult:
        if tag not in images:
            return CommandResult(command, 1, "", missing)
        labels = {HASH_LABEL: images[tag]} if images[tag] else {}
        return CommandResult(command, 0, json.dumps([{"Config": {"Labels": labels}}]))

    def _write_package(self, cwd: Path, deb_type: str, lang: str, value: str) -> None:
        path = Path(cwd) / "build" / deb_type / lang / f"riju-{deb_type}-{lang}.deb"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"!<arch>\n")
        self.packages[str(path)] = value

    def _answer(self, command: str, cwd: Path | None) -> CommandResult:
        for prefix, result in self.responses.items():
            if command.startswith(prefix):
                return CommandResult(command, result.returncode, result.stdout, result.stderr)

        if command.startswith("docker image inspect "):
            tag = command.rsplit(":", 1)[-1]
            return self._inspect(command, self.local_images, tag, "Error: No such image")
        if command.startswith("skopeo inspect "):
            tag = command.rsplit(":", 1)[-1]
            return self._inspect(command, self.registry, tag, "manifest unknown")
        if command.startswith("dpkg-deb -f "):
            path = shlex.split(command)[2]
            return CommandResult(command, 0, self.packages.get(path, "") + "\n")

        if match := _MAKE_IMAGE.match(command):
            target, tag, value = match.groups()
            if target == "image":
                self.local_images[tag] = value or ""
            elif target == "push":
                if tag not in self.local_images:
                    return CommandResult(command, 1, "", "No such image")
                self.registry[tag] = self.local_images[tag]
            elif tag in self.registry:
                self.local_images[tag] = self.registry[tag]
            else:
                return CommandResult(command, 1, "", "manifest unknown")
        elif match := _MAKE_PKG.match(command):
            self._write_package(cwd, *match.groups())
        elif match := _MAKE_DEB.match(command):
            action, deb_type, lang = match.groups()
            path = Path(cwd) / "build" / deb_type / lang / f"riju-{deb_type}-{lang}.deb"
            prefix = f"hashes/riju-{deb_type}-{lang}/"
            if action == "upload":
                if str(path) not in self.packages:
                    return CommandResult(command, 1, "", f"{path}: no such file")
                self.bucket.put(self.s3_bucket, prefix + self.packages[str(path)])
            else:
                keys = self.bucket.keys(self.s3_bucket, prefix)
                if not keys:
                    return CommandResult(command, 1, "", "download failed")
                self._write_package(cwd, deb_type, lang, keys[-1].rsplit("/", 1)[-1])
        return CommandResult(command, 0)

    async def __call__(self, command, *, cwd=None, capture=False, check=True, timeout=None):
        self.commands.append(command)
        if any(marker in command for marker in self.failing):
            result = CommandResult(command, 2, "", "make: *** [image] Error 2")
        else:
            result = self._answer(command, cwd)
        if check and result.returncode != 0:
            raise CommandError(command, result.returncode, result.stderr)
        return result

    def ran(self, prefix: str) -> list[str]:
        return [c for c in self.commands if c.startswith(prefix)]


@pytest.fixture
def fake_s3(monkeypatch) -> FakeS3:
    fake = FakeS3()
    monkeypatch.setattr(s3, "get_client", fake.get_client)
    return fake


@pytest.fixture
def fake_shell(monkeypatch, fake_s3: FakeS3) -> FakeShell:
    fake = FakeShell(fake_s3)
    monkeypatch.setattr(shell, "run_command", fake)
    return fake
