"""Dockerfile inspection: base images and the files an image is built from.

Only the parts of Dockerfile syntax that matter for fingerprinting are
understood: ``FROM`` (base images) and ``COPY``/``ADD`` (context files).
The build context is the repository root.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path

from depforge.config import ConfigurationError

_GLOB_CHARS = set("*?[")


class DockerfileSyntaxError(ConfigurationError):
    """Raised when a Dockerfile instruction cannot be tokenized."""


@dataclass(frozen=True)
class Instruction:
    keyword: str
    arguments: list[str] = field(default_factory=list)


def _instruction(text: str, source: str, lineno: int) -> Instruction:
    keyword, _, rest = text.strip().partition(" ")
    try:
        arguments = shlex.split(rest)
    except ValueError as exc:
        raise DockerfileSyntaxError(
            f"{source}, line {lineno}: cannot parse {keyword.upper()} arguments: {exc}"
        ) from None
    return Instruction(keyword.upper(), arguments)


def parse_instructions(text: str, source: str = "Dockerfile") -> list[Instruction]:
    """Split a Dockerfile into instructions, joining continuation lines.

    *source* names the file in error messages.
    """
    instructions: list[Instruction] = []
    pending = ""
    start = 0
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not pending and (not line or line.startswith("#")):
            continue
        if line.startswith("#"):
            # comment lines inside a continuation are dropped by docker
            continue
        if not pending:
            start = lineno
        if line.endswith("\\"):
            pending += line[:-1] + " "
            continue
        pending += line
        instructions.append(_instruction(pending, source, start))
        pending = ""
    if pending.strip():
        instructions.append(_instruction(pending, source, start))
    return instructions


def _strip_flags(arguments: list[str]) -> tuple[dict[str, str], list[str]]:
    flags: dict[str, str] = {}
    positional: list[str] = []
    for arg in arguments:
        if arg.startswith("--") and not positional:
            key, _, value = arg[2:].partition("=")
            flags[key] = value
        else:
            positional.append(arg)
    return flags, positional


def get_base_images(text: str, source: str = "Dockerfile") -> list[str]:
    """Return the external base images named by ``FROM``, in order, de-duplicated.

    References to an earlier build stage (``FROM builder``) are not images.
    """
    stages: set[str] = set()
    images: list[str] = []
    for instruction in parse_instructions(text, source):
        if instruction.keyword != "FROM":
            continue
        _, positional = _strip_flags(instruction.arguments)
        if not positional:
            continue
        image = positional[0]
        if len(positional) >= 3 and positional[1].upper() == "AS":
            alias = positional[2].lower()
        else:
            alias = None
        if image.lower() not in stages and image not in images:
            images.append(image)
        if alias:
            stages.add(alias)
    return images


def get_context_sources(text: str, source: str = "Dockerfile") -> list[str]:
    """Return context paths copied into the image by ``COPY``/``ADD``.

    Copies from other stages (``--from``) and remote ``ADD`` URLs are skipped.
    """
    sources: list[str] = []
    for instruction in parse_instructions(text, source):
        if instruction.keyword not in ("COPY", "ADD"):
            continue
        flags, positional = _strip_flags(instruction.arguments)
        if "from" in flags or len(positional) < 2:
            continue
        for path in positional[:-1]:
            if "://" in path:
                continue
            if path not in sources:
                sources.append(path)
    return sources


def _expand_source(repo_root: Path, source: str) -> list[Path]:
    relative = source.lstrip("/")
    if relative in ("", "."):
        raise ValueError("Copying the whole build context is not fingerprintable")
    if _GLOB_CHARS & set(relative):
        matches = sorted(repo_root.glob(relative))
    else:
        path = repo_root / relative
        if not path.exists():
            raise FileNotFoundError(f"COPY source not found: {source}")
        matches = [path]

    files: list[Path] = []
    for match in matches:
        if match.is_dir():
            files.extend(sorted(p for p in match.rglob("*") if p.is_file()))
        elif match.is_file():
            files.append(match)
    return files


def dockerfile_inputs(repo_root: Path, dockerfile: Path) -> dict[str, bytes]:
    """Collect every declared input of an image: the Dockerfile and its sources.

    Returns ``{repo-relative path: bytes}``.
    """
    repo_root = Path(repo_root)
    text = dockerfile.read_text(encoding="utf-8")
    inputs: dict[str, bytes] = {
        dockerfile.relative_to(repo_root).as_posix(): text.encode("utf-8")
    }
    for source in get_context_sources(text, str(dockerfile)):
        for path in _expand_source(repo_root, source):
            inputs[path.relative_to(repo_root).as_posix()] = path.read_bytes()
    return inputs
