"""Image label lookups from the local daemon (``docker``) and the registry (``skopeo``).

An image's reconciliation hash is stored in one of its labels.  A missing
image (never built, never pushed) reads as ``None``; any other failure
raises.
"""

from __future__ import annotations

import json
import logging
import shlex

from depforge.bridge import shell

logger = logging.getLogger(__name__)

_LOCAL_NOT_FOUND = ("no such image", "no such object")
_REMOTE_NOT_FOUND = ("manifest unknown", "name unknown")

# POSIX shells exit 127 when the command itself is missing
_COMMAND_NOT_FOUND = 127


class MalformedMetadataError(RuntimeError):
    """Raised when image metadata cannot be parsed."""


def _label_from_inspect(raw: str, label: str, *, source: str) -> str | None:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedMetadataError(f"Unparseable metadata for {source}: {exc}") from exc
    if isinstance(data, list):
        data = data[0] if data else {}
    if not isinstance(data, dict):
        raise MalformedMetadataError(f"Unexpected metadata shape for {source}")

    # docker inspect nests labels under Config; skopeo puts them at top level
    labels = data.get("Labels")
    if labels is None:
        labels = (data.get("Config") or {}).get("Labels")
    value = (labels or {}).get(label) or None
    if value is None:
        logger.warning("Image %s exists but has no '%s' label", source, label)
    return value


def _is_missing(result: shell.CommandResult, markers: tuple[str, ...]) -> bool:
    if result.returncode == _COMMAND_NOT_FOUND:
        return False
    stderr = result.stderr.lower()
    return any(marker in stderr for marker in markers)


async def get_local_image_label(
    image: str, label: str, *, timeout: float | None = None
) -> str | None:
    """Return *label* of local *image*, or None if the image does not exist."""
    result = await shell.run_command(
        f"docker image inspect {shlex.quote(image)}",
        capture=True,
        check=False,
        timeout=timeout,
    )
    if result.returncode != 0:
        if _is_missing(result, _LOCAL_NOT_FOUND):
            logger.debug("Local image %s not found", image)
            return None
        raise shell.CommandError(result.command, result.returncode, result.stderr)
    return _label_from_inspect(result.stdout, label, source=image)


async def get_remote_image_label(
    reference: str, label: str, *, timeout: float | None = None
) -> str | None:
    """Return *label* of registry image *reference*, or None if unpublished."""
    result = await shell.run_command(
        f"skopeo inspect {shlex.quote('docker://' + reference)}",
        capture=True,
        check=False,
        timeout=timeout,
    )
    if result.returncode != 0:
        if _is_missing(result, _REMOTE_NOT_FOUND):
            logger.debug("Remote image %s not found", reference)
            return None
        raise shell.CommandError(result.command, result.returncode, result.stderr)
    return _label_from_inspect(result.stdout, label, source=reference)
