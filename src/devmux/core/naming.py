"""Session naming protocol

The session name is shared by every devmux client (the CLI that creates the tmux
session and the companion that later looks for its window), so it is specified
as a versioned protocol rather than an implementation detail:

- v1 (PLAIN):  sanitize(basename(path))
- v2 (HASHED): sanitize(basename(path)) + "-" + hex6(sha256(utf8(abspath(path))))

sanitize replaces every UTF-16 code unit outside [a-zA-Z0-9_-] with "-", so a
character outside the BMP (e.g. an emoji) becomes two dashes. hex6 is the
lowercase hex of the first 3 digest bytes.

The version is pinned once per deployment (config.NAMING_PROTOCOL_VERSION) and
never guessed per call. All clients validate against naming_vectors.json.

v2 has a 24-bit suffix space: with n projects sharing a basename the chance of a
suffix collision is about 1 - exp(-n(n-1) / 2^25). It is small but not zero.
"""

import hashlib
import json
import math
import os
import re
from dataclasses import dataclass
from enum import IntEnum
from importlib import resources

HASH_BYTES = 3
HASH_SPACE = 2 ** (8 * HASH_BYTES)

_ALLOWED = re.compile(r"[a-zA-Z0-9_-]")
_VECTORS_FILE = "naming_vectors.json"


class NamingProtocol(IntEnum):
    """Session naming protocol version."""

    PLAIN = 1
    HASHED = 2


def absolute_path(path: str) -> str:
    """Resolve a path the way every client must before hashing.

    Relative paths are joined to the cwd and normalized; symlinks are NOT
    followed and a trailing separator is dropped.
    """
    return os.path.abspath(path)


def sanitize(name: str) -> str:
    """Replace every UTF-16 code unit outside [a-zA-Z0-9_-] with "-"."""
    out = []
    for ch in name:
        if _ALLOWED.fullmatch(ch):
            out.append(ch)
        else:
            # surrogate pairs count as two units
            out.append("--" if ord(ch) > 0xFFFF else "-")
    return "".join(out)


def path_hash(path: str) -> str:
    """Lowercase hex of the first 3 bytes of sha256(abspath)."""
    digest = hashlib.sha256(absolute_path(path).encode("utf-8", "surrogateescape")).digest()
    return digest[:HASH_BYTES].hex()


def session_name(path: str, version: NamingProtocol | int = NamingProtocol.HASHED) -> str:
    """Derive the tmux session name for a project directory.

    Args:
        path: Project directory (absolute or relative to the cwd)
        version: Pinned naming protocol version

    Returns:
        Session name, e.g. "app-432f13"
    """
    version = NamingProtocol(version)
    base = sanitize(os.path.basename(absolute_path(path)))
    if version == NamingProtocol.PLAIN:
        return base
    return f"{base}-{path_hash(path)}"


def collision_probability(n: int, space: int = HASH_SPACE) -> float:
    """Birthday bound for n distinct paths sharing a basename."""
    if n < 2:
        return 0.0
    return 1.0 - math.exp(-n * (n - 1) / (2.0 * space))


@dataclass
class VectorMismatch:
    path: str
    version: int
    expected: str
    actual: str


def load_vectors() -> dict:
    """Load the shared test-vector fixture shipped with the package."""
    text = resources.files("devmux.core").joinpath(_VECTORS_FILE).read_text(encoding="utf-8")
    return json.loads(text)


def verify_vectors(vectors: dict | None = None) -> list[VectorMismatch]:
    """Check this implementation against the shared vectors.

    Returns:
        List of mismatches; empty when the implementation conforms.
    """
    data = vectors if vectors is not None else load_vectors()
    mismatches = []
    for vector in data.get("vectors", []):
        for version in NamingProtocol:
            key = f"v{version.value}"
            if key not in vector:
                continue
            actual = session_name(vector["path"], version)
            if actual != vector[key]:
                mismatches.append(
                    VectorMismatch(
                        path=vector["path"],
                        version=version.value,
                        expected=vector[key],
                        actual=actual,
                    )
                )
    return mismatches
