"""Pane configuration resolver

Turns a project directory into a concrete pane list and layout plan:

1. `.devmux.json` with a non-empty "panes" list -> used verbatim
2. otherwise -> inferred agent pane + server pane (dev script detection)

A malformed declaration is logged as a warning and inference is used; it is
never fatal. The declaration is read fresh on every call.
"""

import json
import os
from dataclasses import dataclass

from pydantic import ValidationError

from devmux import config
from devmux.errors import ConfigError
from devmux.models import PaneSpec, ProjectConfig
from devmux.telemetry import get_logger

from .declaration import Declaration

logger = get_logger(__name__)

MANIFEST_FILENAME = "package.json"


def declaration_path(project_dir: str) -> str:
    return os.path.join(project_dir, config.DECLARATION_FILENAME)


def read_declaration(project_dir: str) -> Declaration | None:
    """Read and validate `.devmux.json`.

    Returns:
        Declaration, or None if the file does not exist.

    Raises:
        ConfigError: The file exists but is not valid JSON or has the wrong shape.
    """
    path = declaration_path(project_dir)
    if not os.path.isfile(path):
        return None
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(config.DECLARATION_FILENAME, str(e)) from e

    if not isinstance(raw, dict):
        raise ConfigError(config.DECLARATION_FILENAME, "top level must be an object")
    try:
        return Declaration.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(config.DECLARATION_FILENAME, _first_error(e)) from e


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return str(e)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg', 'invalid value')}" if loc else first.get("msg", str(e))


def detect_package_manager(project_dir: str) -> str:
    """Pick the package manager by lockfile presence (pnpm, bun, yarn, else npm)."""
    for lockfiles, manager in config.LOCKFILE_MANAGERS:
        if any(os.path.exists(os.path.join(project_dir, lf)) for lf in lockfiles):
            return manager
    return config.DEFAULT_PACKAGE_MANAGER


def run_invocation(manager: str) -> str:
    """How a script is run: "npm run" for npm, the bare manager otherwise."""
    return "npm run" if manager == "npm" else manager


def read_scripts(project_dir: str) -> dict | None:
    """The "scripts" table of package.json, or None if there is no usable manifest."""
    path = os.path.join(project_dir, MANIFEST_FILENAME)
    if not os.path.isfile(path):
        return None
    try:
        with open(path, encoding="utf-8") as f:
            manifest = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"[Resolver] unreadable {MANIFEST_FILENAME} in {project_dir}: {e}")
        return None
    if not isinstance(manifest, dict):
        return None
    scripts = manifest.get("scripts")
    return scripts if isinstance(scripts, dict) else {}


def detect_dev_command(project_dir: str) -> str | None:
    """First of dev/start/serve/watch, prefixed by the package manager run invocation."""
    scripts = read_scripts(project_dir)
    if not scripts:
        return None
    invocation = run_invocation(detect_package_manager(project_dir))
    for script in config.DEV_SCRIPT_ORDER:
        if scripts.get(script):
            return f"{invocation} {script}"
    return None


def infer_panes(project_dir: str) -> list[PaneSpec]:
    """Default two-pane layout: agent on the left, dev server (or idle shell) on the right."""
    agent = config.DEFAULT_AGENT_PANE
    return [
        PaneSpec(name=agent["name"], cmd=agent["cmd"], size=agent["size"]),
        PaneSpec(name=config.DEFAULT_SERVER_PANE_NAME, cmd=detect_dev_command(project_dir)),
    ]


def _to_pane_specs(declaration: Declaration) -> list[PaneSpec]:
    return [
        PaneSpec(
            name=p.name,
            cmd=p.cmd,
            size=int(round(p.size)) if p.size is not None else None,
        )
        for p in declaration.panes
    ]


def load_project_config(project_dir: str) -> ProjectConfig:
    """Resolve the project configuration for a directory.

    Args:
        project_dir: Project directory

    Returns:
        ProjectConfig with declared or inferred panes.
    """
    path = os.path.abspath(project_dir)
    try:
        declaration = read_declaration(path)
    except ConfigError as e:
        logger.warning(f"Warning: {e}. Falling back to inferred panes.")
        declaration = None

    ensure = declaration.ensure if declaration else False
    prefill = declaration.prefill if declaration else False

    if declaration and declaration.panes:
        return ProjectConfig(
            path=path,
            panes=_to_pane_specs(declaration),
            ensure=ensure,
            prefill=prefill,
            source="declared",
        )

    return ProjectConfig(
        path=path,
        panes=infer_panes(path),
        ensure=ensure,
        prefill=prefill,
        source="inferred",
    )


def default_declaration(project_dir: str) -> dict:
    """Content written by `devmux init`."""
    dev_cmd = detect_dev_command(project_dir)
    return {
        "ensure": True,
        "panes": [
            dict(config.DEFAULT_AGENT_PANE),
            {
                "name": config.DEFAULT_SERVER_PANE_NAME,
                "cmd": dev_cmd or config.NO_DEV_SERVER_PLACEHOLDER,
            },
        ],
    }


def write_default_declaration(project_dir: str) -> tuple[str, dict | None]:
    """Write `.devmux.json` unless it already exists.

    Returns:
        (path, content) - content is None when the file already existed.
    """
    path = declaration_path(project_dir)
    if os.path.exists(path):
        return path, None
    content = default_declaration(project_dir)
    with open(path, "w", encoding="utf-8") as f:
        f.write(json.dumps(content, indent=2) + "\n")
    logger.info(f"[Resolver] wrote {path}")
    return path, content


# === Layout ===


@dataclass
class LayoutPlan:
    """How the panes are arranged in the single tmux window.

    kind:
    - "single": one pane, nothing to split
    - "split": one horizontal split, right side gets (100 - main_size)%
    - "main-vertical": first pane on the left at main_size%, the rest stacked right
    """

    kind: str
    pane_count: int
    main_size: int

    @property
    def splits(self) -> int:
        return max(self.pane_count - 1, 0)


def plan_layout(panes: list[PaneSpec]) -> LayoutPlan:
    main_size = config.DEFAULT_MAIN_PANE_SIZE
    if panes and panes[0].size:
        main_size = int(panes[0].size)
    count = len(panes)
    if count <= 1:
        kind = "single"
    elif count == 2:
        kind = "split"
    else:
        kind = "main-vertical"
    return LayoutPlan(kind=kind, pane_count=count, main_size=main_size)
