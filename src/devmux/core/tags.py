"""Window tag protocol

tmux is told to keep the terminal title set to

    [devmux:<session-name>] <pane-title>

so any OS window showing the session can be matched back to it by substring
containment of the bracketed prefix.
"""

import re

from devmux import config

_TAG_RE = re.compile(r"\[" + re.escape(config.TAG_PREFIX) + r":([A-Za-z0-9_-]+)\]")


def window_tag(session: str) -> str:
    """The bracketed tag for a session, e.g. "[devmux:app-432f13]"."""
    return f"[{config.TAG_PREFIX}:{session}]"


def title_format(session: str) -> str:
    """tmux set-titles-string value; tmux expands #{pane_title} on every refresh."""
    return f"{window_tag(session)} #{{pane_title}}"


def title_matches(title: str | None, tag: str) -> bool:
    """True if a window title carries the tag."""
    return bool(title) and tag in title


def session_from_title(title: str | None) -> str | None:
    """Extract the session name from a tagged window title."""
    if not title:
        return None
    match = _TAG_RE.search(title)
    return match.group(1) if match else None
