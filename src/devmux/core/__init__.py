"""Protocol-level primitives shared by every devmux client.

- naming: session-name protocol (versioned) and test vectors
- tags: window title tag format
- geometry: rectangles and tolerance matching
"""

from .geometry import Rect
from .naming import NamingProtocol, collision_probability, session_name, verify_vectors
from .tags import session_from_title, title_format, title_matches, window_tag

__all__ = [
    "NamingProtocol",
    "Rect",
    "collision_probability",
    "session_from_title",
    "session_name",
    "title_format",
    "title_matches",
    "verify_vectors",
    "window_tag",
]
