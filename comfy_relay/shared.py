"""Package-facing alias for shared utilities.

Feature modules import from here (``from ...shared import Result, get_logger``)
so the shared package can be swapped or vendored without touching them.
"""

from __future__ import annotations

import comfy_relay_shared as _root_shared
from comfy_relay_shared import *  # noqa: F401,F403

__all__ = list(_root_shared.__all__)
