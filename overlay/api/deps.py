from __future__ import annotations

from overlay.session import OverlaySession
from overlay.session import get_session as _get_session


def get_session() -> OverlaySession:
    # Route dependency; tests install a fakeredis-backed session via init_session().
    return _get_session()
