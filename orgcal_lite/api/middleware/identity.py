"""Caller identity and organization membership checks.

Authentication happens upstream; the proxy forwards the authenticated user id
in a header (``X-User-Id`` unless configured otherwise).
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from orgcal_lite.domain.exceptions import ForbiddenError, UnauthorizedError
from orgcal_lite.domain.models import Membership

logger = logging.getLogger(__name__)


def require_user_id(request: web.Request, header_name: str) -> str:
    """Return the authenticated user id.

    Raises:
        UnauthorizedError: If the identity header is missing or blank
    """
    user_id = request.headers.get(header_name, "").strip()
    if not user_id:
        raise UnauthorizedError("Unauthorized")
    return user_id


async def require_active_membership(store: Any, user_id: str, org_id: str) -> Membership:
    """Return the caller's membership in ``org_id``.

    Raises:
        ForbiddenError: If the caller is not an active member
    """
    membership = await store.get_membership(user_id, org_id)
    if membership is None or not membership.is_active:
        logger.info("User %s denied access to org %s", user_id, org_id)
        raise ForbiddenError("Not a member of this organization")
    return membership
