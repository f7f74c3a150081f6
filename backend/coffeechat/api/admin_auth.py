"""Operator credential guard for the admin surface."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from coffeechat.domain.errors import ServerMisconfigured, Unauthorized

ADMIN_KEY_HEADER = "X-Admin-Api-Key"


@dataclass(frozen=True)
class AdminCredential:
	"""Key provisioned at start-up; ``None`` means the admin surface is unavailable."""

	api_key: Optional[str]

	@property
	def provisioned(self) -> bool:
		return bool(self.api_key)

	def matches(self, provided: Optional[str]) -> bool:
		if not self.api_key or not provided:
			return False
		return hmac.compare_digest(provided.encode("utf-8"), self.api_key.encode("utf-8"))


def get_admin_credential(request: Request) -> AdminCredential:
	credential = getattr(request.app.state, "admin_credential", None)
	return credential if isinstance(credential, AdminCredential) else AdminCredential(api_key=None)


async def require_admin(
	request: Request,
	x_admin_api_key: Optional[str] = Header(default=None, alias=ADMIN_KEY_HEADER),
) -> None:
	credential = get_admin_credential(request)
	if not credential.provisioned:
		raise ServerMisconfigured("admin_key_not_configured")
	if not credential.matches(x_admin_api_key):
		raise Unauthorized("invalid_admin_key")
