"""Authentication helpers for FastAPI endpoints.

Credentials are verified here and the principal's role and ban state are
always loaded from the user store; nothing the client asserts about its own
role is trusted. Dev headers are only respected in development.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from blog_api.domain import container
from blog_api.domain.models import Principal
from blog_api.infra import jwt as jwt_helper
from blog_api.obs import logging as obs_logging
from blog_api.settings import settings

_bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "invalid_token") -> HTTPException:
	return HTTPException(
		status_code=status.HTTP_401_UNAUTHORIZED,
		detail=detail,
		headers={"WWW-Authenticate": "Bearer"},
	)


def subject_from_token(token: str) -> str:
	"""Decode an access JWT and return its subject."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise _unauthorized() from None
	return str(payload.get("sub") or "").strip()


async def _load_principal(request: Request, user_id: str) -> Principal:
	user = await container.get_user_repository().get(user_id)
	if user is None:
		raise _unauthorized("unknown_user")
	request.state.user_id = user.id
	obs_logging.bind_user(user.id, user.role.value)
	return Principal.from_user(user)


async def get_current_principal(
	request: Request,
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Principal:
	"""Resolve the authenticated principal once per request.

	In development we allow the X-User-Id header. In all other environments
	a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return await _load_principal(request, subject_from_token(credentials.credentials))

	if settings.is_dev() and x_user_id and x_user_id.strip():
		return await _load_principal(request, x_user_id.strip())

	raise _unauthorized()
