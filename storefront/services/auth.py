"""
Auth API Client

Credential exchanges against the storefront backend: password login,
registration, email OTP and Google sign-in. Every method returns a gateway
Result whose value is an AuthResponse; a 2xx body with success=false is
reported as an UNAUTHORIZED error, and a payload that fails validation comes
back as a VALIDATION error without any request being sent.
"""

import logging
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from storefront.api.schemas.auth import (
    AuthResponse,
    GoogleAuthRequest,
    LoginRequest,
    OtpSendRequest,
    OtpVerifyRequest,
    RegisterRequest,
)
from storefront.services.gateway import ErrorKind, GatewayError, NetworkGateway, Result

logger = logging.getLogger(__name__)


class AuthClient:
    def __init__(self, gateway: NetworkGateway):
        self.gateway = gateway

    def _call(self, path: str, build: Callable[[], BaseModel], default_error: str,
              require_token: bool = True) -> Result:
        try:
            payload = build()
        except ValidationError as exc:
            logger.info("Rejected %s payload before sending: %s", path, exc)
            return Result.failure(GatewayError(ErrorKind.VALIDATION, _first_error(exc), body=exc.errors()))

        result = self.gateway.post(path, json=payload.model_dump(by_alias=True, exclude_none=True))
        if not result.ok:
            return result

        try:
            body = AuthResponse.model_validate(result.value or {})
        except ValidationError as exc:
            logger.warning("Malformed auth response from %s: %s", path, exc)
            return Result.failure(GatewayError(
                ErrorKind.PROTOCOL, "Malformed authentication response", result.status_code, result.value
            ))

        if not body.success:
            return Result.failure(GatewayError(
                ErrorKind.UNAUTHORIZED, body.message or default_error, result.status_code, result.value
            ))
        if require_token and not body.token:
            return Result.failure(GatewayError(
                ErrorKind.PROTOCOL, "Authentication response carried no token", result.status_code, result.value
            ))
        return Result.success(body, result.status_code)

    def login(self, email: str, password: str) -> Result:
        return self._call("/auth/login", lambda: LoginRequest(email=email, password=password), "Login failed")

    def register(self, name: str, email: str, password: str) -> Result:
        # some backends sign the shopper in on registration, others do not
        return self._call(
            "/auth/register",
            lambda: RegisterRequest(name=name, email=email, password=password),
            "Registration failed",
            require_token=False,
        )

    def send_otp(self, email: str) -> Result:
        return self._call("/auth/otp/send", lambda: OtpSendRequest(email=email), "Could not send OTP",
                          require_token=False)

    def verify_otp(self, email: str, otp: str) -> Result:
        return self._call("/auth/otp/verify", lambda: OtpVerifyRequest(email=email, otp=otp),
                          "OTP verification failed")

    def google(self, email: str, name: Optional[str], google_id: str) -> Result:
        return self._call("/auth/google", lambda: GoogleAuthRequest(email=email, name=name, google_id=google_id),
                          "Google sign-in failed")

    def me(self) -> Result:
        """Profile of the signed-in shopper; needs a stored token"""
        return self.gateway.get("/auth/me")


def user_summary(body: AuthResponse) -> Dict[str, Any]:
    if body.user is None:
        return {}
    return {
        "id": body.user.id,
        "email": body.user.email,
        "name": body.user.name,
        "role": body.user.role,
    }


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))
