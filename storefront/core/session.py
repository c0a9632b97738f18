"""Guest cart to account reconciliation around sign-in"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from storefront.api.schemas.auth import AuthResponse, AuthUser
from storefront.core.cart_store import CartStore
from storefront.core.state_machine import InvalidTransition, StateMachine
from storefront.core.token import TokenHolder
from storefront.models.cart import CartSnapshot
from storefront.services.auth import AuthClient
from storefront.services.gateway import GatewayError, Result

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


SESSION_TRANSITIONS = {
    SessionState.ANONYMOUS.value: [SessionState.AUTHENTICATING.value],
    SessionState.AUTHENTICATING.value: [SessionState.AUTHENTICATED.value, SessionState.ANONYMOUS.value],
    SessionState.AUTHENTICATED.value: [SessionState.ANONYMOUS.value],
}


@dataclass(frozen=True)
class LoginAttempt:
    """Phase one of a sign-in: the cart as it was before any network call"""
    snapshot: CartSnapshot
    version: int
    method: str = "credentials"


@dataclass
class LoginOutcome:
    """Phase two: what the credential exchange and the cart merge produced"""
    state: SessionState
    user: Optional[AuthUser] = None
    error: Optional[GatewayError] = None
    merged_lines: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED


Exchange = Callable[[], Result]


class SessionReconciler:
    """
    Carries a guest cart across sign-in.

        attempt = reconciler.begin_login()          # snapshot, no I/O
        outcome = reconciler.authenticate(attempt, lambda: auth.login(email, pw))
        if not outcome.ok:
            show(outcome.error.message)

    The guest cart lives under the store's base key; a signed-in shopper's
    cart lives under "<base key>:<user id>". On success the token is stored
    first, the store switches to the account record, the guest record is
    emptied and the snapshot is replayed into the account cart with
    add_to_cart semantics, with nothing in between that could suspend. On
    failure nothing is stored and the cart is left as it was.
    """

    def __init__(self, store: CartStore, token_holder: TokenHolder, auth: AuthClient):
        self.store = store
        self.token_holder = token_holder
        self.auth = auth
        self.user: Optional[AuthUser] = None
        self.guest_key = store.storage_key
        initial = SessionState.ANONYMOUS
        if token_holder.is_authenticated:
            initial = SessionState.AUTHENTICATED
            self._use_account_cart(token_holder.subject())
        self.machine = StateMachine(state=initial.value, allowed_transitions=SESSION_TRANSITIONS)

    def account_key(self, user_id: str) -> str:
        return f"{self.guest_key}:{user_id}"

    def _use_account_cart(self, user_id: Optional[str]) -> None:
        if user_id:
            self.store.use_storage_key(self.account_key(user_id))

    @property
    def state(self) -> SessionState:
        if self.machine.state == SessionState.AUTHENTICATED.value and not self.token_holder.is_authenticated:
            self.machine.apply(SessionState.ANONYMOUS.value, meta={"reason": "token expired"})
            self.user = None
            self.store.use_storage_key(self.guest_key)
        return SessionState(self.machine.state)

    def begin_login(self, method: str = "credentials") -> LoginAttempt:
        if self.state is not SessionState.ANONYMOUS:
            raise InvalidTransition(f"Cannot start a sign-in while {self.state.value}")
        return LoginAttempt(snapshot=self.store.get_cart_snapshot(), version=self.machine.version, method=method)

    def authenticate(self, attempt: LoginAttempt, exchange: Exchange) -> LoginOutcome:
        self.machine.apply(
            SessionState.AUTHENTICATING.value,
            meta={"method": attempt.method},
            expected_version=attempt.version,
        )
        logger.info("Signing in via %s", attempt.method)

        try:
            result = exchange()
        except Exception:
            self.machine.apply(SessionState.ANONYMOUS.value, meta={"error": "exchange raised"})
            raise

        if not result.ok:
            self.machine.apply(SessionState.ANONYMOUS.value, meta={"error": result.error.message})
            logger.info("Sign-in via %s rejected: %s", attempt.method, result.error.message)
            return LoginOutcome(state=SessionState.ANONYMOUS, error=result.error)

        body: AuthResponse = result.value
        if not body.token:
            # e.g. registration that does not sign the shopper in
            self.machine.apply(SessionState.ANONYMOUS.value, meta={"reason": "no token issued"})
            return LoginOutcome(state=SessionState.ANONYMOUS, user=body.user)

        self.token_holder.set(body.token)
        self.user = body.user
        self.machine.apply(
            SessionState.AUTHENTICATED.value,
            actor=body.user.id if body.user else None,
            meta={"method": attempt.method},
        )
        # the guest lines move to the account cart instead of being added twice
        guest_lines = attempt.snapshot.lines()
        snapshot_keys = {line.key(self.store.key_includes_variant) for line in guest_lines}
        guest_lines += [line for line in self.store.items
                        if line.key(self.store.key_includes_variant) not in snapshot_keys]
        self.store.clear_cart()
        self._use_account_cart(body.user.id if body.user else self.token_holder.subject())
        merged = self.store.merge_cart(guest_lines)
        logger.info("Signed in via %s; merged %d guest cart lines", attempt.method, merged)
        return LoginOutcome(state=SessionState.AUTHENTICATED, user=body.user, merged_lines=merged)

    # --- one-call flows ---

    def login_with_password(self, email: str, password: str) -> LoginOutcome:
        attempt = self.begin_login("credentials")
        return self.authenticate(attempt, lambda: self.auth.login(email, password))

    def send_otp(self, email: str) -> Result:
        return self.auth.send_otp(email)

    def login_with_otp(self, email: str, otp: str) -> LoginOutcome:
        attempt = self.begin_login("otp")
        return self.authenticate(attempt, lambda: self.auth.verify_otp(email, otp))

    def login_with_google(self, email: str, name: Optional[str], google_id: str,
                          attempt: Optional[LoginAttempt] = None) -> LoginOutcome:
        """
        Pass the attempt captured before the OAuth redirect when there is one;
        the redirect round trip may have re-initialised the cart in between.
        """
        attempt = attempt or self.begin_login("google")
        return self.authenticate(attempt, lambda: self.auth.google(email, name, google_id))

    def register(self, name: str, email: str, password: str) -> LoginOutcome:
        attempt = self.begin_login("register")
        return self.authenticate(attempt, lambda: self.auth.register(name, email, password))

    def logout(self) -> None:
        self.store.clear_cart()
        self.store.use_storage_key(self.guest_key)
        self.token_holder.clear()
        self.user = None
        if self.machine.state != SessionState.ANONYMOUS.value:
            self.machine.apply(SessionState.ANONYMOUS.value, meta={"reason": "logout"})
        logger.info("Signed out")
