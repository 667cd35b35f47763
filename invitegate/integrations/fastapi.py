"""
FastAPI integration for InviteGate.

Provides dependency injection, an error handler and a ready-made router.

Example:
    ```python
    from fastapi import Depends, FastAPI
    from invitegate.integrations.fastapi import InviteGateFastAPI

    app = FastAPI()
    gate_integration = InviteGateFastAPI(app)
    app.include_router(gate_integration.router())

    @app.get("/admin/dashboard")
    async def dashboard(role = Depends(gate_integration.require_admin())):
        return {"admin": str(role.user_id)}
    ```
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Type
from uuid import UUID

try:
    from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
    from fastapi.responses import JSONResponse
    from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
except ImportError:
    raise ImportError(
        "FastAPI is required for this integration. "
        "Install it with: pip install invitegate[fastapi]"
    )

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..audit.models import AuditContext
from ..auth.models import Identity, RoleStatus, SignupCredentials, UserAccount
from ..client import InviteGate
from ..errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InviteError,
    InviteGateError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from ..invites.models import CodeFilter, InviteCode, InviteStatus

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)

STATUS_CODES: Dict[Type[InviteGateError], int] = {
    ValidationError: 422,
    InviteError: 400,
    AuthError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    TransientError: 503,
}


class IssueCodeBody(BaseModel):
    email: str
    max_uses: int = 1
    ttl_days: Optional[float] = Field(None, description="Defaults to the configured TTL")
    notes: Optional[str] = None


class IssuedCode(BaseModel):
    """Response for a freshly issued code; the only time ``code`` is returned."""

    id: UUID
    code: str
    intended_email: str
    max_uses: int
    expires_at: datetime


class CodeSummary(BaseModel):
    id: UUID
    masked_code: str
    intended_email: str
    status: InviteStatus
    max_uses: int
    current_uses: int
    created_by: Optional[UUID] = None
    expires_at: datetime
    created_at: datetime


class SignupBody(BaseModel):
    code: str
    email: str
    password: str
    display_name: Optional[str] = None


class AccountOut(BaseModel):
    id: UUID
    email: str
    display_name: Optional[str] = None
    is_admin: bool
    is_protected: bool


def _account_out(account: UserAccount) -> AccountOut:
    return AccountOut(**account.model_dump(include=set(AccountOut.model_fields)))


def audit_context(request: Request) -> AuditContext:
    """Build the audit context (client ip, user agent) of a request."""
    return AuditContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("User-Agent"),
        request_id=request.headers.get("X-Request-ID"),
    )


async def handle_invitegate_error(request: Request, exc: InviteGateError) -> JSONResponse:
    """Translate InviteGate errors into HTTP responses."""
    status_code = 500
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            status_code = STATUS_CODES[error_type]
            break

    content: Dict[str, Any] = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


class InviteGateFastAPI:
    """
    FastAPI integration for InviteGate.

    Provides:
    - InviteGate client lifecycle management (unless a client is passed in)
    - Error mapping from InviteGateError to HTTP status codes
    - ``require_auth`` / ``require_admin`` dependencies
    - A router exposing invite codes, signup and role changes

    Example:
        ```python
        app = FastAPI()
        gate_integration = InviteGateFastAPI(app)

        # Or with an existing client
        gate_integration = InviteGateFastAPI(app, gate=await InviteGate.create())
        ```
    """

    def __init__(
        self,
        app: Optional[FastAPI] = None,
        gate: Optional[InviteGate] = None,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
    ) -> None:
        """
        Initialize InviteGateFastAPI integration.

        Args:
            app: FastAPI application (registers the error handler and lifecycle)
            gate: Existing InviteGate client; created on startup if omitted
            supabase_url: Supabase URL (optional, loads from env)
            supabase_key: Supabase key (optional, loads from env)
        """
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self._gate = gate
        self._owns_gate = gate is None

        if app:
            app.add_exception_handler(InviteGateError, handle_invitegate_error)
            app.state.invitegate = self
            if self._owns_gate:
                self._setup_lifespan(app)

    def _setup_lifespan(self, app: FastAPI) -> None:
        """Set up automatic InviteGate lifecycle with FastAPI."""

        @app.on_event("startup")
        async def startup() -> None:
            await self.setup()

        @app.on_event("shutdown")
        async def shutdown() -> None:
            await self.teardown()

    async def setup(self) -> None:
        """Initialize the InviteGate client."""
        self._gate = await InviteGate.create(
            supabase_url=self.supabase_url,
            supabase_key=self.supabase_key,
        )

    async def teardown(self) -> None:
        """Close the InviteGate client if this integration created it."""
        if self._gate and self._owns_gate:
            await self._gate.close()
            self._gate = None

    @property
    def gate(self) -> InviteGate:
        """Get the InviteGate instance."""
        if not self._gate:
            raise RuntimeError("InviteGate not initialized. Call setup() first.")
        return self._gate

    def require_auth(self) -> Callable:
        """
        Dependency that requires a valid bearer token.

        Returns the caller's Identity or raises 401.

        Example:
            ```python
            @app.get("/me")
            async def get_me(identity = Depends(gate_integration.require_auth())):
                return {"email": identity.email}
            ```
        """

        async def dependency(
            credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        ) -> Identity:
            if not credentials:
                raise HTTPException(
                    status_code=401,
                    detail="Not authenticated",
                    headers={"WWW-Authenticate": "Bearer"},
                )
            return await self.gate.sessions.verify(credentials.credentials)

        return dependency

    def require_admin(self) -> Callable:
        """
        Dependency that requires the caller to be an admin right now.

        The role is resolved from storage on every request.

        Example:
            ```python
            @app.delete("/things/{thing_id}")
            async def delete_thing(role = Depends(gate_integration.require_admin())):
                ...
            ```
        """

        async def dependency(
            request: Request,
            identity: Identity = Depends(self.require_auth()),
        ) -> RoleStatus:
            return await self.gate.access.require_admin(
                identity.user_id,
                f"http:{request.method} {request.url.path}",
                context=audit_context(request),
            )

        return dependency

    def router(self, prefix: str = "") -> APIRouter:
        """
        Build the InviteGate router.

        Admin-only routes check privilege inside the called operation, so a
        demoted admin is refused on the very next request.
        """
        router = APIRouter(prefix=prefix, tags=["invitegate"])
        require_auth = self.require_auth()

        @router.post("/invite-codes", status_code=201, response_model=IssuedCode)
        async def issue_code(
            body: IssueCodeBody,
            request: Request,
            identity: Identity = Depends(require_auth),
        ) -> IssuedCode:
            ttl = timedelta(days=body.ttl_days) if body.ttl_days is not None else None
            invite = await self.gate.codes.issue(
                identity.user_id,
                body.email,
                max_uses=body.max_uses,
                ttl=ttl,
                notes=body.notes,
                context=audit_context(request),
            )
            return IssuedCode(
                id=invite.id,
                code=invite.code,
                intended_email=invite.intended_email,
                max_uses=invite.max_uses,
                expires_at=invite.expires_at,
            )

        @router.get("/invite-codes", response_model=List[CodeSummary])
        async def list_codes(
            status: Optional[str] = None,
            created_by: Optional[str] = None,
            intended_email: Optional[str] = None,
            limit: int = 50,
            offset: int = 0,
            identity: Identity = Depends(require_auth),
        ) -> List[CodeSummary]:
            try:
                code_filter = CodeFilter(
                    status=status,
                    created_by=created_by,
                    intended_email=intended_email,
                    limit=limit,
                    offset=offset,
                )
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e) from e

            invites = await self.gate.codes.list(identity.user_id, code_filter)
            now = self.gate.clock()
            return [_summary(invite, now) for invite in invites]

        @router.delete("/invite-codes/{code_id}", status_code=204)
        async def revoke_code(
            code_id: UUID,
            request: Request,
            identity: Identity = Depends(require_auth),
        ) -> None:
            await self.gate.codes.revoke(
                identity.user_id, code_id, context=audit_context(request)
            )

        @router.post("/signup", status_code=201, response_model=AccountOut)
        async def signup(body: SignupBody, request: Request) -> AccountOut:
            try:
                credentials = SignupCredentials(
                    password=body.password, display_name=body.display_name
                )
            except PydanticValidationError as e:
                # Unauthenticated path: no field-level detail
                logger.info("Signup rejected: credentials failed validation")
                raise InviteError() from e

            account = await self.gate.signup.redeem_and_create_account(
                body.code, body.email, credentials, context=audit_context(request)
            )
            return _account_out(account)

        @router.post("/accounts/{user_id}/promote", response_model=AccountOut)
        async def promote(
            user_id: UUID,
            request: Request,
            identity: Identity = Depends(require_auth),
        ) -> AccountOut:
            account = await self.gate.roles.promote(
                identity.user_id, user_id, context=audit_context(request)
            )
            return _account_out(account)

        @router.post("/accounts/{user_id}/demote", response_model=AccountOut)
        async def demote(
            user_id: UUID,
            request: Request,
            identity: Identity = Depends(require_auth),
        ) -> AccountOut:
            account = await self.gate.roles.demote(
                identity.user_id, user_id, context=audit_context(request)
            )
            return _account_out(account)

        @router.get("/me/role", response_model=RoleStatus)
        async def my_role(
            credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        ) -> RoleStatus:
            if not credentials:
                raise AuthError("Not authenticated")
            return await self.gate.access.current_user_role(credentials.credentials)

        return router


def _summary(invite: InviteCode, now: datetime) -> CodeSummary:
    return CodeSummary(
        id=invite.id,
        masked_code=invite.masked_code,
        intended_email=invite.intended_email,
        status=invite.status(now),
        max_uses=invite.max_uses,
        current_uses=invite.current_uses,
        created_by=invite.created_by,
        expires_at=invite.expires_at,
        created_at=invite.created_at,
    )


def get_gate(request: Request) -> InviteGate:
    """
    Get the InviteGate instance registered on the application.

    Use as a FastAPI dependency to access InviteGate in your routes.

    Example:
        ```python
        @app.get("/stats")
        async def stats(gate: InviteGate = Depends(get_gate)):
            ...
        ```
    """
    integration = getattr(request.app.state, "invitegate", None)
    if not integration:
        raise RuntimeError(
            "InviteGate not available. Make sure InviteGateFastAPI is initialized."
        )
    return integration.gate
