"""
FastAPI application example with InviteGate integration.

This example demonstrates how to use InviteGate with FastAPI:
- The ready-made router (invite codes, signup, role changes)
- Admin-only routes of your own
- Reading the caller's role on every request

Run with:
    uvicorn examples.fastapi_app:app --reload
"""

from fastapi import Depends, FastAPI

from invitegate import InviteGate, RoleStatus
from invitegate.auth.models import Identity
from invitegate.integrations.fastapi import InviteGateFastAPI, get_gate

# =================================================================
# FastAPI App Setup
# =================================================================

app = FastAPI(
    title="InviteGate Example API",
    description="Invite-only signup with admin roles",
    version="1.0.0",
)

# Creates the InviteGate client on startup from INVITEGATE_* settings
gate_integration = InviteGateFastAPI(app)

# POST /auth/invite-codes, GET /auth/invite-codes, POST /auth/signup, ...
app.include_router(gate_integration.router(prefix="/auth"))


# =================================================================
# Public Routes
# =================================================================


@app.get("/")
async def root():
    return {"message": "Signup is by invitation only"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


# =================================================================
# Authenticated Routes
# =================================================================


@app.get("/me")
async def get_me(identity: Identity = Depends(gate_integration.require_auth())):
    return {"id": str(identity.user_id), "email": identity.email}


# =================================================================
# Admin Routes
# =================================================================


@app.get("/admin/overview")
async def admin_overview(
    role: RoleStatus = Depends(gate_integration.require_admin()),
    gate: InviteGate = Depends(get_gate),
):
    stats = await gate.codes.stats(role.user_id)
    admins = await gate.roles.list_admins(role.user_id)
    return {
        "codes": stats.model_dump(),
        "admins": [account.email for account in admins],
    }
