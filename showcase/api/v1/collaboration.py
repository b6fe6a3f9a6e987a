"""
Collaboration endpoints - invitations and collaborator management.
"""

import uuid
from typing import List

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from showcase.api.deps import CurrentActor, DbSession, Limiter, RequestMeta, with_idempotency
from showcase.api.gate import (
    AuditEvent,
    GuardedOperation,
    IdempotencyScope,
    OperationResult,
    authorize,
    authorize_project_access,
)
from showcase.kernel.collaboration import AccessLevel, CollaborationService
from showcase.kernel.models.audit_log import AuditAction, EntityType
from showcase.kernel.models.collaboration import CollaborationInvite
from showcase.kernel.permissions import Permission
from showcase.kernel.safety import default_policies
from showcase.schemas.collaboration import (
    CollaboratorRemovedResponse,
    CollaboratorResponse,
    InviteCreate,
    InviteRespondRequest,
    InviteResponse,
    PendingInviteResponse,
)

router = APIRouter()

REPLAYED_HEADER = "Idempotent-Replayed"


def _invite_payload(invite: CollaborationInvite, reused: bool = False) -> dict:
    return InviteResponse(
        id=invite.id,
        project_id=invite.project_id,
        sender_id=invite.sender_id,
        receiver_id=invite.receiver_id,
        status=invite.status,
        created_at=invite.created_at,
        responded_at=invite.responded_at,
        reused=reused,
    ).model_dump(mode="json")


def _to_response(result: OperationResult) -> JSONResponse:
    headers = {REPLAYED_HEADER: "true"} if result.replayed else None
    return JSONResponse(content=result.response, status_code=result.status_code, headers=headers)


@router.get("/invites", response_model=List[PendingInviteResponse])
async def list_invites(
    actor: CurrentActor,
    db: DbSession,
):
    """Pending invitations addressed to the caller, newest first."""
    authorize(actor, Permission.COLLAB_INVITE)
    invites = await CollaborationService(db).list_invites(actor)
    return [PendingInviteResponse.model_validate(invite) for invite in invites]


@router.post(
    "/projects/{project_id}/invite",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_collaborator(
    project_id: uuid.UUID,
    data: InviteCreate,
    actor: CurrentActor,
    db: DbSession,
    meta: RequestMeta,
    limiter: Limiter,
    idempotency: IdempotencyScope = with_idempotency("collab.invite"),
):
    """Invite a creator by email. Primary creator only."""
    service = CollaborationService(db)

    async def execute() -> OperationResult:
        result = await service.invite(project_id, actor, data.email)
        return OperationResult(
            response=_invite_payload(result.invite, reused=result.reused),
            status_code=status.HTTP_201_CREATED,
            audit=[
                AuditEvent(
                    AuditAction.COLLAB_INVITE_SENT,
                    EntityType.COLLABORATION,
                    result.invite.id,
                    {
                        "project_id": project_id,
                        "receiver_id": result.receiver.id,
                        "receiver_email": result.receiver.email,
                        "reused": result.reused,
                    },
                )
            ],
        )

    op = GuardedOperation(
        db,
        actor,
        permission=Permission.COLLAB_INVITE,
        route_key="collab.invite",
        limiter=limiter,
        rate_limit=default_policies()["write"],
        idempotency=idempotency,
        project_id=project_id,
        project_access=AccessLevel.OWNER,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    result = await op.run(execute, payload={"project_id": str(project_id), "email": data.email})
    return _to_response(result)


@router.post("/invites/{invite_id}/respond", response_model=InviteResponse)
async def respond_to_invite(
    invite_id: uuid.UUID,
    data: InviteRespondRequest,
    actor: CurrentActor,
    db: DbSession,
    meta: RequestMeta,
    limiter: Limiter,
    idempotency: IdempotencyScope = with_idempotency("collab.respond"),
):
    """Accept or reject an invitation addressed to the caller."""
    service = CollaborationService(db)

    async def execute() -> OperationResult:
        result = await service.respond(invite_id, actor, data.action)
        invite = result.invite
        return OperationResult(
            response=_invite_payload(invite),
            audit=[
                AuditEvent(
                    AuditAction.COLLAB_INVITE_ACCEPTED
                    if result.accepted
                    else AuditAction.COLLAB_INVITE_REJECTED,
                    EntityType.COLLABORATION,
                    invite.id,
                    {"project_id": invite.project_id, "sender_id": invite.sender_id},
                )
            ],
        )

    op = GuardedOperation(
        db,
        actor,
        permission=Permission.COLLAB_INVITE,
        route_key="collab.respond",
        limiter=limiter,
        rate_limit=default_policies()["write"],
        idempotency=idempotency,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    result = await op.run(execute, payload={"invite_id": str(invite_id), "action": data.action.value})
    return _to_response(result)


@router.get("/projects/{project_id}/collaborators", response_model=List[CollaboratorResponse])
async def list_collaborators(
    project_id: uuid.UUID,
    actor: CurrentActor,
    db: DbSession,
):
    """Collaborators on a project. Primary creator only."""
    authorize(actor, Permission.COLLAB_MANAGE)
    await authorize_project_access(db, actor, project_id, AccessLevel.OWNER)
    entries = await CollaborationService(db).list_collaborators(project_id, actor)
    return [CollaboratorResponse.model_validate(entry) for entry in entries]


@router.delete(
    "/projects/{project_id}/collaborators/{creator_id}",
    response_model=CollaboratorRemovedResponse,
)
async def remove_collaborator(
    project_id: uuid.UUID,
    creator_id: uuid.UUID,
    actor: CurrentActor,
    db: DbSession,
    meta: RequestMeta,
    limiter: Limiter,
    idempotency: IdempotencyScope = with_idempotency("collab.remove"),
):
    """Remove a collaborator from a project. Primary creator only."""
    service = CollaborationService(db)

    async def execute() -> OperationResult:
        removed = await service.remove_collaborator(project_id, actor, creator_id)
        return OperationResult(
            response=CollaboratorRemovedResponse(
                project_id=project_id,
                creator_id=creator_id,
            ).model_dump(mode="json"),
            audit=[
                AuditEvent(
                    AuditAction.COLLAB_MEMBER_REMOVED,
                    EntityType.COLLABORATION,
                    removed.id,
                    {"project_id": project_id, "creator_id": creator_id},
                )
            ],
        )

    op = GuardedOperation(
        db,
        actor,
        permission=Permission.COLLAB_MANAGE,
        route_key="collab.remove",
        limiter=limiter,
        rate_limit=default_policies()["sensitive"],
        idempotency=idempotency,
        project_id=project_id,
        project_access=AccessLevel.OWNER,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
    )
    result = await op.run(
        execute,
        payload={"project_id": str(project_id), "creator_id": str(creator_id)},
    )
    return _to_response(result)
