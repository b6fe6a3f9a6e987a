"""
Collaboration service - invitation state machine and project access.

Per (project, candidate) the invite moves through:

    none -> pending            invite by the primary creator
    pending -> accepted        receiver accepts; collaborator row created
    pending -> rejected        receiver rejects
    rejected -> pending        primary creator re-invites (same row reused)
    accepted -> none           primary creator removes the collaborator

Every mutation commits its own transaction so the caller can audit after the
commit. Accepting is a single transaction: the pending -> accepted update is
conditional on the row still being pending, and the collaborator insert is
backed by UNIQUE(project_id, creator_id). Losing either race rolls back to
a Conflict.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import and_, delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from showcase.kernel.errors import Conflict, Forbidden, NotFound, ValidationFailed
from showcase.kernel.identity.actor import Actor
from showcase.kernel.models.base import utcnow
from showcase.kernel.models.collaboration import (
    COLLABORATOR_ROLE,
    CollaborationInvite,
    InviteStatus,
    ProjectCollaborator,
)
from showcase.kernel.models.creator import Creator
from showcase.kernel.models.project import Project
from showcase.logging_config import get_logger

logger = get_logger(__name__)


class AccessLevel(str, Enum):
    """Derived access a creator has on a project."""
    NONE = "none"
    EDIT = "edit"
    OWNER = "owner"


class InviteAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass
class InviteResult:
    invite: CollaborationInvite
    project: Project
    receiver: Creator
    reused: bool = False  # a rejected invite was reset to pending


@dataclass
class RespondResult:
    invite: CollaborationInvite
    accepted: bool
    collaborator: Optional[ProjectCollaborator] = None


@dataclass
class PendingInvite:
    """A pending invite as shown to its receiver."""
    invite_id: uuid.UUID
    project_id: uuid.UUID
    project_title: str
    sender_id: uuid.UUID
    sender_name: str
    created_at: datetime


@dataclass
class CollaboratorEntry:
    creator_id: uuid.UUID
    name: str
    email: str
    role: str
    added_at: datetime


class CollaborationService:
    """
    Invitation lifecycle and derived project access.

    Usage:
        service = CollaborationService(session)
        result = await service.invite(project_id, actor, "someone@example.com")
        await service.respond(result.invite.id, receiver_actor, InviteAction.ACCEPT)
        assert await service.can_edit(project, receiver_actor.id)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # Access derivation

    async def get_project(self, project_id: uuid.UUID) -> Optional[Project]:
        result = await self.session.execute(
            select(Project).where(Project.id == project_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def is_primary_creator(project: Project, creator_id: Optional[uuid.UUID]) -> bool:
        return creator_id is not None and project.creator_id == creator_id

    async def is_collaborator(self, project_id: uuid.UUID, creator_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(ProjectCollaborator.id).where(
                and_(
                    ProjectCollaborator.project_id == project_id,
                    ProjectCollaborator.creator_id == creator_id,
                )
            )
        )
        return result.first() is not None

    async def can_edit(self, project: Project, creator_id: Optional[uuid.UUID]) -> bool:
        """Edit access: primary creator or an existing collaborator row."""
        if creator_id is None:
            return False
        if self.is_primary_creator(project, creator_id):
            return True
        return await self.is_collaborator(project.id, creator_id)

    def can_delete(self, project: Project, creator_id: Optional[uuid.UUID]) -> bool:
        return self.is_primary_creator(project, creator_id)

    def can_invite(self, project: Project, creator_id: Optional[uuid.UUID]) -> bool:
        return self.is_primary_creator(project, creator_id)

    def can_remove_collaborator(self, project: Project, creator_id: Optional[uuid.UUID]) -> bool:
        return self.is_primary_creator(project, creator_id)

    async def access_level(
        self,
        project_id: uuid.UUID,
        creator_id: Optional[uuid.UUID],
    ) -> AccessLevel:
        """Access a creator has on a project; NONE for unknown projects."""
        project = await self.get_project(project_id)
        if project is None or creator_id is None:
            return AccessLevel.NONE
        if self.is_primary_creator(project, creator_id):
            return AccessLevel.OWNER
        if await self.is_collaborator(project_id, creator_id):
            return AccessLevel.EDIT
        return AccessLevel.NONE

    # Invitations

    async def invite(
        self,
        project_id: uuid.UUID,
        inviter: Actor,
        invitee_email: str,
    ) -> InviteResult:
        """
        Invite a creator, by email, to collaborate on a project.

        Raises:
            NotFound: unknown project or no creator with that email
            Forbidden: inviter is not the primary creator
            ValidationFailed: invitee inactive, or inviting oneself
            Conflict: already a collaborator, or an invite is already pending
        """
        project = await self.get_project(project_id)
        if project is None:
            raise NotFound("Project not found", code="project_not_found")

        if not self.can_invite(project, inviter.id):
            raise Forbidden(
                "Only the primary creator can invite collaborators",
                code="not_primary_creator",
            )

        receiver = (await self.session.execute(
            select(Creator).where(func.lower(Creator.email) == invitee_email.strip().lower())
        )).scalar_one_or_none()
        if receiver is None:
            raise NotFound("No creator found with this email", code="creator_not_found")

        if not receiver.is_active:
            raise ValidationFailed("This creator account is inactive", code="inactive_creator")

        if receiver.id == inviter.id:
            raise ValidationFailed("You cannot invite yourself", code="self_invite")

        if await self.is_collaborator(project.id, receiver.id):
            raise Conflict(
                "This creator is already a collaborator",
                code="already_collaborator",
            )

        existing = (await self.session.execute(
            select(CollaborationInvite)
            .where(
                and_(
                    CollaborationInvite.project_id == project.id,
                    CollaborationInvite.receiver_id == receiver.id,
                )
            )
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()

        reused = False
        if existing is not None:
            if existing.status == InviteStatus.PENDING:
                raise Conflict(
                    "An invitation is already pending for this creator",
                    code="invite_already_pending",
                )
            if existing.status == InviteStatus.ACCEPTED:
                raise Conflict(
                    "This creator is already a collaborator",
                    code="already_collaborator",
                )
            # Rejected: reset the same row to pending
            existing.status = InviteStatus.PENDING.value
            existing.sender_id = inviter.id
            existing.responded_at = None
            existing.created_at = utcnow()
            invite = existing
            reused = True
        else:
            invite = CollaborationInvite(
                project_id=project.id,
                sender_id=inviter.id,
                receiver_id=receiver.id,
                status=InviteStatus.PENDING.value,
            )
            self.session.add(invite)

        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise Conflict(
                "An invitation is already pending for this creator",
                code="invite_already_pending",
            )

        logger.info(
            "Collaboration invite sent",
            extra={
                "invite_id": str(invite.id),
                "project_id": str(project.id),
                "receiver_id": str(receiver.id),
                "reused": reused,
            },
        )
        return InviteResult(invite=invite, project=project, receiver=receiver, reused=reused)

    async def respond(
        self,
        invite_id: uuid.UUID,
        actor: Actor,
        action: InviteAction,
    ) -> RespondResult:
        """
        Accept or reject a pending invite addressed to ``actor``.

        Raises:
            NotFound: unknown invite
            Forbidden: invite addressed to someone else
            Conflict: invite no longer pending, or lost an accept race
        """
        action = InviteAction(action)
        invite = (await self.session.execute(
            select(CollaborationInvite)
            .where(CollaborationInvite.id == invite_id)
            .execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if invite is None:
            raise NotFound("Invitation not found", code="invite_not_found")

        if actor.id is None or invite.receiver_id != actor.id:
            raise Forbidden("This invitation is not for you", code="not_invite_receiver")

        if invite.status != InviteStatus.PENDING:
            raise Conflict(
                "This invitation has already been responded to",
                code="invite_not_pending",
            )

        accepted = action == InviteAction.ACCEPT
        new_status = InviteStatus.ACCEPTED if accepted else InviteStatus.REJECTED
        now = utcnow()

        result = await self.session.execute(
            update(CollaborationInvite)
            .where(
                and_(
                    CollaborationInvite.id == invite.id,
                    CollaborationInvite.status == InviteStatus.PENDING.value,
                )
            )
            .values(status=new_status.value, responded_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            raise Conflict(
                "This invitation has already been responded to",
                code="invite_not_pending",
            )

        collaborator = None
        if accepted:
            collaborator = ProjectCollaborator(
                project_id=invite.project_id,
                creator_id=invite.receiver_id,
                role=COLLABORATOR_ROLE,
            )
            self.session.add(collaborator)

        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise Conflict(
                "This creator is already a collaborator",
                code="already_collaborator",
            )

        await self.session.refresh(invite)
        logger.info(
            "Collaboration invite %s",
            new_status.value,
            extra={
                "invite_id": str(invite.id),
                "project_id": str(invite.project_id),
                "receiver_id": str(invite.receiver_id),
            },
        )
        return RespondResult(invite=invite, accepted=accepted, collaborator=collaborator)

    async def list_invites(self, actor: Actor) -> List[PendingInvite]:
        """Pending invites received by ``actor``, newest first."""
        if actor.id is None:
            return []

        sender = aliased(Creator)
        result = await self.session.execute(
            select(CollaborationInvite, Project.title, sender.name)
            .join(Project, Project.id == CollaborationInvite.project_id)
            .join(sender, sender.id == CollaborationInvite.sender_id)
            .where(
                and_(
                    CollaborationInvite.receiver_id == actor.id,
                    CollaborationInvite.status == InviteStatus.PENDING.value,
                )
            )
            .order_by(desc(CollaborationInvite.created_at))
        )
        return [
            PendingInvite(
                invite_id=invite.id,
                project_id=invite.project_id,
                project_title=title,
                sender_id=invite.sender_id,
                sender_name=sender_name,
                created_at=invite.created_at,
            )
            for invite, title, sender_name in result.all()
        ]

    # Collaborators

    async def list_collaborators(
        self,
        project_id: uuid.UUID,
        actor: Actor,
    ) -> List[CollaboratorEntry]:
        """Collaborators of a project, oldest first. Primary creator only."""
        await self._require_owner(project_id, actor)

        result = await self.session.execute(
            select(ProjectCollaborator, Creator)
            .join(Creator, Creator.id == ProjectCollaborator.creator_id)
            .where(ProjectCollaborator.project_id == project_id)
            .order_by(ProjectCollaborator.added_at)
        )
        return [
            CollaboratorEntry(
                creator_id=collab.creator_id,
                name=creator.name,
                email=creator.email,
                role=collab.role,
                added_at=collab.added_at,
            )
            for collab, creator in result.all()
        ]

    async def remove_collaborator(
        self,
        project_id: uuid.UUID,
        actor: Actor,
        target_creator_id: uuid.UUID,
    ) -> ProjectCollaborator:
        """
        Remove a collaborator and the accepted invite that granted access.

        Raises:
            NotFound: unknown project, or target is not a collaborator
            Forbidden: actor is not the primary creator
            ValidationFailed: target is the primary creator
        """
        project = await self._require_owner(project_id, actor)

        if target_creator_id == project.creator_id:
            raise ValidationFailed(
                "Cannot remove the primary creator",
                code="cannot_remove_primary_creator",
            )

        collaborator = (await self.session.execute(
            select(ProjectCollaborator).where(
                and_(
                    ProjectCollaborator.project_id == project_id,
                    ProjectCollaborator.creator_id == target_creator_id,
                )
            )
        )).scalar_one_or_none()
        if collaborator is None:
            raise NotFound("Collaborator not found", code="collaborator_not_found")

        await self.session.execute(
            delete(ProjectCollaborator).where(ProjectCollaborator.id == collaborator.id)
        )
        await self.session.execute(
            delete(CollaborationInvite).where(
                and_(
                    CollaborationInvite.project_id == project_id,
                    CollaborationInvite.receiver_id == target_creator_id,
                    CollaborationInvite.status == InviteStatus.ACCEPTED.value,
                )
            )
        )
        await self.session.commit()
        self.session.expunge(collaborator)

        logger.info(
            "Collaborator removed",
            extra={"project_id": str(project_id), "creator_id": str(target_creator_id)},
        )
        return collaborator

    async def _require_owner(self, project_id: uuid.UUID, actor: Actor) -> Project:
        project = await self.get_project(project_id)
        if project is None:
            raise NotFound("Project not found", code="project_not_found")
        if not self.is_primary_creator(project, actor.id):
            raise Forbidden(
                "Only the primary creator can manage collaborators",
                code="not_primary_creator",
            )
        return project
