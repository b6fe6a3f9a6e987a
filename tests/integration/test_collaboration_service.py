"""Integration tests for the collaboration state machine."""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from showcase.kernel.collaboration import AccessLevel, CollaborationService, InviteAction
from showcase.kernel.errors import Conflict, Forbidden, NotFound, ValidationFailed
from showcase.kernel.identity import Actor
from showcase.kernel.models import (
    ActorType,
    CollaborationInvite,
    InviteStatus,
    ProjectCollaborator,
)


def as_actor(creator) -> Actor:
    return Actor(kind=ActorType.CREATOR, id=creator.id, email=creator.email)


async def count_rows(session_maker, model) -> int:
    async with session_maker() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_invite_then_accept_grants_edit(db_session, test_project, owner, invitee):
    service = CollaborationService(db_session)
    assert await service.can_edit(test_project, invitee.id) is False

    result = await service.invite(test_project.id, as_actor(owner), invitee.email)
    assert result.invite.status == InviteStatus.PENDING
    assert result.reused is False

    responded = await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)
    assert responded.accepted is True
    assert responded.invite.status == InviteStatus.ACCEPTED
    assert responded.invite.responded_at is not None

    assert await service.can_edit(test_project, invitee.id) is True
    assert await service.access_level(test_project.id, invitee.id) == AccessLevel.EDIT
    assert await service.access_level(test_project.id, owner.id) == AccessLevel.OWNER


@pytest.mark.asyncio
async def test_second_response_conflicts(db_session, test_project, owner, invitee):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)
    await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)

    with pytest.raises(Conflict) as exc_info:
        await service.respond(result.invite.id, as_actor(invitee), InviteAction.REJECT)
    assert exc_info.value.code == "invite_not_pending"


@pytest.mark.asyncio
async def test_self_invite_fails_without_rows(db_session, session_maker, test_project, owner):
    service = CollaborationService(db_session)
    with pytest.raises(ValidationFailed) as exc_info:
        await service.invite(test_project.id, as_actor(owner), owner.email)
    assert exc_info.value.code == "self_invite"
    assert await count_rows(session_maker, CollaborationInvite) == 0


@pytest.mark.asyncio
async def test_invite_errors(db_session, test_project, owner, invitee, outsider, inactive_creator):
    service = CollaborationService(db_session)

    with pytest.raises(NotFound):
        await service.invite(uuid.uuid4(), as_actor(owner), invitee.email)

    with pytest.raises(Forbidden):
        await service.invite(test_project.id, as_actor(outsider), invitee.email)

    with pytest.raises(NotFound) as exc_info:
        await service.invite(test_project.id, as_actor(owner), "nobody@example.com")
    assert exc_info.value.code == "creator_not_found"

    with pytest.raises(ValidationFailed) as exc_info:
        await service.invite(test_project.id, as_actor(owner), inactive_creator.email)
    assert exc_info.value.code == "inactive_creator"


@pytest.mark.asyncio
async def test_duplicate_pending_invite_conflicts(db_session, test_project, owner, invitee):
    service = CollaborationService(db_session)
    await service.invite(test_project.id, as_actor(owner), invitee.email)

    with pytest.raises(Conflict) as exc_info:
        await service.invite(test_project.id, as_actor(owner), "INVITEE@example.com")
    assert exc_info.value.code == "invite_already_pending"


@pytest.mark.asyncio
async def test_inviting_a_collaborator_conflicts(db_session, test_project, owner, invitee):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)
    await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)

    with pytest.raises(Conflict) as exc_info:
        await service.invite(test_project.id, as_actor(owner), invitee.email)
    assert exc_info.value.code == "already_collaborator"


@pytest.mark.asyncio
async def test_rejected_invite_is_reused(db_session, session_maker, test_project, owner, invitee):
    service = CollaborationService(db_session)
    first = await service.invite(test_project.id, as_actor(owner), invitee.email)
    await service.respond(first.invite.id, as_actor(invitee), InviteAction.REJECT)
    assert await service.can_edit(test_project, invitee.id) is False

    second = await service.invite(test_project.id, as_actor(owner), invitee.email)
    assert second.reused is True
    assert second.invite.id == first.invite.id
    assert second.invite.status == InviteStatus.PENDING
    assert second.invite.responded_at is None
    assert await count_rows(session_maker, CollaborationInvite) == 1


@pytest.mark.asyncio
async def test_only_receiver_may_respond(db_session, test_project, owner, invitee, outsider):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)

    with pytest.raises(Forbidden):
        await service.respond(result.invite.id, as_actor(outsider), InviteAction.ACCEPT)
    with pytest.raises(Forbidden):
        await service.respond(result.invite.id, as_actor(owner), InviteAction.ACCEPT)
    with pytest.raises(NotFound):
        await service.respond(uuid.uuid4(), as_actor(invitee), InviteAction.ACCEPT)


@pytest.mark.asyncio
async def test_concurrent_accepts_create_one_collaborator(
    session_maker, test_project, owner, invitee
):
    async with session_maker() as session:
        result = await CollaborationService(session).invite(
            test_project.id, as_actor(owner), invitee.email
        )
    invite_id = result.invite.id

    async def accept():
        async with session_maker() as session:
            try:
                await CollaborationService(session).respond(
                    invite_id, as_actor(invitee), InviteAction.ACCEPT
                )
                return "ok"
            except Conflict:
                return "conflict"

    outcomes = await asyncio.gather(accept(), accept())

    assert sorted(outcomes) == ["conflict", "ok"]
    assert await count_rows(session_maker, ProjectCollaborator) == 1


@pytest.mark.asyncio
async def test_list_invites_shows_pending_only(db_session, session_maker, test_project, owner, invitee):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)

    pending = await service.list_invites(as_actor(invitee))
    assert len(pending) == 1
    assert pending[0].invite_id == result.invite.id
    assert pending[0].project_title == "Solar Kiln"
    assert pending[0].sender_name == "Olivia Owner"

    await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)
    assert await service.list_invites(as_actor(invitee)) == []
    assert await service.list_invites(Actor.visitor()) == []


@pytest.mark.asyncio
async def test_remove_collaborator(db_session, session_maker, test_project, owner, invitee):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)
    await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)

    collaborators = await service.list_collaborators(test_project.id, as_actor(owner))
    assert [c.creator_id for c in collaborators] == [invitee.id]

    await service.remove_collaborator(test_project.id, as_actor(owner), invitee.id)

    assert await service.can_edit(test_project, invitee.id) is False
    assert await count_rows(session_maker, ProjectCollaborator) == 0
    assert await count_rows(session_maker, CollaborationInvite) == 0

    # Removal frees the pair for a fresh invite
    again = await service.invite(test_project.id, as_actor(owner), invitee.email)
    assert again.reused is False


@pytest.mark.asyncio
async def test_remove_collaborator_errors(db_session, test_project, owner, invitee, outsider):
    service = CollaborationService(db_session)

    with pytest.raises(ValidationFailed) as exc_info:
        await service.remove_collaborator(test_project.id, as_actor(owner), owner.id)
    assert exc_info.value.code == "cannot_remove_primary_creator"

    with pytest.raises(NotFound):
        await service.remove_collaborator(test_project.id, as_actor(owner), invitee.id)

    with pytest.raises(Forbidden):
        await service.remove_collaborator(test_project.id, as_actor(outsider), invitee.id)

    with pytest.raises(Forbidden):
        await service.list_collaborators(test_project.id, as_actor(outsider))


@pytest.mark.asyncio
async def test_primary_creator_only_checks(db_session, test_project, owner, invitee):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)
    await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)

    assert service.can_delete(test_project, owner.id) is True
    assert service.can_delete(test_project, invitee.id) is False
    assert service.can_invite(test_project, invitee.id) is False
    assert service.can_remove_collaborator(test_project, invitee.id) is False
    assert await service.access_level(uuid.uuid4(), owner.id) == AccessLevel.NONE


@pytest.mark.asyncio
async def test_admin_cannot_manage_collaborators(db_session, session_maker, test_project, owner, invitee):
    service = CollaborationService(db_session)
    result = await service.invite(test_project.id, as_actor(owner), invitee.email)
    await service.respond(result.invite.id, as_actor(invitee), InviteAction.ACCEPT)
    admin = Actor(kind=ActorType.ADMIN, id=uuid.uuid4(), email="admin@example.com")

    with pytest.raises(Forbidden) as exc_info:
        await service.list_collaborators(test_project.id, admin)
    assert exc_info.value.code == "not_primary_creator"

    with pytest.raises(Forbidden):
        await service.remove_collaborator(test_project.id, admin, invitee.id)
    assert await count_rows(session_maker, ProjectCollaborator) == 1
