"""Family and member lookups backed by the document store."""

import logging

from pydantic import ValidationError

from src.core import db_client
from src.core.logging import span
from src.domain.family import Family, Member, MemberRole


logger = logging.getLogger(__name__)

MEMBERS_COLLECTION = "members"
FAMILIES_COLLECTION = "families"


async def get_member(*, member_id: str) -> Member | None:
    """Fetch a member by ID.

    Returns:
        The member, or None if it does not exist or its record is malformed
    """
    with span("family_service.get_member"):
        try:
            record = await db_client.get_record(collection=MEMBERS_COLLECTION, record_id=member_id)
        except KeyError:
            logger.info("Member not found: %s", member_id)
            return None
        try:
            return Member.model_validate(record)
        except ValidationError as e:
            logger.error("Malformed member record %s: %s", member_id, e)
            return None


async def get_family(*, family_id: str) -> Family | None:
    """Fetch a family by ID, or None if it does not exist."""
    with span("family_service.get_family"):
        try:
            record = await db_client.get_record(collection=FAMILIES_COLLECTION, record_id=family_id)
        except KeyError:
            logger.info("Family not found: %s", family_id)
            return None
        try:
            return Family.model_validate(record)
        except ValidationError as e:
            logger.error("Malformed family record %s: %s", family_id, e)
            return None


async def create_family(*, name: str) -> Family:
    """Create an empty family."""
    with span("family_service.create_family"):
        record = await db_client.create_record(
            collection=FAMILIES_COLLECTION,
            data={"name": name, "parent_ids": [], "children_ids": []},
        )
        logger.info("Created family %s (%s)", record["id"], name)
        return Family.model_validate(record)


async def add_member(
    *,
    family_id: str,
    display_name: str,
    role: MemberRole,
    push_token: str | None = None,
) -> Member:
    """Create a member and attach it to the family's parent or child roster.

    Raises:
        KeyError: If the family does not exist
    """
    with span("family_service.add_member"):
        family = await get_family(family_id=family_id)
        if family is None:
            msg = f"Family not found: {family_id}"
            raise KeyError(msg)

        member = Member(id="pending", display_name=display_name, role=role, family_id=family_id, push_token=push_token)
        record = await db_client.create_record(
            collection=MEMBERS_COLLECTION,
            data=member.model_dump(mode="json", exclude={"id"}),
        )

        roster = "parent_ids" if role == MemberRole.PARENT else "children_ids"
        await db_client.update_record(
            collection=FAMILIES_COLLECTION,
            record_id=family_id,
            data={roster: [*getattr(family, roster), record["id"]]},
        )
        logger.info("Added %s %s to family %s", role, record["id"], family_id)
        return Member.model_validate(record)


async def update_push_token(*, member_id: str, push_token: str | None) -> None:
    """Store the Expo push token reported by a member's device.

    Raises:
        KeyError: If the member does not exist
    """
    with span("family_service.update_push_token"):
        await db_client.update_record(
            collection=MEMBERS_COLLECTION,
            record_id=member_id,
            data={"push_token": push_token},
        )
