"""Unit tests for family_service."""

import pytest

from src.domain.family import MemberRole
from src.services import family_service


@pytest.mark.unit
class TestFamilyService:
    """Tests for family and member lookups."""

    async def test_get_member(self, family):
        member = await family_service.get_member(member_id="kid")

        assert member.display_name == "Sam"
        assert member.role == MemberRole.CHILD
        assert member.family_id == "fam1"

    async def test_missing_member(self, patched_db):
        assert await family_service.get_member(member_id="ghost") is None

    async def test_malformed_member(self, patched_db):
        await patched_db.create_record(collection="members", data={"id": "odd", "role": "grandparent"})

        assert await family_service.get_member(member_id="odd") is None

    async def test_get_family(self, family):
        fam = await family_service.get_family(family_id="fam1")

        assert fam.parent_ids == ["mom", "dad"]
        assert fam.children_ids == ["kid"]

    async def test_create_family_and_add_members(self, patched_db):
        fam = await family_service.create_family(name="Joneses")

        parent = await family_service.add_member(family_id=fam.id, display_name="Alex", role=MemberRole.PARENT)
        child = await family_service.add_member(family_id=fam.id, display_name="Robin", role=MemberRole.CHILD)

        stored = await family_service.get_family(family_id=fam.id)
        assert stored.parent_ids == [parent.id]
        assert stored.children_ids == [child.id]
        assert child.family_id == fam.id

    async def test_add_member_to_missing_family(self, patched_db):
        with pytest.raises(KeyError):
            await family_service.add_member(family_id="nope", display_name="Alex", role=MemberRole.PARENT)

    async def test_update_push_token(self, family):
        await family_service.update_push_token(member_id="mom", push_token="ExponentPushToken[mom]")

        assert (await family_service.get_member(member_id="mom")).push_token == "ExponentPushToken[mom]"

    async def test_update_push_token_missing_member(self, patched_db):
        with pytest.raises(KeyError):
            await family_service.update_push_token(member_id="ghost", push_token=None)
