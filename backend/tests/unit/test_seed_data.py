import pytest

from coffeechat.domain.identity import IdentityService
from coffeechat.domain.ranking import SuggestionRanker
from coffeechat.seed import seed


@pytest.mark.asyncio
async def test_seed_is_idempotent_and_matchable(store) -> None:
	identity = IdentityService(store)
	first = await seed(identity)
	second = await seed(identity)

	assert first == second
	assert len(await identity.list_slots(first["alice"])) == 1

	suggestions = await SuggestionRanker(store).suggest(first["alice"])
	assert [item.candidate.user.id for item in suggestions] == [first["bob"]]
	assert suggestions[0].breakdown.availability_overlap_minutes == 120
	assert suggestions[0].breakdown.region_match is True
