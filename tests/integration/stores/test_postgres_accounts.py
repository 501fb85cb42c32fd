"""Integration tests for PostgresAccountStore through AccountLinkingService."""

import pytest
import pytest_asyncio

from memobot.accounts import AccountLinkingService
from memobot.accounts.service import ALREADY_LINKED_MESSAGE, INVALID_CODE_MESSAGE
from memobot.accounts.stores import PostgresAccountStore
from memobot.memory.models import Channel


@pytest_asyncio.fixture
async def accounts(postgres_pool) -> AccountLinkingService:
    return AccountLinkingService(PostgresAccountStore(postgres_pool))


@pytest.mark.integration
class TestAccountLinking:
    """Test the link code lifecycle against PostgreSQL."""

    async def test_code_links_identity_once(self, accounts, owner_id, clean_postgres):
        user = f"tg-{owner_id}"
        code = await accounts.generate_link_code(owner_id, Channel.TELEGRAM)

        linked = await accounts.verify_and_link_account(Channel.TELEGRAM, user, code.code)
        assert linked.success and linked.owner_id == owner_id
        assert await accounts.resolve_owner(Channel.TELEGRAM, user) == owner_id

        reused = await accounts.verify_and_link_account(Channel.TELEGRAM, f"{user}-b", code.code)
        assert reused.message == INVALID_CODE_MESSAGE

    async def test_identity_cannot_link_twice(self, accounts, owner_id, clean_postgres):
        user = f"wa-{owner_id}"
        first = await accounts.generate_link_code(owner_id, Channel.WHATSAPP)
        await accounts.verify_and_link_account(Channel.WHATSAPP, user, first.code)

        second = await accounts.generate_link_code(owner_id, Channel.WHATSAPP)
        result = await accounts.verify_and_link_account(Channel.WHATSAPP, user, second.code)

        assert result.message == ALREADY_LINKED_MESSAGE

    async def test_new_code_expires_previous(self, accounts, owner_id, clean_postgres):
        first = await accounts.generate_link_code(owner_id, Channel.TELEGRAM)
        second = await accounts.generate_link_code(owner_id, Channel.TELEGRAM)

        stale = await accounts.verify_and_link_account(
            Channel.TELEGRAM, f"tg-{owner_id}", first.code
        )
        if first.code != second.code:
            assert stale.message == INVALID_CODE_MESSAGE

    async def test_list_linked_accounts(self, accounts, owner_id, clean_postgres):
        code = await accounts.generate_link_code(owner_id, Channel.TELEGRAM)
        await accounts.verify_and_link_account(Channel.TELEGRAM, f"tg-{owner_id}", code.code)

        links = await accounts.list_linked_accounts(owner_id)

        assert [(link.channel, link.channel_user_id) for link in links] == [
            (Channel.TELEGRAM, f"tg-{owner_id}")
        ]
