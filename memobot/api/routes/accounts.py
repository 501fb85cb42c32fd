"""Account linking endpoints for the web client."""

from fastapi import APIRouter, status

from memobot.api.dependencies import AccountServiceDep, OwnerIdDep
from memobot.api.exceptions import InvalidRequestError
from memobot.api.models.chat import LinkCodeRequest, LinkCodeResponse, LinkedAccountResponse
from memobot.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/link-codes",
    response_model=LinkCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_link_code(
    request: LinkCodeRequest,
    owner_id: OwnerIdDep,
    accounts: AccountServiceDep,
) -> LinkCodeResponse:
    """Issue a one-time code the owner sends as `LINK <code>` on the channel."""
    try:
        link_code = await accounts.generate_link_code(owner_id, request.channel)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e
    return LinkCodeResponse(
        code=link_code.code,
        channel=link_code.channel,
        expires_at=link_code.expires_at,
    )


@router.get("/linked-accounts", response_model=list[LinkedAccountResponse])
async def list_linked_accounts(
    owner_id: OwnerIdDep,
    accounts: AccountServiceDep,
) -> list[LinkedAccountResponse]:
    """List the chat identities linked to the owner."""
    links = await accounts.list_linked_accounts(owner_id)
    return [
        LinkedAccountResponse(
            id=str(link.id),
            channel=link.channel,
            channel_user_id=link.channel_user_id,
            linked_at=link.linked_at,
        )
        for link in links
    ]
