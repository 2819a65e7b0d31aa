"""
Client API endpoints.

Every route is guarded by a clients:* permission, checked before the request
body is parsed.
"""

from uuid import UUID

from ninja import Router

from apps.clients.models import Client
from apps.clients.schemas import ClientListResponse, ClientResponse, CreateClientRequest
from apps.clients.services import get_client_service
from apps.core.context import RequestContext
from apps.core.schemas import ErrorResponse
from apps.core.security import SessionAuth
from apps.core.types import AuthenticatedHttpRequest
from apps.rbac.constants import Permissions

router = Router(tags=["clients"])


def _client(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id, name=client.name, email=client.email, created_at=client.created_at
    )


@router.get(
    "",
    response={200: ClientListResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=SessionAuth(Permissions.CLIENTS_READ),
    operation_id="listClients",
    summary="List clients",
)
def list_clients(request: AuthenticatedHttpRequest) -> ClientListResponse:
    clients = get_client_service().list_clients(request.auth.organization.id)
    return ClientListResponse(clients=[_client(c) for c in clients])


@router.post(
    "",
    response={201: ClientResponse, 400: ErrorResponse, 401: ErrorResponse, 403: ErrorResponse},
    auth=SessionAuth(Permissions.CLIENTS_WRITE),
    operation_id="createClient",
    summary="Create a client",
)
def create_client(
    request: AuthenticatedHttpRequest, payload: CreateClientRequest
) -> tuple[int, ClientResponse]:
    client = get_client_service().create_client(
        request.auth,
        payload.name,
        payload.email or "",
        RequestContext.from_request(request),
    )
    return 201, _client(client)


@router.delete(
    "/{client_id}",
    response={204: None, 401: ErrorResponse, 403: ErrorResponse, 404: ErrorResponse},
    auth=SessionAuth(Permissions.CLIENTS_DELETE),
    operation_id="deleteClient",
    summary="Delete a client",
)
def delete_client(request: AuthenticatedHttpRequest, client_id: UUID):
    get_client_service().delete_client(
        request.auth.organization.id, client_id, RequestContext.from_request(request)
    )
    return 204, None
