"""
Client services - tenant-scoped list, create and soft delete.
"""

from uuid import UUID

import structlog

from apps.clients.models import Client
from apps.core.auth import Principal
from apps.core.context import RequestContext
from apps.core.errors import NotFoundError
from apps.core.logging import get_logger
from apps.events.services import AuditSink, get_audit_sink


class ClientService:
    def __init__(
        self,
        audit: AuditSink | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.audit = audit or get_audit_sink()
        self.logger = logger or get_logger(__name__)

    def list_clients(self, organization_id: UUID) -> list[Client]:
        return list(Client.objects.filter(organization_id=organization_id).order_by("name"))

    def create_client(
        self, principal: Principal, name: str, email: str, ctx: RequestContext
    ) -> Client:
        client = Client.objects.create(
            organization=principal.organization,
            name=name,
            email=email,
            created_by=principal.user,
        )
        self.audit.record(
            "client:create", "client", client.id, ctx, after={"name": name, "email": email}
        )
        self.logger.info("client_created", client_id=str(client.id))
        return client

    def delete_client(self, organization_id: UUID, client_id: UUID, ctx: RequestContext) -> None:
        """
        Raises:
            NotFoundError: Client missing, deleted, or in another organization
        """
        client = Client.objects.filter(organization_id=organization_id, pk=client_id).first()
        if client is None:
            raise NotFoundError("Client not found")
        client.soft_delete()
        self.audit.record("client:delete", "client", client.id, ctx, metadata={"name": client.name})
        self.logger.info("client_deleted", client_id=str(client.id))


def get_client_service() -> ClientService:
    return ClientService()
