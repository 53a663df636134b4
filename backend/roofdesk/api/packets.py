"""Generated packet lookup. Each read signs a fresh download URL."""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from roofdesk.api.claims import PacketResponse
from roofdesk.api.deps import get_storage, permission
from roofdesk.errors import NotFoundError
from roofdesk.models.base import get_db
from roofdesk.models.packet import GeneratedPacket
from roofdesk.services.rbac import TenantContext
from roofdesk.services.storage import PacketStorage

router = APIRouter()


@router.get("/{packet_id}", response_model=PacketResponse)
async def get_packet(
    packet_id: int,
    ctx: TenantContext = Depends(permission("reports:view")),
    db: AsyncSession = Depends(get_db),
    storage: PacketStorage = Depends(get_storage),
):
    result = await db.execute(
        select(GeneratedPacket).where(GeneratedPacket.id == packet_id, GeneratedPacket.org_id == ctx.org_id)
    )
    packet = result.scalar_one_or_none()
    if not packet:
        raise NotFoundError("Packet not found")
    response = PacketResponse.model_validate(packet)
    response.url = storage.presigned_url(packet.storage_key)
    return response
