"""Staged content endpoints (items, perks, enemies) and the effect catalogue.

Per content type X:
  GET  /get<X>s            live rows + pending rows + effect catalogue
  POST /create<X>          write a pending row (id > 0 means update)
  POST /toggleApprove<X>   flip approval on a pending row
  POST /merge<X>s          promote every approved pending row
  POST /removePending<X>   discard a pending row
"""

from fastapi import APIRouter

from rpg_admin import storage
from rpg_admin.storage import ContentType

from .models import ToolingIdBody

router = APIRouter()


@router.get("/getEffects")
async def get_effects():
    """Effect catalogue."""
    return {"success": True, "effects": await storage.get_effects()}


def _plural_label(ct: ContentType) -> str:
    return ct.plural[0].upper() + ct.plural[1:]


def _register(ct: ContentType) -> None:
    plural = _plural_label(ct)

    @router.get(f"/get{plural}", name=f"get_{ct.plural}")
    async def list_content():
        effects = await storage.get_effects()
        live = await storage.list_live(ct)
        pending = await storage.list_pending(ct)
        return {"success": True, "effects": effects, ct.plural: live, ct.pending_label: pending}

    @router.post(f"/create{ct.label}", name=f"create_{ct.name}")
    async def create_content(body: dict):
        target = body.get("id")
        if target is not None and (isinstance(target, bool) or not isinstance(target, int)):
            raise storage.ValidationFailed("id", "Invalid id: expected a number")
        tooling_id, action = await storage.create_or_update(ct, body, target)
        return {
            "success": True,
            "message": f"{ct.label} {action} successfully",
            "toolingId": tooling_id,
            "action": action,
        }

    @router.post(f"/toggleApprove{ct.label}", name=f"toggle_approve_{ct.name}")
    async def toggle_approve(body: ToolingIdBody):
        approved = await storage.toggle_approve(ct, body.tooling_id)
        return {"success": True, "toolingId": body.tooling_id, "approved": approved}

    @router.post(f"/merge{plural}", name=f"merge_{ct.plural}")
    async def merge_content():
        result = await storage.merge(ct)
        return {
            "success": True,
            "message": f"{plural} merged successfully",
            "inserted": result.inserted,
            "updated": result.updated,
            "skipped": result.skipped,
        }

    @router.post(f"/removePending{ct.label}", name=f"remove_pending_{ct.name}")
    async def remove_pending(body: ToolingIdBody):
        await storage.remove_pending(ct, body.tooling_id)
        return {"success": True, "message": f"Pending {ct.name} removed"}


for _ct in storage.CONTENT_TYPES.values():
    _register(_ct)
