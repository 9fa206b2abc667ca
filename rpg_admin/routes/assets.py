"""Asset registry endpoints: per-category listing/upload and key signing."""

import logging

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from rpg_admin import assets, storage
from rpg_admin.assets import AssetError

from .models import AssetUpload, SignedUrlBody

logger = logging.getLogger(__name__)

router = APIRouter()

# Endpoint label -> object-store category
CATEGORY_LABELS = {
    "Item": "items",
    "Perk": "perks",
    "Enemy": "enemies",
    "Settlement": "settlements",
    "Expedition": "expeditions",
    "Quest": "quests",
    "Talent": "talents",
}

SIGNED_URL_TTL = 15 * 60


def _register(label: str, category: str) -> None:
    @router.get(f"/get{label}Assets", name=f"get_{category}_assets")
    async def list_assets():
        listed = await run_in_threadpool(assets.registry().list, category)
        return {
            "success": True,
            "assets": [
                {"id": a["id"], "assetID": a["id"], "name": str(a["id"]), "url": a["url"], "icon": a["url"]}
                for a in listed
            ],
        }

    @router.post(f"/upload{label}Asset", name=f"upload_{category}_asset")
    async def upload_asset(body: AssetUpload):
        if not body.image_data:
            raise storage.ValidationFailed("imageData", "Missing required field: imageData")
        try:
            data = assets.decode_image(body.image_data)
        except ValueError as e:
            raise storage.ValidationFailed("imageData", str(e))
        asset_id, key, url = await run_in_threadpool(
            assets.registry().put, category, data, body.content_type, body.asset_id
        )
        return {
            "success": True,
            "assetID": asset_id,
            "assetId": asset_id,
            "s3Key": key,
            "icon": url,
            "url": url,
        }


for _label, _category in CATEGORY_LABELS.items():
    _register(_label, _category)


@router.post("/getSignedUrl")
async def get_signed_url(body: SignedUrlBody):
    """Short-lived read URL for an arbitrary image key."""
    key = body.key.strip().lstrip("/")
    if not key.startswith("images/") or ".." in key:
        raise storage.ValidationFailed("key", "Invalid key")
    url = assets.registry().sign_key(key, SIGNED_URL_TTL)
    if not url:
        raise AssetError("Failed to sign URL")
    return {"success": True, "url": url, "expires": SIGNED_URL_TTL}
