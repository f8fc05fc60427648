"""Public client configuration for the dashboard (no secrets)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from quickbridge.api.dependencies import get_config
from quickbridge.config import BridgeConfig

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("")
def get_app_config(config: BridgeConfig = Depends(get_config)):
    return {
        "supabase": {
            "url": config.supabase.url,
            "anonKey": config.supabase.anon_key,
        },
    }
