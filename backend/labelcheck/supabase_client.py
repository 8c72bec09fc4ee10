"""
Supabase access for the scan pipeline: client construction from env and the
get_profile_payload lookup. Synonym and E-number lookups live with their modules.
"""
import logging
from typing import Optional

from supabase import Client, create_client

from labelcheck.config import get_supabase_key, get_supabase_url
from labelcheck.models.profile import ProfilePayload

logger = logging.getLogger(__name__)

PROFILE_RPC = "get_profile_payload"


def get_supabase_client() -> Optional[Client]:
    """Client from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (or the NEXT_PUBLIC_* fallbacks); None if unset."""
    url = get_supabase_url()
    key = get_supabase_key()
    if not url or not key:
        logger.warning("Supabase credentials not found in env. Profile and dictionary lookups are disabled.")
        return None
    return create_client(url, key)


def fetch_user_profile(client: Optional[Client], user_id: str) -> Optional[ProfilePayload]:
    """
    Current profile snapshot for user_id, or None when the lookup fails or returns nothing.
    A None profile is evaluated as 'no profile' rather than aborting the scan.
    """
    if client is None or not user_id:
        return None
    try:
        response = client.rpc(PROFILE_RPC, {"p_user_id": user_id}).execute()
    except Exception as e:
        logger.error("PROFILE lookup failed user=%s error=%s", user_id, e)
        return None
    data = response.data
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        logger.info("PROFILE empty payload user=%s", user_id)
        return None
    profile = ProfilePayload.from_dict({"user_id": user_id, **data})
    logger.info(
        "PROFILE loaded user=%s allergens=%d diets=%d intolerances=%d",
        user_id, len(profile.allergens), len(profile.diets), len(profile.intolerances),
    )
    return profile
