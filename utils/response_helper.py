"""
Response Helper

Interaction replies that work whether or not the response was deferred.
"""

import logging
from typing import Optional
import disnake

logger = logging.getLogger(__name__)


async def send_response(
    inter,
    content: str = "",
    embed: Optional[disnake.Embed] = None,
    ephemeral: bool = True,
) -> None:
    """Reply to an interaction (first response or followup)."""
    try:
        if not inter.response.is_done():
            await inter.response.send_message(content=content, embed=embed, ephemeral=ephemeral)
        else:
            await inter.followup.send(content=content, embed=embed, ephemeral=ephemeral)
    except (disnake.NotFound, disnake.HTTPException) as e:
        # Interaction token expired (15 min) or was already acknowledged elsewhere
        logger.debug("Could not send interaction response: %s", e)


__all__ = ['send_response']
