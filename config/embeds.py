"""
Embed Configuration

Embed builders for /status and /info. Text comes from messages.py.
"""

import disnake
from typing import Any, Dict, Optional

from config.messages import MESSAGES, STATUS_LABELS, RECOVERY_LABELS, BOT_COLORS


def create_status_embed(snapshot: Optional[Dict[str, Any]], radio_name: str) -> disnake.Embed:
    """Create embed for one guild's radio status (snapshot=None: no session)."""
    if snapshot is None:
        return disnake.Embed(
            title=MESSAGES['status_title'],
            description=MESSAGES['status_none'],
            color=BOT_COLORS['info'],
        )

    status = snapshot['status'].value
    if status == 'playing':
        color = BOT_COLORS['success']
    elif status in ('connecting', 'paused'):
        color = BOT_COLORS['warning']
    else:
        color = BOT_COLORS['info']

    embed = disnake.Embed(
        title=MESSAGES['status_title'],
        description=f"**{radio_name}**",
        color=color,
    )
    embed.add_field(name="State", value=STATUS_LABELS.get(status, status), inline=True)
    embed.add_field(name="Channel", value=f"<#{snapshot['voice_channel_id']}>", inline=True)
    embed.add_field(name="Volume", value=f"{snapshot['volume']}%", inline=True)

    recovery = snapshot.get('recovery')
    if recovery is not None:
        retry = MESSAGES['status_retry'].format(
            kind=RECOVERY_LABELS.get(recovery.value, recovery.value),
            delay=snapshot.get('recovery_in') or 0,
        )
    else:
        retry = MESSAGES['status_no_retry']
    embed.add_field(name="Recovery", value=retry, inline=True)

    if snapshot.get('failures'):
        embed.set_footer(text=f"Failed stream retries in a row: {snapshot['failures']}")

    return embed


def create_info_embed(
    radio_name: str,
    active_sessions: int,
    guild_count: int,
    latency_ms: Optional[float],
    decoder_version: Optional[str],
) -> disnake.Embed:
    """Create bot diagnostics embed."""
    embed = disnake.Embed(
        title=MESSAGES['info_title'],
        description=f"Streaming **{radio_name}** 24/7",
        color=BOT_COLORS['info'],
    )
    embed.add_field(name="Active radios", value=str(active_sessions), inline=True)
    embed.add_field(name="Servers", value=str(guild_count), inline=True)
    if latency_ms is not None:
        embed.add_field(name="Gateway latency", value=f"{latency_ms:.0f} ms", inline=True)
    embed.add_field(name="Decoder", value=decoder_version or "unknown", inline=False)
    return embed
