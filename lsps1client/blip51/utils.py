from typing import Optional

from lsps1client.blip51.channel import ChannelInfo

MEMPOOL_TX_URL = 'https://mempool.space/tx/{txid}#vout={vout}'


def pubkey_from_uri(uri: str) -> Optional[str]:
    """
    connection uris look like <pubkey>@<host>:<port>, a bare pubkey is
    accepted too
    """
    if not isinstance(uri, str):
        return None
    pubkey = uri.strip().split('@')[0]
    return pubkey or None


def estimate_fee_sats(channel_size_sats: int, fee_rate_percent: float) -> int:
    return round(channel_size_sats * fee_rate_percent / 100)


def explorer_url(funding_outpoint: Optional[str]) -> Optional[str]:
    if not funding_outpoint:
        return None
    channel = ChannelInfo(funding_outpoint=funding_outpoint)
    return MEMPOOL_TX_URL.format(txid=channel.txid, vout=channel.vout)


def format_sats(sats: Optional[int]) -> str:
    if sats is None:
        return '-'
    if sats >= 1000000:
        return f'{sats / 1000000:.2f} M sats'
    return f'{sats:,} sats'
