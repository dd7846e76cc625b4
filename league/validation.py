"""
Input checks shared by the team and invite flows.

Wallet addresses are Solana-style base58 public keys: 32-44 characters from
the base58 alphabet that decode to exactly 32 bytes.
"""
import base64
import re
import uuid
from typing import List, Optional

import base58

from shared.state_machine import InviteState
from .errors import BadRequest

BASE58_PATTERN = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{32,44}$')
PUBLIC_KEY_BYTES = 32
MAX_NAME_LENGTH = 100
MAX_LINK_LENGTH = 300


def is_valid_wallet_address(address) -> bool:
    if not isinstance(address, str) or not BASE58_PATTERN.match(address):
        return False
    try:
        return len(base58.b58decode(address)) == PUBLIC_KEY_BYTES
    except ValueError:
        return False


def require_wallet_address(address, field: str = 'walletAddress') -> str:
    if not is_valid_wallet_address(address):
        raise BadRequest(f'Invalid wallet address in {field}')
    return address


def generate_short_id(prefix: str = "") -> str:
    short = uuid.uuid4().hex[:12]
    return f"{prefix}{short}" if prefix else short


def short_wallet(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def clean_team_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise BadRequest('Team name is required')
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise BadRequest(f'Team name must be at most {MAX_NAME_LENGTH} characters')
    return name


def clean_link(link) -> Optional[str]:
    if link is None:
        return None
    if not isinstance(link, str):
        raise BadRequest('twitterLink must be a string')
    link = link.strip()
    if len(link) > MAX_LINK_LENGTH:
        raise BadRequest(f'twitterLink must be at most {MAX_LINK_LENGTH} characters')
    return link or None


def normalize_members(
    members,
    creator_wallet: str,
    min_members: int,
    max_members: int
) -> List[dict]:
    """
    Validate a submitted member list and return clean member dicts.

    The creator's entry (if listed) starts accepted, everyone else pending.
    """
    if not isinstance(members, list):
        raise BadRequest('members must be a list')
    if not min_members <= len(members) <= max_members:
        raise BadRequest(f'A team needs between {min_members} and {max_members} members')

    cleaned = []
    seen = set()
    for index, member in enumerate(members):
        if not isinstance(member, dict):
            raise BadRequest(f'members[{index}] must be an object')

        wallet = member.get('walletAddress')
        if isinstance(wallet, str):
            wallet = wallet.strip()
        require_wallet_address(wallet, f'members[{index}].walletAddress')
        if wallet in seen:
            raise BadRequest(f'Duplicate member wallet: {wallet}')
        seen.add(wallet)

        name = member.get('name')
        name = name.strip() if isinstance(name, str) and name.strip() else short_wallet(wallet)

        cleaned.append({
            'id': str(member.get('id') or generate_short_id()),
            'name': name[:MAX_NAME_LENGTH],
            'walletAddress': wallet,
            'status': (InviteState.ACCEPTED.value if wallet == creator_wallet
                       else InviteState.PENDING.value),
        })

    return cleaned


def encode_banner(data: Optional[bytes], content_type: Optional[str], max_bytes: int) -> Optional[str]:
    """Encode an uploaded banner image as a data URL stored on the team."""
    if not data:
        return None
    if not content_type or not content_type.startswith('image/'):
        raise BadRequest('Banner must be an image')
    if len(data) > max_bytes:
        raise BadRequest(f'Banner image exceeds {max_bytes} bytes')
    encoded = base64.b64encode(data).decode('ascii')
    return f"data:{content_type};base64,{encoded}"
