# fritzlog/utils/xml_parser.py
"""
Helpers for parsing the FRITZ!Box `login_sid.lua?version=2` SessionInfo XML.

    <SessionInfo>
      <SID>0000000000000000</SID>
      <Challenge>2$60000$...$6000$...</Challenge>
      <BlockTime>0</BlockTime>
      <Rights/>
      <Users><User last="1">fritz3713</User></Users>
    </SessionInfo>
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional

INVALID_SID = "0000000000000000"


@dataclass
class SessionInfo:
    sid: str
    challenge: str
    block_time: int
    users: list[str] = field(default_factory=list)

    @property
    def has_valid_sid(self) -> bool:
        return is_valid_sid(self.sid)

    def has_user(self, username: str) -> bool:
        return username in self.users


def is_valid_sid(sid: Optional[str]) -> bool:
    """A SID is 16 hex chars and not all zeros."""
    if not sid or len(sid) != 16 or sid == INVALID_SID:
        return False
    try:
        int(sid, 16)
    except ValueError:
        return False
    return True


def find_text(root: ET.Element, tag: str) -> Optional[str]:
    """Find a direct child tag and return its stripped text."""
    el = root.find(tag)
    return el.text.strip() if el is not None and el.text else None


def safe_parse_xml(raw_body: bytes) -> Optional[ET.Element]:
    """Parse XML bytes safely. Returns None on parse error."""
    try:
        return ET.fromstring(raw_body.decode("utf-8", errors="replace"))
    except ET.ParseError:
        return None


def parse_session_info(raw_body: bytes) -> Optional[SessionInfo]:
    """Parse a SessionInfo document. Returns None if the shape is wrong."""
    root = safe_parse_xml(raw_body)
    if root is None or root.tag != "SessionInfo":
        return None

    sid = find_text(root, "SID")
    block_time = find_text(root, "BlockTime") or "0"
    if sid is None:
        return None
    try:
        block_time = int(block_time)
    except ValueError:
        return None

    users = []
    users_el = root.find("Users")
    if users_el is not None:
        users = [u.text.strip() for u in users_el.findall("User") if u.text]

    return SessionInfo(
        sid=sid,
        challenge=find_text(root, "Challenge") or "",
        block_time=block_time,
        users=users,
    )
