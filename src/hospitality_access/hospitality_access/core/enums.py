from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for tenant and room scoping."""

    SUPER_ADMIN = "super_admin"
    STADIUM_ADMIN = "stadium_admin"
    HOSTESS = "hostess"


class AccessType(str, Enum):
    """Kind of row stored in the access ledger."""

    ENTRY = "entry"
    EXIT = "exit"


class PresenceStatus(str, Enum):
    """Derived presence of a guest, never stored."""

    NEVER_ACCESSED = "never_accessed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class AccessStatusFilter(str, Enum):
    """Presence filter accepted by guest search."""

    CHECKED_IN = "checked_in"
    NOT_CHECKED_IN = "not_checked_in"


class DeviceType(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    PWA = "pwa"


_VIP_ORDER = ("standard", "premium", "vip", "ultra_vip")


class VipLevel(str, Enum):
    """Guest classification, ordered standard < premium < vip < ultra_vip."""

    STANDARD = "standard"
    PREMIUM = "premium"
    VIP = "vip"
    ULTRA_VIP = "ultra_vip"

    @property
    def rank(self) -> int:
        return _VIP_ORDER.index(self.value)

    def __lt__(self, other):
        if not isinstance(other, VipLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, VipLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, VipLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, VipLevel):
            return NotImplemented
        return self.rank >= other.rank
