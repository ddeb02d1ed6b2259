"""
Reseller tenancy on top of KeyAuth's flat key namespace.

KeyAuth has no notion of resellers, so ownership is encoded in the license
note: every key a reseller creates gets its note prefixed with a short tag
derived from the reseller identity, e.g. identity "ABCD1234-EFGH" -> "[r:abcd1234]".

- A license belongs to a reseller iff its note starts with that reseller's tag.
- A user belongs to a reseller iff they redeemed at least one of the
  reseller's licenses (license.usedby). A user who redeemed keys of two
  resellers is visible to both.

Storefront keys (note "WEBSITE") carry no tag and belong to nobody.

Tags are a heuristic, not a cryptographic partition: two identities whose first
eight de-hyphenated, lower-cased characters match share a tag. There is no
collision detection; both resellers see the same keys.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..schemas.license import License

TAG_LENGTH = 8
TAG_OPEN = "[r:"
TAG_CLOSE = "]"


def reseller_tag(identity: str) -> str:
    """Deterministic tag for an identity: hyphens removed, first 8 chars, lower-cased."""
    short_id = identity.replace("-", "")[:TAG_LENGTH].lower()
    return f"{TAG_OPEN}{short_id}{TAG_CLOSE}"


def stamp_note(raw_note: Optional[str], identity: str) -> str:
    """Prefix a reseller supplied note with the reseller tag ("" note -> just the tag)."""
    return f"{reseller_tag(identity)}{raw_note or ''}"


def belongs_to(license: License, identity: str) -> bool:
    note = license.note
    if not note:
        return False
    return note.startswith(reseller_tag(identity))


def display_note(license: License, identity: str) -> str:
    """The note as the reseller wrote it: own tag stripped, anything else untouched."""
    note = license.note
    if not note:
        return ""
    tag = reseller_tag(identity)
    if note.startswith(tag):
        return note[len(tag):]
    return note


def for_display(license: License, identity: str) -> dict:
    """Upstream record with every upstream field kept and the note de-tagged."""
    data = license.model_dump(exclude_unset=True)
    data["note"] = display_note(license, identity)
    return data


def reseller_usernames(licenses: Iterable[License], identity: str) -> set[str]:
    """Usernames that redeemed at least one license owned by `identity`."""
    return {
        lic.usedby
        for lic in licenses
        if lic.usedby and belongs_to(lic, identity)
    }


@dataclass
class OwnershipSnapshot:
    """
    Per-request ownership index built from one fetched license list.

    Built in a single pass and thrown away with the request; never reuse it
    across requests, upstream ownership changes between page loads.
    """
    identity: str
    tag: str
    owned: list[License] = field(default_factory=list)
    by_key: dict[str, License] = field(default_factory=dict)
    redeemers: set[str] = field(default_factory=set)

    @classmethod
    def build(cls, licenses: Iterable[License], identity: str) -> "OwnershipSnapshot":
        snap = cls(identity=identity, tag=reseller_tag(identity))
        for lic in licenses:
            # first occurrence wins for duplicated keys
            snap.by_key.setdefault(lic.key, lic)
            if belongs_to(lic, identity):
                snap.owned.append(lic)
                if lic.usedby:
                    snap.redeemers.add(lic.usedby)
        return snap

    def owns_key(self, key: str) -> bool:
        """False both for unknown keys and for keys of other resellers."""
        lic = self.by_key.get(key)
        return lic is not None and belongs_to(lic, self.identity)

    def owns_user(self, username: str) -> bool:
        return username in self.redeemers

    def display_licenses(self) -> list[dict]:
        return [for_display(lic, self.identity) for lic in self.owned]
