"""Runtime identity reconciliation for gwinit.

On the first start of a container the managed account is remapped to the
PUID/PGID requested through the environment. A marker file records that this
happened so later restarts of the same container leave the account alone.
"""

import grp
import logging
import pwd
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .config import DEFAULT_PGID, DEFAULT_PUID, MANAGED_USER, NormalizedConfig

# 4294967295, the largest 32-bit uid_t
MAX_ID_DIGITS = 10


@dataclass(frozen=True)
class Identity:
    """Effective ids of the managed account after reconciliation."""

    uid: int
    gid: int
    changed: bool = False


def is_positive_int(value: Optional[str]) -> bool:
    """True for a string of decimal digits whose value is greater than zero.

    Values with more significant digits than the largest uid_t are rejected
    before conversion.
    """
    if value is None or not re.fullmatch(r"[0-9]+", value):
        return False
    digits = value.lstrip("0")
    return 0 < len(digits) <= MAX_ID_DIGITS


def parse_id(value: str) -> int:
    return int(value.lstrip("0"))


def resolve_target_ids(puid: Optional[str], pgid: Optional[str]) -> Tuple[int, int]:
    """Work out which uid/gid the managed account should end up with.

    A valid id given alone is mirrored to its sibling. When both are given
    each one is checked on its own, so an invalid PUID next to a valid PGID
    yields a mismatched pair such as (1000, 2000).
    """
    if puid is None and pgid is None:
        logging.info(
            f"PUID and PGID not set. Using defaults: PUID={DEFAULT_PUID}, PGID={DEFAULT_PGID}"
        )
        return DEFAULT_PUID, DEFAULT_PGID

    if pgid is None:
        if is_positive_int(puid):
            return parse_id(puid), parse_id(puid)
        logging.warning(f"Invalid PUID: '{puid}'. Using default: {DEFAULT_PUID}")
        return DEFAULT_PUID, DEFAULT_PGID

    if puid is None:
        if is_positive_int(pgid):
            return parse_id(pgid), parse_id(pgid)
        logging.warning(f"Invalid PGID: '{pgid}'. Using default: {DEFAULT_PGID}")
        return DEFAULT_PUID, DEFAULT_PGID

    # TODO: decide whether an invalid PUID should follow a valid PGID instead of
    # falling back on its own; the current pairing can leave uid != gid.
    uid, gid = DEFAULT_PUID, DEFAULT_PGID
    if is_positive_int(puid):
        uid = parse_id(puid)
    else:
        logging.warning(f"Invalid PUID: '{puid}'. Using default: {DEFAULT_PUID}")
    if is_positive_int(pgid):
        gid = parse_id(pgid)
    else:
        logging.warning(f"Invalid PGID: '{pgid}'. Using default: {DEFAULT_PGID}")
    return uid, gid


class SystemAccounts:
    """User and group database of the running system."""

    @staticmethod
    def user_name_for_uid(uid: int) -> Optional[str]:
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return None

    @staticmethod
    def group_name_for_gid(gid: int) -> Optional[str]:
        try:
            return grp.getgrgid(gid).gr_name
        except KeyError:
            return None

    @staticmethod
    def current_ids(user_name: str) -> Tuple[int, int]:
        """Return (uid, primary gid) of an existing account."""
        info = pwd.getpwnam(user_name)
        return info.pw_uid, info.pw_gid

    @staticmethod
    def _run(args) -> bool:
        logging.debug(f"Running: {' '.join(args)}")
        try:
            result = subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as e:
            logging.debug(f"Could not run {args[0]}: {e}")
            return False
        if result.returncode != 0:
            logging.debug(
                f"{args[0]} exited with code {result.returncode}: {result.stderr.strip()}"
            )
            return False
        return True

    def set_uid(self, user_name: str, uid: int) -> bool:
        return self._run(["usermod", "-o", "-u", str(uid), user_name])

    def set_gid(self, group_name: str, gid: int) -> bool:
        return self._run(["groupmod", "-o", "-g", str(gid), group_name])


class FirstRunMarker:
    """Sentinel file whose presence means identity was already reconciled."""

    def __init__(self, path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def touch(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()
        logging.debug(f"Wrote first-run marker: {self.path}")


def warn_if_claimed(accounts, uid: int, gid: int, user_name: str) -> None:
    """Warn when the target ids already belong to someone else."""
    current_user = accounts.user_name_for_uid(uid)
    if current_user and current_user != user_name:
        logging.warning(
            f"UID {uid} already in use by {current_user} - may cause permission issues"
        )

    current_group = accounts.group_name_for_gid(gid)
    if current_group and current_group != user_name:
        logging.warning(
            f"GID {gid} already in use by {current_group} - may cause permission issues"
        )


def apply_identity(accounts, uid: int, gid: int, user_name: str = MANAGED_USER) -> Identity:
    """Remap the managed account to uid/gid, keeping old ids on failure."""
    warn_if_claimed(accounts, uid, gid, user_name)

    changed = False
    try:
        current_uid, current_gid = accounts.current_ids(user_name)
    except KeyError:
        logging.warning(f"User {user_name} does not exist - cannot apply PUID={uid}, PGID={gid}")
        return Identity(uid=uid, gid=gid, changed=False)

    if current_uid != uid:
        if accounts.set_uid(user_name, uid):
            changed = True
        else:
            logging.warning(f"Failed to change UID to {uid}. Using existing UID {current_uid}")
            uid = current_uid

    if current_gid != gid:
        if accounts.set_gid(user_name, gid):
            changed = True
        else:
            logging.warning(f"Failed to change GID to {gid}. Using existing GID {current_gid}")
            gid = current_gid

    if changed:
        logging.info(f"Updated UID/GID to PUID={uid}, PGID={gid}")
    return Identity(uid=uid, gid=gid, changed=changed)


def reconcile_identity(
    config: NormalizedConfig,
    accounts,
    marker: FirstRunMarker,
    user_name: str = MANAGED_USER,
) -> Optional[Identity]:
    """Run the one-shot PUID/PGID remap.

    Returns None when the marker shows reconciliation already happened for
    this container; PUID/PGID are not looked at in that case.
    """
    if marker.exists():
        logging.debug(f"First-run marker {marker.path} present, skipping UID/GID setup")
        return None

    uid, gid = resolve_target_ids(config.PUID, config.PGID)
    identity = apply_identity(accounts, uid, gid, user_name)
    try:
        marker.touch()
    except OSError as e:
        logging.warning(
            f"Could not write first-run marker {marker.path}: {e} - "
            "UID/GID setup will run again on next start"
        )
    return identity
