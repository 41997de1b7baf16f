"""Identity collaborator — supplies credential material to the core.

govtree never generates or validates keys. An operator points the
configuration at a key pair; the private key path is handed to the git
adapter for authenticated clones and the public key is published into
the community tree once per user.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from govtree.errors import PreconditionError
from govtree.persistence import records

if TYPE_CHECKING:
    from govtree.persistence.store import Clone


@dataclass(frozen=True)
class Credentials:
    """Key material for one community user."""
    user: str
    public_key: str = ""
    private_key_path: Optional[Path] = None


def load_credentials(
    user: str,
    public_key_path: Optional[Path] = None,
    private_key_path: Optional[Path] = None,
) -> Credentials:
    """Read credentials from key files. Missing files fail loud."""
    public_key = ""
    if public_key_path is not None:
        if not public_key_path.is_file():
            raise PreconditionError(f"Public key file not found: {public_key_path}")
        public_key = public_key_path.read_text(encoding="utf-8").strip()
    if private_key_path is not None and not private_key_path.is_file():
        raise PreconditionError(f"Private key file not found: {private_key_path}")
    return Credentials(
        user=user,
        public_key=public_key,
        private_key_path=private_key_path,
    )


def install_public_credentials(clone: Clone, credentials: Credentials) -> None:
    """Publish a user's public key. Refuses to overwrite an existing one."""
    path = records.credentials_path(credentials.user)
    if clone.exists(path):
        raise PreconditionError(
            f"Public credentials for {credentials.user} already exist"
        )
    if not credentials.public_key:
        raise PreconditionError(f"No public key supplied for {credentials.user}")
    records.write_json(clone, path, {
        "user": credentials.user,
        "public_key": credentials.public_key,
    })

