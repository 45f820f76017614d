"""AccessControl: Explicit caller authorization for network operations.

Operations never consult ambient identity. The caller's address is passed in
and checked against the permission the operation requires:

- ``ADMIN``: caller must be the network admin
- ``SELF_OR_ADMIN``: caller must be the admin or the subject of the
  operation (e.g. the provider)
- ``ANY``: any well-formed identity

Identities are EVM addresses, normalized to their checksum form.

.. code-block:: python

    >>> normalize_identity("0x5fbdb2315678afecb367f032d93f642f64180aa3")
    '0x5FbDB2315678afecb367f032d93F642f64180aa3'
"""

from __future__ import annotations

import enum

from web3 import Web3

from .errors import InvalidInput, Unauthorized


class Permission(enum.Enum):
    """Permission an operation requires from its caller."""

    ANY = "any"
    ADMIN = "admin"
    SELF_OR_ADMIN = "self_or_admin"


def normalize_identity(identity: str) -> str:
    """Normalize an identity to its checksummed address.

    :param identity: Hex address, any case.
    :returns: Checksummed address.
    :raises InvalidInput: If the identity is not a valid address.
    """
    if not isinstance(identity, str) or not Web3.is_address(identity.lower()):
        raise InvalidInput(f"Invalid identity {identity!r}")
    return Web3.to_checksum_address(identity.lower())


def authorize(
    caller: str,
    permission: Permission,
    *,
    admin: str | None = None,
    subject: str | None = None,
) -> str:
    """Check that ``caller`` holds ``permission``.

    :param caller: Identity performing the operation.
    :param permission: Permission the operation requires.
    :param admin: Network admin identity (for ADMIN checks).
    :param subject: Identity the operation acts on (for SELF_OR_ADMIN checks).
    :returns: The normalized caller identity.
    :raises InvalidInput: If ``caller`` is not a valid identity.
    :raises Unauthorized: If the caller lacks the permission.
    """
    caller = normalize_identity(caller)
    if permission is Permission.ANY:
        return caller

    is_admin = admin is not None and caller == admin
    is_self = subject is not None and caller == subject

    if permission is Permission.ADMIN and is_admin:
        return caller
    if permission is Permission.SELF_OR_ADMIN and (is_self or is_admin):
        return caller

    raise Unauthorized(f"{caller} lacks {permission.value} permission")
