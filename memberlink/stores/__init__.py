"""Store adapters for claim tokens and the member records they gate.

The services only depend on the abstract interfaces in ``base``; ``sql``
backs them with PostgreSQL and ``memory`` keeps everything in process for
tests and local demos.
"""

from memberlink.stores.base import (
    ActivityStore,
    LiveTokenConflictError,
    MemberRecordStore,
    StoreBundle,
    TokenStore,
    Transaction,
)

__all__ = [
    "ActivityStore",
    "LiveTokenConflictError",
    "MemberRecordStore",
    "StoreBundle",
    "TokenStore",
    "Transaction",
]
