"""Business logic layer for vault app.

- ``quota_ledger``: pure quota arithmetic
- ``item_store``: owner-scoped persistence of items and folders
- ``blob_janitor``: best-effort blob copy and cleanup
- ``storage_operations``: the only place that changes a user's ledger

Views, admin and commands call ``storage_operations``; nothing else
should write ``UserQuota.used_bytes``.
"""
