"""
Runtime wiring.

- **warden.py**: :class:`Warden`, owning the lists, the reconciler and the
  protection engine for one account, and following the sync stream.
"""
