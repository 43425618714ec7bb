"""Live synchronization layer.

This package owns the three locally mirrored collections (terminals,
unsold tokens, sales). Only :class:`vendconsole.sync.store.SyncStore`
replaces them, and always wholesale.
"""
