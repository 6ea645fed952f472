"""Synchronization — keep a shallow local mirror convergent with a remote branch.

The synchronizer runs before every read and write: it clones or initializes
the mirror, links the ``origin`` remote, fetches the branch at a bounded
depth and force-checks it out, discarding any local state.
"""
