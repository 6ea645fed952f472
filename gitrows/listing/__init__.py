"""Listing — enumerate keys at the branch tip and resolve their last commits."""
