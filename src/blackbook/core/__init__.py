"""Core runtime helpers shared by the sync engine and its surfaces."""
