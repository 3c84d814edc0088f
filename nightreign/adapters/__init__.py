"""Adapters connecting the search core to models, storage and callers."""
