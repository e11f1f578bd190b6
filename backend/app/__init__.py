"""Game portal backend."""
