"""Handling of uploaded media files on top of the storage facade."""
