"""Eind - peer-to-peer chat and call session core."""
