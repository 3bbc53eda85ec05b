"""Distributed sliding-window request counter backed by Redis."""
