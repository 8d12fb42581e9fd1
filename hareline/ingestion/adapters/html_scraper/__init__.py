"""Dedicated extractors for individual publishers' sites."""
