"""CAPA tracker service."""
