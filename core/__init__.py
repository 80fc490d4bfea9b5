"""Shared logging and admission-control utilities."""
