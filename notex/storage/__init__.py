"""Relational persistence for notes."""
