"""Polyglottos storage backends and data import engine."""
