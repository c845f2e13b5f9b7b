"""Shared configuration for the typed forms package."""
