"""Consultation records, drafts and the reference consultation service."""
