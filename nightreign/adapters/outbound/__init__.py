"""Outbound adapters: embedding and relevance models, diagnostics sinks, storage."""
