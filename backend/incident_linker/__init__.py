"""Cross-source deduplication of maritime security incident reports."""
