"""Deduplicate, analyze and score scraped job postings for daily review."""
