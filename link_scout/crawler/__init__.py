"""Crawl engine internals: robots policy, record store, classifier and scheduler."""
