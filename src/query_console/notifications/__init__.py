"""Notification feed for query outcomes."""
