"""Tail-risk analytics for a portfolio measured against a benchmark."""
