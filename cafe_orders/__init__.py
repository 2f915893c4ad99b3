"""Café ordering backend: payment webhooks, reconciliation and kitchen queue."""
