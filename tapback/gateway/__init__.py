"""Webhook ingress."""
