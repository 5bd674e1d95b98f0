"""HTTP surface for channel webhooks and identity administration."""
