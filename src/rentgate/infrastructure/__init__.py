"""Infrastructure layer: upstream client, CDN store, observability, lifecycle."""
