"""Infrastructure layer - persistence, transport and external adapters."""
