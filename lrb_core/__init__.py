"""Linear Road core: event models, record parser and readiness coordinator client."""
