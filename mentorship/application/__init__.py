"""Application layer - sagas, handlers and collaborator interfaces."""
