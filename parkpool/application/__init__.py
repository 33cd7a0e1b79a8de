"""Application layer: parking use cases and DTOs"""
