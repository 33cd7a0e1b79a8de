"""Domain layer: entities, value objects, strategies and the parking lot aggregate"""
