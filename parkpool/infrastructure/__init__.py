"""Infrastructure layer: messaging, factories and configuration"""
