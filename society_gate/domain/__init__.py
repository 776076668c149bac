"""Domain layer: models, lifecycle tables and services"""
