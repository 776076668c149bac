"""Infrastructure adapters: database, identity, notifications"""
