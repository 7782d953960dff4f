"""
Domain - Entities, changesets, enums and change notifications.
"""
