"""Business logic services.

Services contain all business logic and are called by routes.
Services open their own sessions and raise `marketplace_api.errors` types.
"""
