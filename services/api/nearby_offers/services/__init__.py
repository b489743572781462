"""Business logic services.

Services contain all discovery logic and are called by routes.
Services accept their dependencies (store, identity provider) explicitly.
"""
