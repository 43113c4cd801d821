"""
Relying Party Discovery

Key Components:
- endpoint.py: ServiceEndpoint, its session serialization, and endpoint ranking
- discover.py: The ``discover`` entry point for URL and XRI identifiers
"""
