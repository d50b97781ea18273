# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
claguard - CLA requirement evaluation and pull request status synchronization.

Modules:
- classes: data model (linked repositories/orgs, documents, pull requests, caches)
- boundaries: abstract collaborators the engine talks to
- validator: the validation engine (resolver, synchronizer, batch validators, signing)
- github: GitHub REST implementations of the version-control and status boundaries
- storage: JSON file backed entity and user stores
"""

__version__ = "1.4.0"
