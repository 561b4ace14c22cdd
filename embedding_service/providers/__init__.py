"""Embedding provider registry, candidate selection and backend clients.

Key APIs:
- ``ProviderRegistry``: validated provider set and routing policy.
- ``ProviderSelector``: ordered candidates per request (Priority/RoundRobin).
- ``create_clients``: one backend client per enabled provider.
"""

from .clients.factory import create_clients, create_embedding_client
from .registry import ProviderConfiguration, ProviderRegistry, ProvidersPolicy
from .selector import ProviderSelector
