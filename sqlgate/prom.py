from prometheus_client import CollectorRegistry

# Dedicated registry so tests and the app never collide with the default one.
REGISTRY = CollectorRegistry(auto_describe=True)
