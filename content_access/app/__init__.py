"""
Client-side data access package for published content.

The package isolates callers from the network while keeping paginated
content collections cached, indexed and fresh:
- Transport: one executor issuing HTTP calls with timeouts, classified
  errors and exponential backoff retries.
- Resource clients: per content kind endpoint mappings over the executor.
- Cache stores: one generic engine, instantiated per content kind.
- Orchestrator: bulk sync, invalidation, error clearing and health checks.

Structure:
- app.adapters: transport executor and resource clients.
- app.caching: entity store engine, schemas, snapshots and orchestrator.
- app.domain: wire models and payload validation.
- app.cdn: CDN URL building.
"""
