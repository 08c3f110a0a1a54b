"""
Adapters for the hosted backend.

Responsibilities:
- Define the contract every backend adapter honours (``base.Backend``).
- Talk to Supabase over its REST endpoints (``supabase.SupabaseBackend``).
- Provide a seeded in-process backend for local runs and tests
  (``memory.InMemoryBackend``).
- Normalise raw rows into the canonical models before they leave the adapter.
"""
