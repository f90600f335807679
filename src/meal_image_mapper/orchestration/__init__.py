"""
Orchestration layer (Meal Image Mapper)

Runs one mapping invocation:
  - TimeBudget decides when to stop starting new batches
  - BatchOrchestrator resolves meals, matches them and persists after every batch
  - handler turns invocation payloads into orchestrator runs and JSON responses

Collaborators (catalog source, meal store, embedding provider) are injected,
so the same flow runs against Supabase, local files or in-memory fakes.
"""
