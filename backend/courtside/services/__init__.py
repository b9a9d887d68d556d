"""
Services Layer

Business logic for the courtside scheduler that:
- Accepts domain inputs (sessions, IDs, category keys, injected clocks)
- Returns domain outputs (models, dataclasses)
- Does NOT depend on HTTP request/response objects
- Commits only where an operation is a complete unit of work (generation,
  court claims, match completion, boost installation, points awards)
"""
