"""Service layer: business rules, no HTTP."""
