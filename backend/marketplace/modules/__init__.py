"""
Bounded-context modules.

Routers call the services in `marketplace/modules/*` rather than touching
repositories or the entity store directly.
"""
