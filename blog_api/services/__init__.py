# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single entity:
#
#   user_service     - registration, login, CRUD for User
#   post_service     - CRUD + keyword search + tag resolution for Post
#   tag_service      - shared tag vocabulary
#   comment_service  - CRUD for Comment and the pin-status transition
#
# All service functions accept an AsyncSession as their first argument.
# Reads run in the request's session; every write runs inside
# ``database.atomic`` so it commits as one unit or rolls back entirely.
