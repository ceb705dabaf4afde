# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   auth_service        — password hashing, JWT issuance, login/signup
#   post_service        — CRUD + tag upsert + cache for Post
#   comment_service     — threaded comments (members and guests) on a Post
#   user_service        — profiles for User
#   suggestion_service  — suggestion box CRUD and the ranked listing
#   vote_service        — the upvote ledger (cast / retract / reconcile)
#
# All service functions accept an AsyncSession as their first argument.
# Most of them flush but do not commit, so the router layer controls the
# transaction boundary via the ``get_db`` dependency.  vote_service is the
# exception: each vote operation is its own transaction and commits or
# rolls back before returning.
