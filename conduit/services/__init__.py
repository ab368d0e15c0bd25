# Services package.
#
# Each module exposes a focused set of async functions for one concern:
#
#   article_service        article commands (create / update / delete / favorite) + tags
#   article_query_service  read-only article views, lists and feed
#   comment_service        comment commands and views
#   profile_service        profiles and follows
#   user_service           user registration
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
