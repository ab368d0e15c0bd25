# Repositories package.
#
# Persistence ports that translate between ORM rows and domain aggregates:
#
#   article_repository  articles, tag memberships, favorites
#   comment_repository  comments
#
# Each repository wraps the caller's AsyncSession and only flushes; the
# ``get_db`` dependency commits or rolls back the whole request.
