# Domain package.
#
# Framework-free aggregates and pure helpers:
#
#   slug     slug derivation and collision resolution
#   article  Article aggregate (create / update / delete rules)
#   comment  Comment aggregate
#
# Aggregates are frozen dataclasses; they never touch the database.
